"""Domain layer: aggregates, value objects, events and ports."""
