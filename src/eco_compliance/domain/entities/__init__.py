"""Domain entities and aggregate roots."""
