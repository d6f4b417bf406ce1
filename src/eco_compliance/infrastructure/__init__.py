"""Infrastructure adapters: configuration, logging, persistence and external clients."""
