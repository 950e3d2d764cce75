"""Infrastructure adapters: database, events, logging and metrics."""
