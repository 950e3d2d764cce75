"""Core abstractions: settings, database primitives and domain events."""
