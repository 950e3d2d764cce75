"""Shared test fixtures and sample domain."""
