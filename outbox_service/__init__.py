"""Transactional outbox: atomic event staging and reliable in-process delivery."""

__version__ = "0.1.0"
