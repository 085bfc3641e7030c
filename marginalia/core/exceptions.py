"""Base exceptions for the domain layer."""

from __future__ import annotations


class DomainError(Exception):
    """Base class for all domain level exceptions."""


class StorageError(DomainError):
    """Raised when the key/value backend cannot read or write a value."""


__all__ = ["DomainError", "StorageError"]
