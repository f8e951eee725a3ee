"""Exception types shared across the content backend."""

from __future__ import annotations


class ContentImportError(Exception):
    """Base class for failures raised by the JSON import pipeline."""


class SourceFileError(ContentImportError):
    """A source file is missing, unreadable, or not a JSON array."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"{reason}: {path}")
        self.path = path
        self.reason = reason


class NodeImportError(ContentImportError):
    """A node could not be turned into a storable multilingual target."""

    def __init__(self, node_id, message: str):
        super().__init__(message)
        self.node_id = node_id


class DatabaseError(Exception):
    """Custom exception for database operations"""
    pass


class DuplicateIdentityError(DatabaseError):
    """Create was attempted with a slug/node id that already exists."""


class AuthenticationError(Exception):
    """Bad credentials, inactive account, or an invalid token."""


class ValidationError(ValueError):
    """A request payload is missing a required field or carries a bad value."""
