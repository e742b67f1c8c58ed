"""gitcontext exception hierarchy.

Provides a structured exception tree so catch blocks can be specific
and callers can distinguish between different failure modes.
"""

from __future__ import annotations


class GitContextError(Exception):
    """Base for all gitcontext exceptions."""


class StoreError(GitContextError):
    """Rejected account/profile store operations."""


class PersistenceError(GitContextError):
    """Unreadable, malformed, or unsupported persisted documents."""


class CredentialError(GitContextError):
    """Secure storage backend failures."""


class GitError(GitContextError):
    """git subprocess failures."""
