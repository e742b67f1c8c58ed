"""In-memory state containers for accounts and profiles."""

from gitcontext.stores.accounts import AccountStore
from gitcontext.stores.profiles import ProfileStore

__all__ = ["AccountStore", "ProfileStore"]
