"""gitcontext: account and identity resolution for git repositories."""

__version__ = "0.1.0"
