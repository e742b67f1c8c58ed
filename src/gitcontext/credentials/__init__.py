"""Credential key derivation and secure-storage access."""

from gitcontext.credentials.keys import (
    derive_credential_key,
    is_account_credential_key,
    legacy_credential_key,
)
from gitcontext.credentials.store import (
    AccountCredentials,
    CredentialResult,
    KeyringSecretStore,
    MemorySecretStore,
    SecretStore,
)

__all__ = [
    "AccountCredentials",
    "CredentialResult",
    "KeyringSecretStore",
    "MemorySecretStore",
    "SecretStore",
    "derive_credential_key",
    "is_account_credential_key",
    "legacy_credential_key",
]
