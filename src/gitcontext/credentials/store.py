"""Secure storage access for per-account tokens.

The secret store itself is an opaque key/value backend. ``AccountCredentials``
only ever addresses it with keys from ``derive_credential_key`` (or the
legacy key during migration) and reports backend failures as
``CredentialResult`` values instead of raising, so a failed secret write
never leaves account or profile state half-updated.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass
from typing import Protocol

import keyring
import keyring.errors

from gitcontext.credentials.keys import derive_credential_key, legacy_credential_key
from gitcontext.exceptions import CredentialError
from gitcontext.models import IntegrationType

logger = logging.getLogger(__name__)

# Spelling used by older releases for the Azure DevOps single token.
_LEGACY_KEY_ALIASES: dict[IntegrationType, tuple[str, ...]] = {
    IntegrationType.AZURE_DEVOPS: ("azure_devops_token",),
}


class SecretStore(Protocol):
    """Opaque key/value secret backend."""

    def get_value(self, key: str) -> str | None: ...

    def set_value(self, key: str, value: str) -> None: ...

    def delete_value(self, key: str) -> None: ...


class KeyringSecretStore:
    """Secret store backed by the OS keychain via ``keyring``."""

    def __init__(self, service_name: str = "gitcontext") -> None:
        self.service_name = service_name

    def get_value(self, key: str) -> str | None:
        try:
            return keyring.get_password(self.service_name, key)
        except Exception as e:
            raise CredentialError(
                f"Keychain lookup failed for {self.service_name}/{key}: {e}"
            ) from e

    def set_value(self, key: str, value: str) -> None:
        try:
            keyring.set_password(self.service_name, key, value)
        except Exception as e:
            raise CredentialError(
                f"Keychain write failed for {self.service_name}/{key}: {e}"
            ) from e

    def delete_value(self, key: str) -> None:
        try:
            keyring.delete_password(self.service_name, key)
        except keyring.errors.PasswordDeleteError:
            # Already absent.
            return
        except Exception as e:
            raise CredentialError(
                f"Keychain delete failed for {self.service_name}/{key}: {e}"
            ) from e


class MemorySecretStore:
    """Process-local secret store for tests and ephemeral sessions."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get_value(self, key: str) -> str | None:
        with self._lock:
            return self._values.get(key)

    def set_value(self, key: str, value: str) -> None:
        with self._lock:
            self._values[key] = value

    def delete_value(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._values)


@dataclass
class CredentialResult:
    """Outcome of one credential operation."""

    success: bool
    value: str | None = None
    error: str | None = None

    @classmethod
    def ok(cls, value: str | None = None) -> CredentialResult:
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: str) -> CredentialResult:
        return cls(success=False, error=error)


class AccountCredentials:
    """Per-account token access over a ``SecretStore``.

    Every method is a coroutine that runs the (possibly blocking) backend
    call in a worker thread. Callers own cancellation and retries.
    """

    def __init__(self, store: SecretStore) -> None:
        self._store = store

    @staticmethod
    def key_for(integration_type: IntegrationType, account_id: str) -> str:
        return derive_credential_key(integration_type, account_id)

    async def get_token(
        self, integration_type: IntegrationType, account_id: str,
    ) -> CredentialResult:
        key = derive_credential_key(integration_type, account_id)
        try:
            value = await asyncio.to_thread(self._store.get_value, key)
        except CredentialError as e:
            logger.warning("Failed to read credential %s: %s", key, e)
            return CredentialResult.fail(str(e))
        return CredentialResult.ok(value)

    async def set_token(
        self, integration_type: IntegrationType, account_id: str, token: str,
    ) -> CredentialResult:
        key = derive_credential_key(integration_type, account_id)
        try:
            await asyncio.to_thread(self._store.set_value, key, token)
        except CredentialError as e:
            logger.warning("Failed to store credential %s: %s", key, e)
            return CredentialResult.fail(str(e))
        logger.debug("Stored credential %s", key)
        return CredentialResult.ok()

    async def delete_token(
        self, integration_type: IntegrationType, account_id: str,
    ) -> CredentialResult:
        key = derive_credential_key(integration_type, account_id)
        try:
            await asyncio.to_thread(self._store.delete_value, key)
        except CredentialError as e:
            logger.warning("Failed to delete credential %s: %s", key, e)
            return CredentialResult.fail(str(e))
        return CredentialResult.ok()

    async def has_token(
        self, integration_type: IntegrationType, account_id: str,
    ) -> bool:
        result = await self.get_token(integration_type, account_id)
        return result.success and bool(result.value)

    async def get_legacy_token(
        self, integration_type: IntegrationType,
    ) -> CredentialResult:
        """Read the pre-multi-account token for one provider, if any."""
        keys = (
            legacy_credential_key(integration_type),
            *_LEGACY_KEY_ALIASES.get(integration_type, ()),
        )
        for key in keys:
            try:
                value = await asyncio.to_thread(self._store.get_value, key)
            except CredentialError as e:
                logger.warning("Failed to read legacy credential %s: %s", key, e)
                return CredentialResult.fail(str(e))
            if value:
                return CredentialResult.ok(value)
        return CredentialResult.ok(None)

    async def copy_legacy_token(
        self, integration_type: IntegrationType, account_id: str,
    ) -> CredentialResult:
        """Write the legacy provider token under *account_id*'s key.

        The legacy entry is left in place; see :meth:`delete_legacy_token`.
        """
        legacy = await self.get_legacy_token(integration_type)
        if not legacy.success:
            return legacy
        if not legacy.value:
            return CredentialResult.fail(
                f"No legacy {integration_type.value} token to migrate."
            )
        return await self.set_token(integration_type, account_id, legacy.value)

    async def delete_legacy_token(
        self, integration_type: IntegrationType,
    ) -> CredentialResult:
        """Remove every legacy key spelling for one provider."""
        errors: list[str] = []
        for key in (
            legacy_credential_key(integration_type),
            *_LEGACY_KEY_ALIASES.get(integration_type, ()),
        ):
            try:
                await asyncio.to_thread(self._store.delete_value, key)
            except CredentialError as e:
                logger.warning("Failed to remove legacy credential %s: %s", key, e)
                errors.append(str(e))
        if errors:
            return CredentialResult.fail("; ".join(errors))
        return CredentialResult.ok()

    async def migrate_legacy_token(
        self, integration_type: IntegrationType, account_id: str,
    ) -> CredentialResult:
        """Re-key the legacy provider token under *account_id*'s key.

        The legacy entry is removed only after the new key is written.
        """
        copied = await self.copy_legacy_token(integration_type, account_id)
        if not copied.success:
            return copied
        await self.delete_legacy_token(integration_type)
        return CredentialResult.ok()
