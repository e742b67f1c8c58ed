"""One-time migration of single-token credentials to per-account keys.

Before multi-account support each provider had exactly one token stored
under ``{type}_token``. Migration creates one account per provider that
still has such a token and re-keys the secret under the new account's
derived key.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from gitcontext.credentials import AccountCredentials
from gitcontext.exceptions import GitContextError
from gitcontext.models import (
    INTEGRATION_TYPE_NAMES,
    IntegrationAccount,
    IntegrationType,
    new_account,
)
from gitcontext.stores import AccountStore

logger = logging.getLogger(__name__)

# Providers that had single-token support.
LEGACY_TOKEN_TYPES: tuple[IntegrationType, ...] = (
    IntegrationType.GITHUB,
    IntegrationType.GITLAB,
    IntegrationType.AZURE_DEVOPS,
)


@dataclass
class MigrationResult:
    migrated_count: int = 0
    created_accounts: list[IntegrationAccount] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def migrated_account_name(integration_type: IntegrationType) -> str:
    return f"{INTEGRATION_TYPE_NAMES[integration_type]} (Migrated)"


async def migrate_legacy_tokens(
    store: AccountStore,
    credentials: AccountCredentials,
    *,
    persist: Callable[[], None] | None = None,
) -> MigrationResult:
    """Create accounts for legacy tokens.

    Does nothing once any account exists. Each token is first copied to the
    new account's key; the account is added to the store only when that
    write succeeds. A failure for one provider is recorded and the remaining
    providers are still migrated.

    Legacy keys are deleted only after *persist* (typically
    ``IdentityEngine.save``) returns. If it raises, the new accounts and
    their copied tokens are rolled back, the legacy keys are kept, and the
    error propagates.
    """
    result = MigrationResult()
    if store.has_any_accounts():
        logger.debug("Accounts already configured; skipping legacy migration")
        return result

    for integration_type in LEGACY_TOKEN_TYPES:
        legacy = await credentials.get_legacy_token(integration_type)
        if not legacy.success:
            result.errors.append(f"{integration_type.value}: {legacy.error}")
            continue
        if not legacy.value:
            continue

        account = new_account(
            migrated_account_name(integration_type),
            integration_type,
            is_default=True,
        )
        copied = await credentials.copy_legacy_token(integration_type, account.id)
        if not copied.success:
            logger.warning(
                "Failed to migrate %s token: %s", integration_type.value, copied.error,
            )
            result.errors.append(f"{integration_type.value}: {copied.error}")
            continue

        store.add_account(account)
        result.created_accounts.append(account)
        result.migrated_count += 1

    if not result.created_accounts:
        return result

    if persist is not None:
        try:
            persist()
        except GitContextError:
            logger.warning("Saving migrated accounts failed; keeping legacy tokens")
            for account in result.created_accounts:
                store.remove_account(account.id)
                await credentials.delete_token(account.integration_type, account.id)
            raise

    for account in result.created_accounts:
        await credentials.delete_legacy_token(account.integration_type)
        logger.info(
            "Migrated legacy %s token to account %s",
            account.integration_type.value, account.id,
        )
    return result
