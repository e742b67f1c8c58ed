"""Secret-store key naming for per-account credentials.

Keys have the form ``{type}_token_{account_id}``. The pre-multi-account
layout stored one token per provider under ``{type}_token``; every derived
key extends that legacy key with a ``_`` separator, so the two layouts
never collide and a migration can tell them apart.
"""

from __future__ import annotations

from gitcontext.models import IntegrationType

_TOKEN_SUFFIX = "_token"
_SEPARATOR = "_"


def legacy_credential_key(integration_type: IntegrationType | str) -> str:
    """Single-account key used before accounts existed."""
    return f"{IntegrationType(integration_type).value}{_TOKEN_SUFFIX}"


def derive_credential_key(
    integration_type: IntegrationType | str,
    account_id: str,
) -> str:
    """Return the secret-store key for one account's token.

    Pure and deterministic. Distinct ``(type, account_id)`` pairs map to
    distinct keys because provider names never contain ``_token_``.
    """
    return f"{legacy_credential_key(integration_type)}{_SEPARATOR}{account_id}"


def is_account_credential_key(key: str) -> bool:
    """True when *key* is a derived per-account key (not a legacy one)."""
    for integration_type in IntegrationType:
        prefix = legacy_credential_key(integration_type) + _SEPARATOR
        if key.startswith(prefix):
            return True
    return False
