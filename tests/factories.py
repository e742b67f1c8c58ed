"""Entity builders shared by the test modules."""

from __future__ import annotations

from gitcontext.models import (
    IntegrationAccount,
    IntegrationType,
    Profile,
    default_config,
)


def make_account(
    account_id: str,
    integration_type: IntegrationType = IntegrationType.GITHUB,
    *,
    name: str | None = None,
    patterns: tuple[str, ...] = (),
    is_default: bool = False,
) -> IntegrationAccount:
    return IntegrationAccount(
        id=account_id,
        name=name or f"Account {account_id}",
        integration_type=integration_type,
        config=default_config(integration_type),
        url_patterns=patterns,
        is_default=is_default,
    )


def make_profile(
    profile_id: str,
    *,
    patterns: tuple[str, ...] = (),
    is_default: bool = False,
    default_accounts: dict[IntegrationType, str] | None = None,
) -> Profile:
    return Profile(
        id=profile_id,
        name=f"Profile {profile_id}",
        git_name=f"User {profile_id}",
        git_email=f"{profile_id}@example.com",
        url_patterns=patterns,
        is_default=is_default,
        default_accounts=dict(default_accounts or {}),
    )
