"""Tests for legacy single-token migration."""

from __future__ import annotations

import pytest
from factories import make_account

from gitcontext.credentials import AccountCredentials, MemorySecretStore
from gitcontext.exceptions import CredentialError, PersistenceError
from gitcontext.migration import migrate_legacy_tokens, migrated_account_name
from gitcontext.models import IntegrationType
from gitcontext.stores import AccountStore


class ReadOnlySecretStore(MemorySecretStore):
    """Reads succeed, writes fail."""

    def set_value(self, key: str, value: str) -> None:
        raise CredentialError("read-only keychain")


@pytest.mark.asyncio
async def test_migrates_each_legacy_token():
    store = AccountStore()
    secrets = MemorySecretStore({
        "github_token": "gh",
        "gitlab_token": "gl",
        "bitbucket_token": "ignored",
    })
    result = await migrate_legacy_tokens(store, AccountCredentials(secrets))

    assert result.migrated_count == 2
    assert result.errors == []
    names = [a.name for a in store.accounts]
    assert names == ["GitHub (Migrated)", "GitLab (Migrated)"]
    github = store.accounts_by_type(IntegrationType.GITHUB)[0]
    assert github.is_default
    assert secrets.get_value(f"github_token_{github.id}") == "gh"
    assert secrets.get_value("github_token") is None
    assert secrets.get_value("bitbucket_token") == "ignored"


@pytest.mark.asyncio
async def test_skipped_when_accounts_exist():
    store = AccountStore()
    store.add_account(make_account("existing"))
    secrets = MemorySecretStore({"github_token": "gh"})
    result = await migrate_legacy_tokens(store, AccountCredentials(secrets))
    assert result.migrated_count == 0
    assert [a.id for a in store.accounts] == ["existing"]
    assert secrets.get_value("github_token") == "gh"


@pytest.mark.asyncio
async def test_nothing_to_migrate():
    store = AccountStore()
    result = await migrate_legacy_tokens(store, AccountCredentials(MemorySecretStore()))
    assert result.migrated_count == 0
    assert result.created_accounts == []
    assert not store.has_any_accounts()


@pytest.mark.asyncio
async def test_failed_secret_write_adds_no_account():
    store = AccountStore()
    secrets = ReadOnlySecretStore({"github_token": "gh"})
    result = await migrate_legacy_tokens(store, AccountCredentials(secrets))
    assert result.migrated_count == 0
    assert len(result.errors) == 1
    assert result.errors[0].startswith("github:")
    assert store.accounts == []
    assert secrets.get_value("github_token") == "gh"


@pytest.mark.asyncio
async def test_azure_devops_old_key_spelling():
    store = AccountStore()
    secrets = MemorySecretStore({"azure_devops_token": "pat"})
    result = await migrate_legacy_tokens(store, AccountCredentials(secrets))
    assert result.migrated_count == 1
    account = result.created_accounts[0]
    assert account.name == migrated_account_name(IntegrationType.AZURE_DEVOPS)
    assert account.name == "Azure DevOps (Migrated)"
    assert secrets.get_value(f"azure-devops_token_{account.id}") == "pat"


@pytest.mark.asyncio
async def test_legacy_keys_removed_only_after_persist():
    store = AccountStore()
    secrets = MemorySecretStore({"github_token": "gh"})
    seen: list[str | None] = []

    def persist() -> None:
        seen.append(secrets.get_value("github_token"))

    result = await migrate_legacy_tokens(
        store, AccountCredentials(secrets), persist=persist,
    )
    assert seen == ["gh"]
    assert result.migrated_count == 1
    assert secrets.get_value("github_token") is None


@pytest.mark.asyncio
async def test_failed_persist_keeps_legacy_token_and_rolls_back():
    store = AccountStore()
    secrets = MemorySecretStore({"github_token": "gh", "gitlab_token": "gl"})

    def persist() -> None:
        raise PersistenceError("disk full")

    with pytest.raises(PersistenceError, match="disk full"):
        await migrate_legacy_tokens(
            store, AccountCredentials(secrets), persist=persist,
        )
    assert store.accounts == []
    assert sorted(secrets.keys()) == ["github_token", "gitlab_token"]


@pytest.mark.asyncio
async def test_persist_not_called_when_nothing_migrated():
    calls: list[int] = []
    result = await migrate_legacy_tokens(
        AccountStore(),
        AccountCredentials(MemorySecretStore()),
        persist=lambda: calls.append(1),
    )
    assert result.migrated_count == 0
    assert calls == []
