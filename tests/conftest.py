"""Shared test fixtures for gitcontext."""

from __future__ import annotations

from pathlib import Path

import pytest

from gitcontext.config import Config, CredentialsConfig, StorageConfig
from gitcontext.credentials import MemorySecretStore
from gitcontext.engine import IdentityEngine
from gitcontext.events import EventBus
from gitcontext.stores import AccountStore, ProfileStore


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def profile_store(bus: EventBus) -> ProfileStore:
    return ProfileStore(bus=bus)


@pytest.fixture
def account_store(bus: EventBus, profile_store: ProfileStore) -> AccountStore:
    return AccountStore(bus=bus, profile_store=profile_store)


@pytest.fixture
def secret_store() -> MemorySecretStore:
    return MemorySecretStore()


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Provide a test configuration with temp paths and in-memory secrets."""
    return Config(
        storage=StorageConfig(
            accounts_path=str(tmp_path / "accounts.json"),
            profiles_path=str(tmp_path / "profiles.json"),
        ),
        credentials=CredentialsConfig(backend="memory"),
    )


@pytest.fixture
def engine(config: Config, secret_store: MemorySecretStore) -> IdentityEngine:
    return IdentityEngine.from_config(config, secret_store=secret_store)
