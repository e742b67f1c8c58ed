"""Identity engine: the composed, subscribable state container.

One ``IdentityEngine`` owns an account store, a profile store, an event
bus and (optionally) credential access. Both stores share one lock, so an
account removal and its cascade into profiles are observed as a single
step. Any number of engines can coexist; nothing here is a module global.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from pathlib import Path

from gitcontext.config import Config
from gitcontext.credentials import (
    AccountCredentials,
    KeyringSecretStore,
    MemorySecretStore,
    SecretStore,
)
from gitcontext.events import EventBus, EventHandler
from gitcontext.exceptions import StoreError
from gitcontext.models import (
    AssignmentSource,
    IntegrationAccount,
    IntegrationType,
    Profile,
    Remote,
)
from gitcontext.persistence import (
    AccountsDocument,
    ProfilesDocument,
    load_accounts_document,
    load_profiles_document,
    save_accounts_document,
    save_profiles_document,
)
from gitcontext.resolution import (
    detect_profile_for_repository,
    detect_provider,
    find_best_account_for_repository,
    get_profile_assignment_source,
    get_relevant_account,
    profile_preferred_account,
)
from gitcontext.stores import AccountStore, ProfileStore

logger = logging.getLogger(__name__)


def secret_store_from_config(config: Config) -> SecretStore:
    if config.credentials.backend == "memory":
        return MemorySecretStore()
    return KeyringSecretStore(config.credentials.service_name)


class IdentityEngine:
    """Accounts, profiles and the resolution queries over them."""

    def __init__(
        self,
        *,
        accounts_path: Path | None = None,
        profiles_path: Path | None = None,
        secret_store: SecretStore | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self.accounts_path = accounts_path
        self.profiles_path = profiles_path
        self.bus = bus or EventBus()
        self._lock = threading.RLock()
        self.profiles = ProfileStore(bus=self.bus, lock=self._lock)
        self.accounts = AccountStore(
            bus=self.bus, profile_store=self.profiles, lock=self._lock,
        )
        self.credentials = AccountCredentials(secret_store or MemorySecretStore())

    @classmethod
    def from_config(
        cls, config: Config, *, secret_store: SecretStore | None = None,
    ) -> IdentityEngine:
        return cls(
            accounts_path=config.accounts_path,
            profiles_path=config.profiles_path,
            secret_store=secret_store or secret_store_from_config(config),
        )

    # -- change notification ----------------------------------------------

    def subscribe(self, handler: EventHandler) -> None:
        """Call *handler* after every completed mutation."""
        self.bus.subscribe_all(handler)

    def unsubscribe(self, handler: EventHandler) -> None:
        self.bus.unsubscribe_all(handler)

    # -- persistence -------------------------------------------------------

    def load(self) -> None:
        """Populate both stores from their documents.

        The default profile becomes the active profile when none is set.
        """
        if self.accounts_path is not None:
            self.accounts.set_loading(True)
            document = load_accounts_document(self.accounts_path)
            self.accounts.set_accounts(document.accounts)
            self.accounts.set_repository_assignments(document.repository_assignments)
            self.accounts.set_loading(False)
        if self.profiles_path is not None:
            self.profiles.set_loading(True)
            profiles_doc = load_profiles_document(self.profiles_path)
            self.profiles.set_profiles(profiles_doc.profiles)
            self.profiles.set_repository_assignments(
                profiles_doc.repository_assignments,
            )
            self.profiles.set_loading(False)
            if self.profiles.active_profile is None:
                default = self.profiles.default_profile()
                if default is not None:
                    self.profiles.set_active_profile(default)

    def save(self) -> None:
        with self._lock:
            accounts_doc = AccountsDocument(
                accounts=tuple(self.accounts.accounts),
                repository_assignments=self.accounts.repository_assignments,
            )
            profiles_doc = ProfilesDocument(
                profiles=tuple(self.profiles.profiles),
                repository_assignments=self.profiles.repository_assignments,
            )
        if self.accounts_path is not None:
            save_accounts_document(self.accounts_path, accounts_doc)
        if self.profiles_path is not None:
            save_profiles_document(self.profiles_path, profiles_doc)

    # -- checked mutations -------------------------------------------------

    def require_account(self, account_id: str) -> IntegrationAccount:
        account = self.accounts.account_by_id(account_id)
        if account is None:
            raise StoreError(f"Unknown account: {account_id}")
        return account

    def require_profile(self, profile_id: str) -> Profile:
        profile = self.profiles.profile_by_id(profile_id)
        if profile is None:
            raise StoreError(f"Unknown profile: {profile_id}")
        return profile

    def assign_account(self, repo_path: str, account_id: str) -> IntegrationAccount:
        account = self.require_account(account_id)
        self.accounts.assign_account_to_repository(repo_path, account_id)
        return account

    def assign_profile(self, repo_path: str, profile_id: str) -> Profile:
        profile = self.require_profile(profile_id)
        self.profiles.assign_profile_to_repository(repo_path, profile_id)
        return profile

    def set_profile_default_account(
        self,
        profile_id: str,
        integration_type: IntegrationType,
        account_id: str | None,
    ) -> None:
        """Checked variant: the account must exist and be of *integration_type*."""
        self.require_profile(profile_id)
        if account_id:
            account = self.require_account(account_id)
            if account.integration_type != integration_type:
                raise StoreError(
                    f"Account {account_id} is {account.integration_type.value}, "
                    f"not {integration_type.value}."
                )
        self.profiles.set_profile_default_account(
            profile_id, integration_type, account_id,
        )

    # -- queries -----------------------------------------------------------

    def best_account(
        self,
        repo_path: str,
        remote_url: str | None,
        integration_type: IntegrationType,
    ) -> IntegrationAccount | None:
        with self._lock:
            return find_best_account_for_repository(
                repo_path,
                remote_url,
                integration_type,
                self.accounts.accounts,
                self.accounts.repository_assignments,
            )

    def profile_for_repository(
        self, repo_path: str, remotes: Sequence[Remote],
    ) -> Profile | None:
        with self._lock:
            return detect_profile_for_repository(
                repo_path,
                remotes,
                self.profiles.profiles,
                self.profiles.repository_assignments,
            )

    def profile_assignment_source(
        self,
        repo_path: str,
        remotes: Sequence[Remote],
        profile: Profile | None = None,
    ) -> AssignmentSource:
        with self._lock:
            return get_profile_assignment_source(
                repo_path,
                remotes,
                profile if profile is not None else self.profiles.active_profile,
                self.profiles.repository_assignments,
            )

    def relevant_account(
        self, remotes: Sequence[Remote], profile: Profile | None = None,
    ) -> IntegrationAccount | None:
        with self._lock:
            return get_relevant_account(
                profile if profile is not None else self.profiles.active_profile,
                self.accounts.accounts,
                detect_provider(remotes),
            )

    def preferred_account(
        self, integration_type: IntegrationType, profile: Profile | None = None,
    ) -> IntegrationAccount | None:
        with self._lock:
            return profile_preferred_account(
                profile if profile is not None else self.profiles.active_profile,
                self.accounts.accounts,
                integration_type,
            )
