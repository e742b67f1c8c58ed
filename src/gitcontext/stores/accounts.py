"""Account store: the authoritative collection of integration accounts.

Entities are immutable; every mutation swaps in new collection values
under the store lock and notifies the event bus once the swap is done.
Only one invariant is enforced here: at most one default account per
integration type. It is maintained by demoting the others. Removing the
default never promotes a replacement.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING

from gitcontext.events import Event, EventBus
from gitcontext.events import types as events
from gitcontext.models import IntegrationAccount, IntegrationType

if TYPE_CHECKING:
    from gitcontext.stores.profiles import ProfileStore

logger = logging.getLogger(__name__)


def _demote_others(
    accounts: Iterable[IntegrationAccount], keep: IntegrationAccount,
) -> list[IntegrationAccount]:
    """Clear ``is_default`` on every other account of *keep*'s type."""
    result = []
    for account in accounts:
        if (
            account.id != keep.id
            and account.integration_type == keep.integration_type
            and account.is_default
        ):
            account = dataclasses.replace(account, is_default=False)
        result.append(account)
    return result


class AccountStore:
    """Accounts, active account per type, and repository assignments."""

    def __init__(
        self,
        *,
        bus: EventBus | None = None,
        profile_store: ProfileStore | None = None,
        lock: threading.RLock | None = None,
    ) -> None:
        self._bus = bus
        self._profile_store = profile_store
        self._lock = lock or threading.RLock()
        self._accounts: tuple[IntegrationAccount, ...] = ()
        self._active: dict[IntegrationType, IntegrationAccount | None] = {}
        self._assignments: dict[str, str] = {}
        self.is_loading = False
        self.error: str | None = None

    # -- snapshots ---------------------------------------------------------

    @property
    def accounts(self) -> list[IntegrationAccount]:
        with self._lock:
            return list(self._accounts)

    @property
    def active_accounts(self) -> dict[IntegrationType, IntegrationAccount | None]:
        with self._lock:
            return dict(self._active)

    @property
    def repository_assignments(self) -> dict[str, str]:
        with self._lock:
            return dict(self._assignments)

    # -- mutations ---------------------------------------------------------

    def set_accounts(self, accounts: Iterable[IntegrationAccount]) -> None:
        """Replace the whole collection and clear any error."""
        with self._lock:
            self._accounts = tuple(accounts)
            self.error = None
            count = len(self._accounts)
        logger.debug("Replaced accounts (%d)", count)
        self._emit(events.ACCOUNTS_REPLACED, count=count)

    def add_account(self, account: IntegrationAccount) -> None:
        with self._lock:
            existing = self._accounts
            if account.is_default:
                existing = _demote_others(existing, account)
            self._accounts = (*existing, account)
            self.error = None
        logger.debug(
            "Added %s account %s (default=%s)",
            account.integration_type.value, account.id, account.is_default,
        )
        self._emit(
            events.ACCOUNT_ADDED,
            account_id=account.id,
            integration_type=account.integration_type.value,
        )

    def update_account(self, account: IntegrationAccount) -> None:
        """Replace the account with the same id.

        An unknown id leaves the collection unchanged apart from demotion
        when the incoming entry is marked default.
        """
        with self._lock:
            updated = [account if a.id == account.id else a for a in self._accounts]
            if account.is_default:
                updated = _demote_others(updated, account)
            self._accounts = tuple(updated)
            for slot, active in list(self._active.items()):
                if active is not None and active.id == account.id:
                    # A type change vacates the old slot.
                    self._active[slot] = (
                        account if slot == account.integration_type else None
                    )
            self.error = None
        logger.debug(
            "Updated %s account %s", account.integration_type.value, account.id,
        )
        self._emit(
            events.ACCOUNT_UPDATED,
            account_id=account.id,
            integration_type=account.integration_type.value,
        )

    def remove_account(self, account_id: str) -> None:
        """Remove an account and every reference to it.

        Clears the active reference and repository assignments holding the
        id, and cascades into profile default-account entries for the
        account's type. Unknown ids are a no-op.
        """
        cleared_profiles: list[str] = []
        with self._lock:
            removed = next((a for a in self._accounts if a.id == account_id), None)
            if removed is None:
                return
            self._accounts = tuple(a for a in self._accounts if a.id != account_id)
            active = self._active.get(removed.integration_type)
            if active is not None and active.id == account_id:
                self._active[removed.integration_type] = None
            self._assignments = {
                path: assigned
                for path, assigned in self._assignments.items()
                if assigned != account_id
            }
            self.error = None
            if self._profile_store is not None:
                cleared_profiles = self._profile_store.detach_default_account(
                    removed.integration_type, account_id,
                )
        logger.debug(
            "Removed %s account %s", removed.integration_type.value, account_id,
        )
        self._emit(
            events.ACCOUNT_REMOVED,
            account_id=account_id,
            integration_type=removed.integration_type.value,
        )
        if self._profile_store is not None:
            self._profile_store.notify_default_account_cleared(
                removed.integration_type, account_id, cleared_profiles,
            )

    def set_default_account(
        self, integration_type: IntegrationType, account_id: str,
    ) -> None:
        """Make *account_id* the only default among accounts of its type.

        An id that is not an account of *integration_type* changes nothing.
        """
        with self._lock:
            target = self._find(account_id)
            if target is None or target.integration_type != integration_type:
                return
        self.update_account(dataclasses.replace(target, is_default=True))

    def set_active_account(
        self,
        integration_type: IntegrationType,
        account: IntegrationAccount | None,
    ) -> None:
        with self._lock:
            self._active[integration_type] = account
        self._emit(
            events.ACTIVE_ACCOUNT_CHANGED,
            integration_type=integration_type.value,
            account_id=account.id if account else None,
        )

    def set_repository_assignments(self, assignments: Mapping[str, str]) -> None:
        with self._lock:
            self._assignments = dict(assignments)
        self._emit(events.ACCOUNT_ASSIGNMENTS_REPLACED, count=len(assignments))

    def assign_account_to_repository(self, repo_path: str, account_id: str) -> None:
        with self._lock:
            self._assignments[repo_path] = account_id
        logger.debug("Assigned account %s to %s", account_id, repo_path)
        self._emit(events.ACCOUNT_ASSIGNED, repo_path=repo_path, account_id=account_id)

    def unassign_account_from_repository(self, repo_path: str) -> None:
        with self._lock:
            if repo_path not in self._assignments:
                return
            del self._assignments[repo_path]
        logger.debug("Unassigned account from %s", repo_path)
        self._emit(events.ACCOUNT_UNASSIGNED, repo_path=repo_path)

    def set_loading(self, loading: bool) -> None:
        with self._lock:
            self.is_loading = loading
        self._emit(events.ACCOUNTS_LOADING, loading=loading)

    def set_error(self, error: str | None) -> None:
        with self._lock:
            self.error = error
            self.is_loading = False
        self._emit(events.ACCOUNTS_ERROR, error=error)

    def reset(self) -> None:
        with self._lock:
            self._accounts = ()
            self._active = {}
            self._assignments = {}
            self.is_loading = False
            self.error = None
        self._emit(events.ACCOUNTS_RESET)

    # -- selectors ---------------------------------------------------------

    def accounts_by_type(self, integration_type: IntegrationType) -> list[IntegrationAccount]:
        with self._lock:
            return [a for a in self._accounts if a.integration_type == integration_type]

    def account_by_id(self, account_id: str) -> IntegrationAccount | None:
        with self._lock:
            return self._find(account_id)

    def default_account_for_type(
        self, integration_type: IntegrationType,
    ) -> IntegrationAccount | None:
        with self._lock:
            return next(
                (
                    a for a in self._accounts
                    if a.integration_type == integration_type and a.is_default
                ),
                None,
            )

    def active_account_for_type(
        self, integration_type: IntegrationType,
    ) -> IntegrationAccount | None:
        with self._lock:
            return self._active.get(integration_type)

    def assigned_account(self, repo_path: str) -> IntegrationAccount | None:
        """The account assigned to *repo_path*, whatever its type."""
        with self._lock:
            assigned_id = self._assignments.get(repo_path)
            return self._find(assigned_id) if assigned_id else None

    def account_for_repository(
        self, repo_path: str, integration_type: IntegrationType,
    ) -> IntegrationAccount | None:
        account = self.assigned_account(repo_path)
        if account is not None and account.integration_type == integration_type:
            return account
        return None

    def has_accounts_for_type(self, integration_type: IntegrationType) -> bool:
        with self._lock:
            return any(a.integration_type == integration_type for a in self._accounts)

    def has_any_accounts(self) -> bool:
        with self._lock:
            return bool(self._accounts)

    def account_count_by_type(self) -> dict[IntegrationType, int]:
        counts = {t: 0 for t in IntegrationType}
        with self._lock:
            for account in self._accounts:
                counts[account.integration_type] += 1
        return counts

    # -- internals ---------------------------------------------------------

    def _find(self, account_id: str | None) -> IntegrationAccount | None:
        return next((a for a in self._accounts if a.id == account_id), None)

    def _emit(self, event_type: str, **data) -> None:
        if self._bus is not None:
            self._bus.emit(Event(event_type=event_type, data=data))
