"""Profile store: identity profiles and repository-to-profile assignments."""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from collections.abc import Iterable, Mapping, Sequence

from gitcontext.events import Event, EventBus
from gitcontext.events import types as events
from gitcontext.models import (
    AccountConnectionStatus,
    ConnectionStatus,
    IntegrationType,
    Profile,
)

logger = logging.getLogger(__name__)


def _demote_other_profiles(profiles: Iterable[Profile], keep: Profile) -> list[Profile]:
    return [
        dataclasses.replace(p, is_default=False)
        if p.id != keep.id and p.is_default
        else p
        for p in profiles
    ]


class ProfileStore:
    """Profiles, the active profile, per-account connection status and
    repository assignments.

    At most one profile is default; marking one default demotes the rest.
    """

    def __init__(
        self,
        *,
        bus: EventBus | None = None,
        lock: threading.RLock | None = None,
        clock=time.time,
    ) -> None:
        self._bus = bus
        self._lock = lock or threading.RLock()
        self._clock = clock
        self._profiles: tuple[Profile, ...] = ()
        self._active: Profile | None = None
        self._assignments: dict[str, str] = {}
        self._connection: dict[str, AccountConnectionStatus] = {}
        self.current_repository_path: str | None = None
        self.is_loading = False
        self.error: str | None = None

    @property
    def profiles(self) -> list[Profile]:
        with self._lock:
            return list(self._profiles)

    @property
    def active_profile(self) -> Profile | None:
        with self._lock:
            return self._active

    @property
    def repository_assignments(self) -> dict[str, str]:
        with self._lock:
            return dict(self._assignments)

    # -- profile CRUD ------------------------------------------------------

    def set_profiles(self, profiles: Iterable[Profile]) -> None:
        with self._lock:
            self._profiles = tuple(profiles)
            self.error = None
            count = len(self._profiles)
        self._emit(events.PROFILES_REPLACED, count=count)

    def add_profile(self, profile: Profile) -> None:
        with self._lock:
            existing = self._profiles
            if profile.is_default:
                existing = _demote_other_profiles(existing, profile)
            self._profiles = (*existing, profile)
            self.error = None
        logger.debug("Added profile %s (default=%s)", profile.id, profile.is_default)
        self._emit(events.PROFILE_ADDED, profile_id=profile.id)

    def update_profile(self, profile: Profile) -> None:
        with self._lock:
            self._replace_profile(profile)
            self.error = None
        logger.debug("Updated profile %s", profile.id)
        self._emit(events.PROFILE_UPDATED, profile_id=profile.id)

    def remove_profile(self, profile_id: str) -> None:
        """Drop a profile, its repository assignments and its active status."""
        with self._lock:
            if not any(p.id == profile_id for p in self._profiles):
                return
            self._profiles = tuple(p for p in self._profiles if p.id != profile_id)
            self._assignments = {
                path: assigned
                for path, assigned in self._assignments.items()
                if assigned != profile_id
            }
            if self._active is not None and self._active.id == profile_id:
                self._active = None
            self.error = None
        logger.debug("Removed profile %s", profile_id)
        self._emit(events.PROFILE_REMOVED, profile_id=profile_id)

    def set_active_profile(self, profile: Profile | None) -> None:
        with self._lock:
            self._active = profile
        self._emit(
            events.ACTIVE_PROFILE_CHANGED,
            profile_id=profile.id if profile else None,
        )

    def set_profile_default_account(
        self,
        profile_id: str,
        integration_type: IntegrationType,
        account_id: str | None,
    ) -> None:
        """Set or clear one profile's default account for a type.

        The caller is responsible for passing an account of that type.
        """
        with self._lock:
            profile = self._find(profile_id)
            if profile is None:
                return
            defaults = dict(profile.default_accounts)
            if account_id:
                defaults[integration_type] = account_id
            else:
                defaults.pop(integration_type, None)
            self._replace_profile(
                dataclasses.replace(profile, default_accounts=defaults),
            )
        self._emit(
            events.PROFILE_DEFAULT_ACCOUNT_CHANGED,
            profile_id=profile_id,
            integration_type=integration_type.value,
            account_id=account_id,
        )

    def clear_default_account(
        self, integration_type: IntegrationType, account_id: str,
    ) -> list[str]:
        """Drop ``default_accounts[integration_type]`` where it equals *account_id*.

        Runs across every profile. Entries for other types are untouched
        even when they hold the same id string. Returns the ids of the
        profiles that changed.
        """
        changed = self.detach_default_account(integration_type, account_id)
        self.notify_default_account_cleared(integration_type, account_id, changed)
        return changed

    def detach_default_account(
        self, integration_type: IntegrationType, account_id: str,
    ) -> list[str]:
        """The state half of :meth:`clear_default_account`; emits nothing.

        Lets a caller holding the shared lock cascade first and notify once
        the lock is released.
        """
        changed: list[str] = []
        with self._lock:
            updated = []
            for profile in self._profiles:
                if profile.default_accounts.get(integration_type) == account_id:
                    defaults = {
                        t: a for t, a in profile.default_accounts.items()
                        if t != integration_type
                    }
                    profile = dataclasses.replace(profile, default_accounts=defaults)
                    changed.append(profile.id)
                updated.append(profile)
            self._profiles = tuple(updated)
            if self._active is not None and self._active.id in changed:
                self._active = self._find(self._active.id)
        return changed

    def notify_default_account_cleared(
        self,
        integration_type: IntegrationType,
        account_id: str,
        profile_ids: Sequence[str],
    ) -> None:
        for profile_id in profile_ids:
            logger.debug(
                "Cleared %s default account %s from profile %s",
                integration_type.value, account_id, profile_id,
            )
            self._emit(
                events.PROFILE_DEFAULT_ACCOUNT_CHANGED,
                profile_id=profile_id,
                integration_type=integration_type.value,
                account_id=None,
            )

    # -- repository assignments -------------------------------------------

    def set_repository_assignments(self, assignments: Mapping[str, str]) -> None:
        with self._lock:
            self._assignments = dict(assignments)
        self._emit(events.PROFILE_ASSIGNMENTS_REPLACED, count=len(assignments))

    def assign_profile_to_repository(self, repo_path: str, profile_id: str) -> None:
        with self._lock:
            self._assignments[repo_path] = profile_id
        logger.debug("Assigned profile %s to %s", profile_id, repo_path)
        self._emit(events.PROFILE_ASSIGNED, repo_path=repo_path, profile_id=profile_id)

    def unassign_profile_from_repository(self, repo_path: str) -> None:
        with self._lock:
            if repo_path not in self._assignments:
                return
            del self._assignments[repo_path]
        self._emit(events.PROFILE_UNASSIGNED, repo_path=repo_path)

    # -- connection status -------------------------------------------------

    def set_account_connection_status(
        self, account_id: str, status: ConnectionStatus,
    ) -> None:
        """Record a connection check result.

        ``checking`` keeps the previous timestamp; any other status stamps
        the current time.
        """
        with self._lock:
            previous = self._connection.get(account_id)
            if status == ConnectionStatus.CHECKING:
                last_checked = previous.last_checked if previous else None
            else:
                last_checked = self._clock()
            self._connection[account_id] = AccountConnectionStatus(
                status=status, last_checked=last_checked,
            )
        self._emit(
            events.CONNECTION_STATUS_CHANGED,
            account_id=account_id,
            status=status.value,
        )

    def connection_status(self, account_id: str) -> AccountConnectionStatus:
        with self._lock:
            return self._connection.get(account_id, AccountConnectionStatus())

    # -- misc state --------------------------------------------------------

    def set_loading(self, loading: bool) -> None:
        with self._lock:
            self.is_loading = loading

    def set_error(self, error: str | None) -> None:
        with self._lock:
            self.error = error
            self.is_loading = False

    def reset(self) -> None:
        with self._lock:
            self._profiles = ()
            self._active = None
            self._assignments = {}
            self._connection = {}
            self.current_repository_path = None
            self.is_loading = False
            self.error = None

    # -- selectors ---------------------------------------------------------

    def profile_by_id(self, profile_id: str) -> Profile | None:
        with self._lock:
            return self._find(profile_id)

    def default_profile(self) -> Profile | None:
        with self._lock:
            return next((p for p in self._profiles if p.is_default), None)

    def assigned_profile(self, repo_path: str) -> Profile | None:
        with self._lock:
            profile_id = self._assignments.get(repo_path)
            return self._find(profile_id) if profile_id else None

    def has_profiles(self) -> bool:
        with self._lock:
            return bool(self._profiles)

    # -- internals ---------------------------------------------------------

    def _find(self, profile_id: str | None) -> Profile | None:
        return next((p for p in self._profiles if p.id == profile_id), None)

    def _replace_profile(self, profile: Profile) -> None:
        updated = [profile if p.id == profile.id else p for p in self._profiles]
        if profile.is_default:
            updated = _demote_other_profiles(updated, profile)
        self._profiles = tuple(updated)
        if self._active is not None and self._active.id == profile.id:
            self._active = profile

    def _emit(self, event_type: str, **data) -> None:
        if self._bus is not None:
            self._bus.emit(Event(event_type=event_type, data=data))
