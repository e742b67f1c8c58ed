"""Tests for the profile store."""

from __future__ import annotations

import pytest
from factories import make_profile

from gitcontext.events import Event
from gitcontext.events import types as events
from gitcontext.models import ConnectionStatus, IntegrationType
from gitcontext.stores import ProfileStore

GITHUB = IntegrationType.GITHUB
GITLAB = IntegrationType.GITLAB


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestProfileCrud:
    def test_snapshot_mutation_does_not_reach_store(self, profile_store):
        profile_store.add_profile(make_profile("P", default_accounts={GITHUB: "A"}))
        snapshot = profile_store.profiles[0]
        with pytest.raises(TypeError):
            snapshot.default_accounts[GITLAB] = "ghost"
        assert profile_store.profile_by_id("P").default_accounts == {GITHUB: "A"}

    def test_add_default_demotes_other_profiles(self, profile_store):
        profile_store.add_profile(make_profile("p1", is_default=True))
        profile_store.add_profile(make_profile("p2", is_default=True))
        assert [p.id for p in profile_store.profiles if p.is_default] == ["p2"]
        assert profile_store.default_profile().id == "p2"

    def test_update_default_demotes_other_profiles(self, profile_store):
        profile_store.set_profiles([
            make_profile("p1", is_default=True),
            make_profile("p2"),
        ])
        profile_store.update_profile(make_profile("p2", is_default=True))
        assert [p.id for p in profile_store.profiles if p.is_default] == ["p2"]

    def test_update_refreshes_active_profile(self, profile_store):
        profile = make_profile("p1")
        profile_store.set_profiles([profile])
        profile_store.set_active_profile(profile)
        profile_store.update_profile(make_profile("p1", patterns=("github.com/**",)))
        assert profile_store.active_profile.url_patterns == ("github.com/**",)

    def test_remove_drops_assignments_and_active(self, profile_store):
        p1 = make_profile("p1")
        profile_store.set_profiles([p1, make_profile("p2")])
        profile_store.set_active_profile(p1)
        profile_store.assign_profile_to_repository("/a", "p1")
        profile_store.assign_profile_to_repository("/b", "p2")
        profile_store.remove_profile("p1")
        assert [p.id for p in profile_store.profiles] == ["p2"]
        assert profile_store.active_profile is None
        assert profile_store.repository_assignments == {"/b": "p2"}

    def test_remove_does_not_promote_default(self, profile_store):
        profile_store.set_profiles([
            make_profile("p1", is_default=True),
            make_profile("p2"),
        ])
        profile_store.remove_profile("p1")
        assert profile_store.default_profile() is None

    def test_remove_unknown_is_noop(self, profile_store):
        profile_store.set_profiles([make_profile("p1")])
        profile_store.remove_profile("nope")
        assert [p.id for p in profile_store.profiles] == ["p1"]


class TestProfileDefaultAccounts:
    def test_set_and_clear(self, profile_store):
        profile_store.set_profiles([make_profile("p1")])
        profile_store.set_profile_default_account("p1", GITHUB, "a1")
        profile_store.set_profile_default_account("p1", GITLAB, "g1")
        assert profile_store.profile_by_id("p1").default_accounts == {
            GITHUB: "a1", GITLAB: "g1",
        }
        profile_store.set_profile_default_account("p1", GITHUB, None)
        assert profile_store.profile_by_id("p1").default_accounts == {GITLAB: "g1"}

    def test_unknown_profile_is_noop(self, profile_store):
        profile_store.set_profile_default_account("ghost", GITHUB, "a1")
        assert profile_store.profiles == []

    def test_clear_default_account_reports_changed_profiles(self, profile_store, bus):
        profile_store.set_profiles([
            make_profile("p1", default_accounts={GITHUB: "A"}),
            make_profile("p2", default_accounts={GITLAB: "A"}),
            make_profile("p3", default_accounts={GITHUB: "A"}),
        ])
        received: list[Event] = []
        bus.subscribe(events.PROFILE_DEFAULT_ACCOUNT_CHANGED, received.append)
        changed = profile_store.clear_default_account(GITHUB, "A")
        assert changed == ["p1", "p3"]
        assert [e.data["profile_id"] for e in received] == ["p1", "p3"]
        assert profile_store.profile_by_id("p2").default_accounts == {GITLAB: "A"}


class TestProfileAssignments:
    def test_assigned_profile(self, profile_store):
        profile_store.set_profiles([make_profile("p1")])
        profile_store.assign_profile_to_repository("/r", "p1")
        assert profile_store.assigned_profile("/r").id == "p1"
        assert profile_store.assigned_profile("/other") is None

    def test_unassign(self, profile_store):
        profile_store.assign_profile_to_repository("/r", "p1")
        profile_store.unassign_profile_from_repository("/r")
        profile_store.unassign_profile_from_repository("/r")
        assert profile_store.repository_assignments == {}


class TestConnectionStatus:
    def test_unknown_by_default(self, profile_store):
        status = profile_store.connection_status("a1")
        assert status.status == ConnectionStatus.UNKNOWN
        assert status.last_checked is None

    def test_checking_keeps_previous_timestamp(self):
        clock = FakeClock(100.0)
        store = ProfileStore(clock=clock)
        store.set_account_connection_status("a1", ConnectionStatus.CONNECTED)
        clock.now = 200.0
        store.set_account_connection_status("a1", ConnectionStatus.CHECKING)
        status = store.connection_status("a1")
        assert status.status == ConnectionStatus.CHECKING
        assert status.last_checked == 100.0
        store.set_account_connection_status("a1", ConnectionStatus.DISCONNECTED)
        assert store.connection_status("a1").last_checked == 200.0

    def test_first_check_has_no_timestamp(self):
        store = ProfileStore(clock=FakeClock())
        store.set_account_connection_status("a1", ConnectionStatus.CHECKING)
        assert store.connection_status("a1").last_checked is None


def test_reset_clears_everything(profile_store):
    profile = make_profile("p1")
    profile_store.set_profiles([profile])
    profile_store.set_active_profile(profile)
    profile_store.assign_profile_to_repository("/r", "p1")
    profile_store.reset()
    assert profile_store.profiles == []
    assert profile_store.active_profile is None
    assert profile_store.repository_assignments == {}
    assert not profile_store.has_profiles()
