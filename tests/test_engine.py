"""Tests for the composed identity engine."""

from __future__ import annotations

import threading

import pytest
from factories import make_account, make_profile

from gitcontext.engine import IdentityEngine
from gitcontext.events import Event
from gitcontext.events import types as events
from gitcontext.exceptions import StoreError
from gitcontext.models import AssignmentSource, IntegrationType, Remote

GITHUB = IntegrationType.GITHUB
GITLAB = IntegrationType.GITLAB


class TestSubscriptions:
    def test_subscribe_and_unsubscribe(self, engine):
        received: list[Event] = []
        engine.subscribe(received.append)
        engine.accounts.add_account(make_account("a"))
        engine.unsubscribe(received.append)
        engine.accounts.add_account(make_account("b"))
        assert [e.event_type for e in received] == [events.ACCOUNT_ADDED]

    def test_cascade_events_follow_removal_outside_the_lock(self, engine):
        engine.accounts.add_account(make_account("A"))
        engine.profiles.set_profiles([make_profile("p", default_accounts={GITHUB: "A"})])
        seen: list[tuple[str, bool]] = []

        def lock_is_free() -> bool:
            free: list[bool] = []

            def try_lock() -> None:
                acquired = engine._lock.acquire(blocking=False)
                if acquired:
                    engine._lock.release()
                free.append(acquired)

            worker = threading.Thread(target=try_lock)
            worker.start()
            worker.join()
            return free[0]

        engine.subscribe(lambda event: seen.append((event.event_type, lock_is_free())))
        engine.accounts.remove_account("A")
        assert seen == [
            (events.ACCOUNT_REMOVED, True),
            (events.PROFILE_DEFAULT_ACCOUNT_CHANGED, True),
        ]
        assert engine.profiles.profile_by_id("p").default_accounts == {}

    def test_failing_subscriber_does_not_break_mutation(self, engine):
        def broken(event):
            raise RuntimeError("listener bug")

        engine.subscribe(broken)
        engine.accounts.add_account(make_account("a"))
        assert engine.accounts.account_by_id("a") is not None

    def test_engines_are_isolated(self):
        first = IdentityEngine()
        second = IdentityEngine()
        first.accounts.add_account(make_account("a"))
        first.profiles.add_profile(make_profile("p"))
        assert second.accounts.accounts == []
        assert second.profiles.profiles == []


class TestCascade:
    def test_account_removal_reaches_profiles(self, engine):
        engine.profiles.set_profiles([
            make_profile("p1", default_accounts={GITHUB: "A", GITLAB: "G"}),
            make_profile("p2", default_accounts={GITHUB: "A"}),
        ])
        engine.accounts.set_accounts([make_account("A"), make_account("G", GITLAB)])
        engine.accounts.assign_account_to_repository("/r", "A")
        engine.accounts.remove_account("A")
        assert engine.profiles.profile_by_id("p1").default_accounts == {GITLAB: "G"}
        assert engine.profiles.profile_by_id("p2").default_accounts == {}
        assert engine.accounts.repository_assignments == {}


class TestPersistence:
    def test_save_then_load_into_fresh_engine(self, engine, config, secret_store):
        engine.accounts.add_account(make_account("a", is_default=True))
        engine.accounts.assign_account_to_repository("/r", "a")
        engine.profiles.add_profile(
            make_profile("p", is_default=True, default_accounts={GITHUB: "a"}),
        )
        engine.profiles.assign_profile_to_repository("/r", "p")
        engine.save()

        fresh = IdentityEngine.from_config(config, secret_store=secret_store)
        fresh.load()
        assert [a.id for a in fresh.accounts.accounts] == ["a"]
        assert fresh.accounts.repository_assignments == {"/r": "a"}
        assert fresh.profiles.repository_assignments == {"/r": "p"}
        assert fresh.profiles.active_profile.id == "p"

    def test_load_without_files(self, engine):
        engine.load()
        assert engine.accounts.accounts == []
        assert engine.profiles.active_profile is None
        assert engine.accounts.is_loading is False


class TestCheckedMutations:
    def test_assign_unknown_account_raises(self, engine):
        with pytest.raises(StoreError, match="Unknown account"):
            engine.assign_account("/r", "missing")
        assert engine.accounts.repository_assignments == {}

    def test_assign_unknown_profile_raises(self, engine):
        with pytest.raises(StoreError, match="Unknown profile"):
            engine.assign_profile("/r", "missing")

    def test_profile_default_account_type_must_match(self, engine):
        engine.profiles.add_profile(make_profile("p"))
        engine.accounts.add_account(make_account("g", GITLAB))
        with pytest.raises(StoreError, match="gitlab"):
            engine.set_profile_default_account("p", GITHUB, "g")
        engine.set_profile_default_account("p", GITLAB, "g")
        assert engine.profiles.profile_by_id("p").default_accounts == {GITLAB: "g"}

    def test_clear_profile_default_account(self, engine):
        engine.profiles.add_profile(make_profile("p", default_accounts={GITHUB: "a"}))
        engine.set_profile_default_account("p", GITHUB, None)
        assert engine.profiles.profile_by_id("p").default_accounts == {}


class TestQueries:
    def test_priority_resolution_scenario(self, engine):
        engine.accounts.add_account(make_account("A"))
        engine.accounts.add_account(
            make_account("B", patterns=("github.com/acme/*",), is_default=True),
        )
        engine.accounts.assign_account_to_repository("/repo", "A")
        best = engine.best_account("/repo", "https://github.com/acme/api.git", GITHUB)
        assert best.id == "A"

    def test_active_profile_is_used_by_default(self, engine):
        profile = make_profile("p", is_default=True, default_accounts={GITHUB: "b"})
        engine.profiles.add_profile(profile)
        engine.profiles.set_active_profile(profile)
        engine.accounts.set_accounts([make_account("a"), make_account("b")])
        remotes = [Remote("origin", "git@github.com:me/x.git")]
        assert engine.relevant_account(remotes).id == "b"
        assert engine.preferred_account(GITHUB).id == "b"
        assert engine.profile_assignment_source("/repo", remotes) == AssignmentSource.DEFAULT

    def test_profile_for_repository(self, engine):
        engine.profiles.set_profiles([
            make_profile("home", is_default=True),
            make_profile("work", patterns=("github.com/acme",)),
        ])
        remotes = [Remote("origin", "https://github.com/acme/api")]
        assert engine.profile_for_repository("/repo", remotes).id == "work"
