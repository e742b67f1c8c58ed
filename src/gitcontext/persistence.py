"""JSON documents for accounts and profiles.

Two files, each loaded once at startup and rewritten after mutations:

- accounts: ``{"version": 1, "accounts": [...], "repositoryAssignments": {...}}``
- profiles: ``{"version": 3, "profiles": [...], "repositoryAssignments": {...}}``

Writes go through a temp file plus ``os.replace`` under an advisory lock
next to the target, so a crash never leaves a truncated document.
"""

from __future__ import annotations

import json
import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from gitcontext.exceptions import PersistenceError
from gitcontext.models import IntegrationAccount, Profile

logger = logging.getLogger(__name__)

ACCOUNTS_DOCUMENT_VERSION = 1
PROFILES_DOCUMENT_VERSION = 3


@dataclass(frozen=True)
class AccountsDocument:
    version: int = ACCOUNTS_DOCUMENT_VERSION
    accounts: tuple[IntegrationAccount, ...] = ()
    repository_assignments: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "accounts": [a.to_dict() for a in self.accounts],
            "repositoryAssignments": dict(sorted(self.repository_assignments.items())),
        }


@dataclass(frozen=True)
class ProfilesDocument:
    version: int = PROFILES_DOCUMENT_VERSION
    profiles: tuple[Profile, ...] = ()
    repository_assignments: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "profiles": [p.to_dict() for p in self.profiles],
            "repositoryAssignments": dict(sorted(self.repository_assignments.items())),
        }


def _atomic_write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.tmp-{os.getpid()}")
    try:
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


@contextmanager
def _file_lock(path: Path):
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a+", encoding="utf-8") as handle:
        try:
            import fcntl  # POSIX only
        except ImportError:
            fcntl = None
        if fcntl is not None:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            if fcntl is not None:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


def _lock_path(path: Path) -> Path:
    return path.with_name(f".{path.name}.lock")


def _read_json(path: Path) -> dict | None:
    if not path.exists():
        return None
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise PersistenceError(f"Invalid JSON in {path}: {e}") from e
    except OSError as e:
        raise PersistenceError(f"Cannot read {path}: {e}") from e
    if not isinstance(raw, dict):
        raise PersistenceError(f"Expected a JSON object in {path}.")
    return raw


def _check_version(raw: dict, path: Path, supported: int) -> int:
    version = raw.get("version", supported)
    if not isinstance(version, int) or isinstance(version, bool):
        raise PersistenceError(f"Invalid version {version!r} in {path}.")
    if version > supported:
        raise PersistenceError(
            f"{path} has version {version}; this release reads up to {supported}."
        )
    return version


def _read_assignments(raw: dict, path: Path) -> dict[str, str]:
    assignments = raw.get("repositoryAssignments") or {}
    if not isinstance(assignments, dict):
        raise PersistenceError(f"Invalid repositoryAssignments in {path}.")
    return {str(k): str(v) for k, v in assignments.items() if v}


def _read_list(raw: dict, key: str, path: Path) -> list:
    items = raw.get(key) or []
    if not isinstance(items, list):
        raise PersistenceError(f"Invalid {key} in {path}: expected a list.")
    return items


def load_accounts_document(path: Path) -> AccountsDocument:
    """Load the accounts file. A missing file yields an empty document."""
    raw = _read_json(path)
    if raw is None:
        return AccountsDocument()
    version = _check_version(raw, path, ACCOUNTS_DOCUMENT_VERSION)
    try:
        accounts = tuple(
            IntegrationAccount.from_dict(item)
            for item in _read_list(raw, "accounts", path)
        )
    except (ValueError, TypeError, AttributeError) as e:
        raise PersistenceError(f"Invalid account entry in {path}: {e}") from e
    logger.debug("Loaded %d accounts from %s", len(accounts), path)
    return AccountsDocument(
        version=version,
        accounts=accounts,
        repository_assignments=_read_assignments(raw, path),
    )


def load_profiles_document(path: Path) -> ProfilesDocument:
    """Load the profiles file. A missing file yields an empty document."""
    raw = _read_json(path)
    if raw is None:
        return ProfilesDocument()
    version = _check_version(raw, path, PROFILES_DOCUMENT_VERSION)
    try:
        profiles = tuple(
            Profile.from_dict(item) for item in _read_list(raw, "profiles", path)
        )
    except (ValueError, TypeError, AttributeError) as e:
        raise PersistenceError(f"Invalid profile entry in {path}: {e}") from e
    logger.debug("Loaded %d profiles from %s", len(profiles), path)
    return ProfilesDocument(
        version=version,
        profiles=profiles,
        repository_assignments=_read_assignments(raw, path),
    )


def _write_document(path: Path, payload: dict) -> None:
    content = json.dumps(payload, indent=2) + "\n"
    try:
        with _file_lock(_lock_path(path)):
            _atomic_write_text(path, content)
    except OSError as e:
        raise PersistenceError(f"Cannot write {path}: {e}") from e


def save_accounts_document(path: Path, document: AccountsDocument) -> None:
    """Write the accounts file at the current document version."""
    payload = document.to_dict()
    payload["version"] = ACCOUNTS_DOCUMENT_VERSION
    _write_document(path, payload)
    logger.debug("Saved %d accounts to %s", len(document.accounts), path)


def save_profiles_document(path: Path, document: ProfilesDocument) -> None:
    """Write the profiles file at the current document version."""
    payload = document.to_dict()
    payload["version"] = PROFILES_DOCUMENT_VERSION
    _write_document(path, payload)
    logger.debug("Saved %d profiles to %s", len(document.profiles), path)
