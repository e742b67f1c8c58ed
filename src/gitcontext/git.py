"""Thin ``git`` subprocess adapter.

Reads remotes and the repository-local identity, and writes a profile's
identity into the repository's local config.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from gitcontext.exceptions import GitError
from gitcontext.models import Profile, Remote

logger = logging.getLogger(__name__)

_GIT_TIMEOUT = 30

# `git config --get` exits 1 for a missing key; `--unset` exits 5.
_CONFIG_KEY_MISSING = 1
_UNSET_KEY_MISSING = 5


@dataclass(frozen=True)
class GitIdentity:
    name: str | None = None
    email: str | None = None
    signing_key: str | None = None


def _run_git(
    repo: Path | str, *args: str, ok_codes: tuple[int, ...] = (0,),
) -> subprocess.CompletedProcess:
    try:
        result = subprocess.run(
            ["git", "-C", str(repo), *args],
            capture_output=True,
            text=True,
            timeout=_GIT_TIMEOUT,
        )
    except FileNotFoundError:
        raise GitError("git is not installed. Install git to inspect repositories.")
    except subprocess.TimeoutExpired:
        raise GitError(f"git {' '.join(args)} timed out ({_GIT_TIMEOUT}s).")
    if result.returncode not in ok_codes:
        raise GitError(
            f"git {' '.join(args)} failed in {repo}: {result.stderr.strip()}"
        )
    return result


def parse_remotes(output: str) -> list[Remote]:
    """Parse ``git remote -v`` output into remotes, keeping fetch URLs only."""
    remotes: list[Remote] = []
    seen: set[str] = set()
    for line in output.splitlines():
        parts = line.split()
        if len(parts) < 2:
            continue
        name, url = parts[0], parts[1]
        kind = parts[2] if len(parts) > 2 else "(fetch)"
        if kind != "(fetch)" or name in seen:
            continue
        seen.add(name)
        remotes.append(Remote(name=name, url=url))
    return remotes


def list_remotes(repo: Path | str) -> list[Remote]:
    return parse_remotes(_run_git(repo, "remote", "-v").stdout)


def _get_local_config(repo: Path | str, key: str) -> str | None:
    result = _run_git(
        repo, "config", "--local", "--get", key,
        ok_codes=(0, _CONFIG_KEY_MISSING),
    )
    value = result.stdout.strip()
    return value or None


def current_identity(repo: Path | str) -> GitIdentity:
    """The identity configured locally in *repo* (global config ignored)."""
    return GitIdentity(
        name=_get_local_config(repo, "user.name"),
        email=_get_local_config(repo, "user.email"),
        signing_key=_get_local_config(repo, "user.signingkey"),
    )


def apply_profile(repo: Path | str, profile: Profile) -> None:
    """Write the profile's identity into *repo*'s local git config.

    A profile without a signing key removes any local ``user.signingkey``.
    """
    _run_git(repo, "config", "--local", "user.name", profile.git_name)
    _run_git(repo, "config", "--local", "user.email", profile.git_email)
    if profile.signing_key:
        _run_git(repo, "config", "--local", "user.signingkey", profile.signing_key)
    else:
        _run_git(
            repo, "config", "--local", "--unset", "user.signingkey",
            ok_codes=(0, _UNSET_KEY_MISSING),
        )
    logger.info("Applied profile %s to %s", profile.id, repo)
