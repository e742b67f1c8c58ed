"""Remote URL glob matching.

URLs and patterns are normalized into the same canonical form
(``host/owner/repo``) so HTTPS, SSH and scp-style remotes compare equal.
Patterns support ``*`` (within one path segment) and ``**`` (across
segments). A pattern without wildcards matches the URL itself and any
repository beneath it, so ``github.com/mycompany`` covers
``github.com/mycompany/repo``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import lru_cache

_URL_PREFIXES = ("https://", "http://", "git@", "ssh://")
_GIT_SUFFIX = ".git"
_GLOBSTAR = "**"


def _normalize_once(value: str) -> str:
    value = value.strip()
    for prefix in _URL_PREFIXES:
        if value.startswith(prefix):
            value = value[len(prefix):]
            break
    value = value.rstrip("/")
    if value.endswith(_GIT_SUFFIX):
        value = value[: -len(_GIT_SUFFIX)]
    return value.replace(":", "/", 1)


def normalize_url(url: str) -> str:
    """Canonicalize a remote URL or pattern for comparison.

    Lower-cases, strips a leading ``https://``/``http://``/``git@``/``ssh://``,
    a trailing ``/`` and ``.git``, and turns the first ``:`` into ``/``.
    The pass repeats until the value is stable, so compound forms such as
    ``ssh://git@host:org/repo.git`` reduce fully and the result is idempotent.
    """
    value = str(url or "").strip().lower()
    while True:
        reduced = _normalize_once(value)
        if reduced == value:
            return value
        value = reduced


def _translate_segment(text: str) -> str:
    return "[^/]*".join(re.escape(part) for part in text.split("*"))


@lru_cache(maxsize=512)
def pattern_to_regex(pattern: str) -> re.Pattern[str]:
    """Compile a glob pattern into a regex over normalized URLs.

    The regex is meant for ``fullmatch``. Wildcard-free patterns get an
    optional ``/...`` tail so they also match repositories beneath them.
    """
    normalized = normalize_url(pattern)
    body = ".*".join(_translate_segment(part) for part in normalized.split(_GLOBSTAR))
    if "*" not in normalized:
        body += "(?:/.*)?"
    return re.compile(body)


def url_matches_pattern(url: str, pattern: str) -> bool:
    """Return True when *url* matches the glob *pattern*."""
    if url is None or pattern is None:
        return False
    return pattern_to_regex(pattern).fullmatch(normalize_url(url)) is not None


def first_matching_pattern(url: str, patterns: Iterable[str]) -> str | None:
    """Return the first pattern (in order) that matches *url*."""
    if not url:
        return None
    for pattern in patterns:
        if url_matches_pattern(url, pattern):
            return pattern
    return None


def any_pattern_matches(url: str, patterns: Iterable[str]) -> bool:
    return first_matching_pattern(url, patterns) is not None
