"""Resolution of accounts and profiles for a repository.

Every function here is a pure query over in-memory values. Nothing raises
for an unmatched lookup; callers get ``None`` (or ``AssignmentSource.NONE``)
and are expected to offer a "configure" affordance instead.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from gitcontext.matching import any_pattern_matches
from gitcontext.models import (
    AssignmentSource,
    IntegrationAccount,
    IntegrationType,
    Profile,
    Remote,
)

# Checked per remote, in order; the first hit wins.
_PROVIDER_HOST_MARKERS: tuple[tuple[IntegrationType, tuple[str, ...]], ...] = (
    (IntegrationType.GITHUB, ("github.com",)),
    (IntegrationType.GITLAB, ("gitlab.com", "gitlab")),
    (IntegrationType.AZURE_DEVOPS, ("dev.azure.com", "visualstudio.com")),
    (IntegrationType.BITBUCKET, ("bitbucket.org", "bitbucket")),
)


def find_best_account_for_repository(
    repo_path: str,
    remote_url: str | None,
    integration_type: IntegrationType,
    accounts: Sequence[IntegrationAccount],
    assignments: Mapping[str, str],
) -> IntegrationAccount | None:
    """Pick the account for one repository and provider.

    Priority, first hit wins:

    1. the account explicitly assigned to *repo_path*, if it is of
       *integration_type*;
    2. the first account of the type (store order) with a URL pattern
       matching *remote_url*;
    3. the type's default account.
    """
    candidates = [a for a in accounts if a.integration_type == integration_type]

    assigned_id = assignments.get(repo_path)
    if assigned_id:
        for account in candidates:
            if account.id == assigned_id:
                return account

    if remote_url:
        for account in candidates:
            if account.matches_url(remote_url):
                return account

    return next((a for a in candidates if a.is_default), None)


def get_profile_assignment_source(
    repo_path: str | None,
    remotes: Iterable[Remote],
    active_profile: Profile | None,
    assignments: Mapping[str, str],
) -> AssignmentSource:
    """Explain why *active_profile* applies to a repository.

    Informational only; this does not select a profile.
    """
    if not repo_path or active_profile is None:
        return AssignmentSource.NONE
    if assignments.get(repo_path) == active_profile.id:
        return AssignmentSource.MANUAL
    if active_profile.url_patterns and any(
        any_pattern_matches(remote.url, active_profile.url_patterns)
        for remote in remotes
    ):
        return AssignmentSource.URL_PATTERN
    if active_profile.is_default:
        return AssignmentSource.DEFAULT
    return AssignmentSource.NONE


def detect_provider(remotes: Iterable[Remote]) -> IntegrationType | None:
    """Guess the hosting provider from remote URLs, in remote order."""
    for remote in remotes:
        url = (remote.url or "").lower()
        for integration_type, markers in _PROVIDER_HOST_MARKERS:
            if any(marker in url for marker in markers):
                return integration_type
    return None


def get_relevant_account(
    profile: Profile | None,
    accounts: Sequence[IntegrationAccount],
    detected_type: IntegrationType | None,
) -> IntegrationAccount | None:
    """The account to surface for a detected provider.

    Prefers the profile's default account for that type, then any account
    of the type in store order. The provider-wide default is not consulted.
    """
    if detected_type is None:
        return None
    preferred_id = profile.default_account_id(detected_type) if profile else None
    if preferred_id:
        for account in accounts:
            if account.id == preferred_id and account.integration_type == detected_type:
                return account
    return next((a for a in accounts if a.integration_type == detected_type), None)


def profile_preferred_account(
    profile: Profile | None,
    accounts: Sequence[IntegrationAccount],
    integration_type: IntegrationType,
) -> IntegrationAccount | None:
    """Profile default, else the type's default account, else its first account."""
    candidates = [a for a in accounts if a.integration_type == integration_type]
    preferred_id = profile.default_account_id(integration_type) if profile else None
    if preferred_id:
        for account in candidates:
            if account.id == preferred_id:
                return account
    return next((a for a in candidates if a.is_default), None) or next(
        iter(candidates), None,
    )


def detect_profile_for_repository(
    repo_path: str,
    remotes: Iterable[Remote],
    profiles: Sequence[Profile],
    assignments: Mapping[str, str],
) -> Profile | None:
    """Select the profile for a repository.

    Manual assignment first, then the first profile whose URL patterns
    match any remote, then the default profile.
    """
    assigned_id = assignments.get(repo_path)
    if assigned_id:
        for profile in profiles:
            if profile.id == assigned_id:
                return profile

    urls = [remote.url for remote in remotes if remote.url]
    for profile in profiles:
        if any(profile.matches_url(url) for url in urls):
            return profile

    return next((p for p in profiles if p.is_default), None)
