"""Domain models for integration accounts and identity profiles.

Entities are frozen dataclasses. Stores never mutate them in place; an
update produces a new value via ``dataclasses.replace``. Serialization
uses the camelCase document shape shared with the persistence layer.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import ClassVar
from urllib.parse import urlparse

from gitcontext.matching import any_pattern_matches

logger = logging.getLogger(__name__)


class IntegrationType(StrEnum):
    GITHUB = "github"
    GITLAB = "gitlab"
    AZURE_DEVOPS = "azure-devops"
    BITBUCKET = "bitbucket"


class AssignmentSource(StrEnum):
    """Why the active profile applies to a repository."""

    MANUAL = "manual"
    URL_PATTERN = "url-pattern"
    DEFAULT = "default"
    NONE = "none"


class ConnectionStatus(StrEnum):
    UNKNOWN = "unknown"
    CHECKING = "checking"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


INTEGRATION_TYPE_NAMES: dict[IntegrationType, str] = {
    IntegrationType.GITHUB: "GitHub",
    IntegrationType.GITLAB: "GitLab",
    IntegrationType.AZURE_DEVOPS: "Azure DevOps",
    IntegrationType.BITBUCKET: "Bitbucket",
}

ACCOUNT_COLORS: tuple[str, ...] = (
    "#3b82f6",  # blue
    "#10b981",  # green
    "#f59e0b",  # amber
    "#ef4444",  # red
    "#8b5cf6",  # purple
    "#ec4899",  # pink
    "#06b6d4",  # cyan
    "#f97316",  # orange
)

PROFILE_COLORS = ACCOUNT_COLORS

_ASSIGNMENT_SOURCE_LABELS: dict[AssignmentSource, str] = {
    AssignmentSource.MANUAL: "Manually assigned",
    AssignmentSource.URL_PATTERN: "Matched by URL pattern",
    AssignmentSource.DEFAULT: "Default profile",
    AssignmentSource.NONE: "",
}


def parse_integration_type(value: object) -> IntegrationType:
    """Parse a provider name into an ``IntegrationType``.

    Raises ``ValueError`` for unknown providers.
    """
    text = str(value or "").strip().lower()
    try:
        return IntegrationType(text)
    except ValueError:
        known = ", ".join(t.value for t in IntegrationType)
        raise ValueError(
            f"Unknown integration type {value!r}. Expected one of: {known}"
        ) from None


# ---------------------------------------------------------------------------
# Provider configuration (tagged union keyed by integration type)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class GitHubConfig:
    integration_type: ClassVar[IntegrationType] = IntegrationType.GITHUB


@dataclass(frozen=True)
class GitLabConfig:
    instance_url: str = "https://gitlab.com"
    integration_type: ClassVar[IntegrationType] = IntegrationType.GITLAB


@dataclass(frozen=True)
class AzureDevOpsConfig:
    organization: str = ""
    integration_type: ClassVar[IntegrationType] = IntegrationType.AZURE_DEVOPS


@dataclass(frozen=True)
class BitbucketConfig:
    workspace: str = ""
    integration_type: ClassVar[IntegrationType] = IntegrationType.BITBUCKET


IntegrationConfig = GitHubConfig | GitLabConfig | AzureDevOpsConfig | BitbucketConfig


def default_config(integration_type: IntegrationType) -> IntegrationConfig:
    """Return the out-of-the-box provider config for one integration type."""
    if integration_type == IntegrationType.GITLAB:
        return GitLabConfig()
    if integration_type == IntegrationType.AZURE_DEVOPS:
        return AzureDevOpsConfig()
    if integration_type == IntegrationType.BITBUCKET:
        return BitbucketConfig()
    return GitHubConfig()


def config_to_dict(config: IntegrationConfig) -> dict:
    payload: dict = {"type": config.integration_type.value}
    if isinstance(config, GitLabConfig):
        payload["instanceUrl"] = config.instance_url
    elif isinstance(config, AzureDevOpsConfig):
        payload["organization"] = config.organization
    elif isinstance(config, BitbucketConfig):
        payload["workspace"] = config.workspace
    return payload


def config_from_dict(raw: object) -> IntegrationConfig:
    if not isinstance(raw, dict):
        raise ValueError(f"Invalid integration config: expected object, got {raw!r}")
    integration_type = parse_integration_type(raw.get("type"))
    if integration_type == IntegrationType.GITLAB:
        return GitLabConfig(
            instance_url=str(raw.get("instanceUrl", "https://gitlab.com")),
        )
    if integration_type == IntegrationType.AZURE_DEVOPS:
        return AzureDevOpsConfig(organization=str(raw.get("organization", "")))
    if integration_type == IntegrationType.BITBUCKET:
        return BitbucketConfig(workspace=str(raw.get("workspace", "")))
    return GitHubConfig()


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CachedUser:
    """Provider user info cached for display without API calls."""

    username: str
    display_name: str | None = None
    avatar_url: str | None = None
    email: str | None = None

    def to_dict(self) -> dict:
        return {
            "username": self.username,
            "displayName": self.display_name,
            "avatarUrl": self.avatar_url,
            "email": self.email,
        }

    @classmethod
    def from_dict(cls, data: dict) -> CachedUser:
        return cls(
            username=str(data.get("username", "")),
            display_name=data.get("displayName"),
            avatar_url=data.get("avatarUrl"),
            email=data.get("email"),
        )


@dataclass(frozen=True)
class IntegrationAccount:
    """One configured provider account, e.g. "Work GitHub"."""

    id: str
    name: str
    integration_type: IntegrationType
    config: IntegrationConfig
    url_patterns: tuple[str, ...] = ()
    is_default: bool = False
    color: str | None = None
    cached_user: CachedUser | None = None

    def matches_url(self, url: str) -> bool:
        return any_pattern_matches(url, self.url_patterns)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "integrationType": self.integration_type.value,
            "config": config_to_dict(self.config),
            "urlPatterns": list(self.url_patterns),
            "isDefault": self.is_default,
            "color": self.color,
            "cachedUser": self.cached_user.to_dict() if self.cached_user else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> IntegrationAccount:
        account_id = str(data.get("id", "")).strip()
        if not account_id:
            raise ValueError("Integration account is missing required 'id'.")
        integration_type = parse_integration_type(data.get("integrationType"))
        raw_config = data.get("config")
        config = (
            config_from_dict(raw_config)
            if raw_config is not None
            else default_config(integration_type)
        )
        if config.integration_type != integration_type:
            raise ValueError(
                f"Account {account_id!r} is {integration_type.value} but its "
                f"config is {config.integration_type.value}."
            )
        patterns = data.get("urlPatterns") or []
        if not isinstance(patterns, list):
            raise ValueError(
                f"Invalid urlPatterns for account {account_id!r}: expected list."
            )
        cached = data.get("cachedUser")
        return cls(
            id=account_id,
            name=str(data.get("name", "")),
            integration_type=integration_type,
            config=config,
            url_patterns=tuple(str(p) for p in patterns),
            is_default=bool(data.get("isDefault", False)),
            color=data.get("color"),
            cached_user=CachedUser.from_dict(cached) if isinstance(cached, dict) else None,
        )


@dataclass(frozen=True)
class Profile:
    """A git identity bundled with per-provider default account choices."""

    id: str
    name: str
    git_name: str = ""
    git_email: str = ""
    signing_key: str | None = None
    url_patterns: tuple[str, ...] = ()
    is_default: bool = False
    color: str = PROFILE_COLORS[0]
    default_accounts: Mapping[IntegrationType, str] = field(
        default_factory=dict, hash=False,
    )

    def __post_init__(self) -> None:
        # Read-only; store snapshots hand out this same object.
        object.__setattr__(
            self, "default_accounts", MappingProxyType(dict(self.default_accounts)),
        )

    def matches_url(self, url: str) -> bool:
        return any_pattern_matches(url, self.url_patterns)

    def default_account_id(self, integration_type: IntegrationType) -> str | None:
        return self.default_accounts.get(integration_type)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "gitName": self.git_name,
            "gitEmail": self.git_email,
            "signingKey": self.signing_key,
            "urlPatterns": list(self.url_patterns),
            "isDefault": self.is_default,
            "color": self.color,
            "defaultAccounts": {
                t.value: account_id
                for t, account_id in sorted(self.default_accounts.items())
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> Profile:
        profile_id = str(data.get("id", "")).strip()
        if not profile_id:
            raise ValueError("Profile is missing required 'id'.")
        patterns = data.get("urlPatterns") or []
        if not isinstance(patterns, list):
            raise ValueError(
                f"Invalid urlPatterns for profile {profile_id!r}: expected list."
            )
        raw_defaults = data.get("defaultAccounts") or {}
        if not isinstance(raw_defaults, dict):
            raise ValueError(
                f"Invalid defaultAccounts for profile {profile_id!r}: expected object."
            )
        default_accounts: dict[IntegrationType, str] = {}
        for key, account_id in raw_defaults.items():
            try:
                integration_type = parse_integration_type(key)
            except ValueError:
                logger.debug(
                    "Ignoring unknown defaultAccounts key %r on profile %s",
                    key, profile_id,
                )
                continue
            if account_id:
                default_accounts[integration_type] = str(account_id)
        return cls(
            id=profile_id,
            name=str(data.get("name", "")),
            git_name=str(data.get("gitName", "")),
            git_email=str(data.get("gitEmail", "")),
            signing_key=data.get("signingKey") or None,
            url_patterns=tuple(str(p) for p in patterns),
            is_default=bool(data.get("isDefault", False)),
            color=str(data.get("color") or PROFILE_COLORS[0]),
            default_accounts=default_accounts,
        )


@dataclass(frozen=True)
class Remote:
    """A named git remote."""

    name: str
    url: str


@dataclass(frozen=True)
class AccountConnectionStatus:
    status: ConnectionStatus = ConnectionStatus.UNKNOWN
    last_checked: float | None = None


# ---------------------------------------------------------------------------
# Factories and display helpers
# ---------------------------------------------------------------------------


def generate_id() -> str:
    return str(uuid.uuid4())


def new_account(
    name: str,
    integration_type: IntegrationType,
    *,
    config: IntegrationConfig | None = None,
    url_patterns: tuple[str, ...] | list[str] = (),
    is_default: bool = False,
    color: str | None = None,
) -> IntegrationAccount:
    """Build a new account with a freshly generated id."""
    return IntegrationAccount(
        id=generate_id(),
        name=name,
        integration_type=integration_type,
        config=config if config is not None else default_config(integration_type),
        url_patterns=tuple(url_patterns),
        is_default=is_default,
        color=color,
    )


def new_profile(
    name: str,
    git_name: str,
    git_email: str,
    *,
    signing_key: str | None = None,
    url_patterns: tuple[str, ...] | list[str] = (),
    is_default: bool = False,
    color: str = PROFILE_COLORS[0],
) -> Profile:
    """Build a new profile with a freshly generated id."""
    return Profile(
        id=generate_id(),
        name=name,
        git_name=git_name,
        git_email=git_email,
        signing_key=signing_key,
        url_patterns=tuple(url_patterns),
        is_default=is_default,
        color=color,
    )


def account_display_label(account: IntegrationAccount) -> str:
    """Account name plus the provider context that tells accounts apart."""
    parts = [account.name]
    config = account.config
    if isinstance(config, GitLabConfig) and config.instance_url:
        host = urlparse(config.instance_url).hostname
        if host and host != "gitlab.com":
            parts.append(f"({host})")
    elif isinstance(config, AzureDevOpsConfig) and config.organization:
        parts.append(f"({config.organization})")
    elif isinstance(config, BitbucketConfig) and config.workspace:
        parts.append(f"({config.workspace})")
    return " ".join(parts)


def assignment_source_label(source: AssignmentSource) -> str:
    return _ASSIGNMENT_SOURCE_LABELS.get(source, "")
