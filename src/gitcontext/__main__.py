"""CLI entry point for gitcontext."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

import click

from gitcontext import __version__
from gitcontext.config import LOG_LEVELS, Config, ConfigError, load_config
from gitcontext.credentials import derive_credential_key
from gitcontext.engine import IdentityEngine
from gitcontext.exceptions import GitContextError
from gitcontext.git import apply_profile, list_remotes
from gitcontext.migration import migrate_legacy_tokens
from gitcontext.models import (
    AzureDevOpsConfig,
    BitbucketConfig,
    GitLabConfig,
    IntegrationAccount,
    IntegrationType,
    Profile,
    Remote,
    account_display_label,
    assignment_source_label,
    default_config,
    new_account,
    new_profile,
)
from gitcontext.resolution import detect_provider

_TYPE_CHOICE = click.Choice([t.value for t in IntegrationType], case_sensitive=False)


def _fail(message: str) -> None:
    click.echo(message, err=True)
    sys.exit(1)


def _engine(ctx: click.Context) -> IdentityEngine:
    """Build (once per invocation) and load the engine from CLI context."""
    engine = ctx.obj.get("engine")
    if engine is None:
        engine = IdentityEngine.from_config(
            ctx.obj["config"], secret_store=ctx.obj.get("secret_store"),
        )
        try:
            engine.load()
        except GitContextError as e:
            _fail(f"Failed to load state: {e}")
        ctx.obj["engine"] = engine
    return engine


def _save(engine: IdentityEngine) -> None:
    try:
        engine.save()
    except GitContextError as e:
        _fail(f"Failed to save state: {e}")


def _repo_key(repo: str) -> str:
    return str(Path(repo).expanduser().resolve())


def _primary_remote(remotes: list[Remote]) -> Remote | None:
    for remote in remotes:
        if remote.name == "origin":
            return remote
    return remotes[0] if remotes else None


def _account_payload(account: IntegrationAccount | None) -> dict | None:
    if account is None:
        return None
    payload = account.to_dict()
    payload["credentialKey"] = derive_credential_key(
        account.integration_type, account.id,
    )
    return payload


def _profile_payload(profile: Profile | None) -> dict | None:
    return profile.to_dict() if profile is not None else None


@click.group()
@click.version_option(version=__version__, prog_name="gitcontext")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to gitcontext.toml configuration file.",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Override [logging].level.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, log_level: str | None) -> None:
    """gitcontext: pick the right account and git identity per repository."""
    ctx.ensure_object(dict)
    if "config" not in ctx.obj:
        try:
            ctx.obj["config"] = load_config(config_path)
        except ConfigError as e:
            _fail(f"Configuration error: {e}")
    config: Config = ctx.obj["config"]
    logging.basicConfig(
        level=(log_level or config.logging.level).upper(),
        format="%(levelname)s %(name)s: %(message)s",
    )


# -- accounts ---------------------------------------------------------------

@cli.group()
def accounts() -> None:
    """Manage integration accounts."""


@accounts.command(name="list")
@click.option("--type", "type_name", type=_TYPE_CHOICE, default=None)
@click.option("--json", "as_json", is_flag=True, default=False, help="Emit JSON.")
@click.pass_context
def accounts_list(ctx: click.Context, type_name: str | None, as_json: bool) -> None:
    """List configured accounts."""
    engine = _engine(ctx)
    if type_name:
        items = engine.accounts.accounts_by_type(IntegrationType(type_name.lower()))
    else:
        items = engine.accounts.accounts

    if as_json:
        payload = {
            "accounts": [_account_payload(a) for a in items],
            "repositoryAssignments": engine.accounts.repository_assignments,
        }
        click.echo(json.dumps(payload, indent=2, sort_keys=True))
        return

    if not items:
        click.echo("No accounts configured.")
        return

    click.echo("Accounts:")
    for account in items:
        marker = "*" if account.is_default else " "
        click.echo(
            f" {marker} {account.id}  {account.integration_type.value:12} "
            f"{account_display_label(account)}"
        )
        for pattern in account.url_patterns:
            click.echo(f"      pattern: {pattern}")


@accounts.command(name="add")
@click.argument("name")
@click.option("--type", "type_name", type=_TYPE_CHOICE, required=True)
@click.option("--pattern", "patterns", multiple=True, help="URL glob pattern.")
@click.option("--default", "is_default", is_flag=True, default=False)
@click.option("--instance-url", default=None, help="GitLab instance URL.")
@click.option("--organization", default=None, help="Azure DevOps organization.")
@click.option("--workspace", default=None, help="Bitbucket workspace.")
@click.option("--color", default=None)
@click.pass_context
def accounts_add(
    ctx: click.Context,
    name: str,
    type_name: str,
    patterns: tuple[str, ...],
    is_default: bool,
    instance_url: str | None,
    organization: str | None,
    workspace: str | None,
    color: str | None,
) -> None:
    """Add an account and print its id."""
    engine = _engine(ctx)
    integration_type = IntegrationType(type_name.lower())
    config = default_config(integration_type)
    if integration_type == IntegrationType.GITLAB and instance_url:
        config = GitLabConfig(instance_url=instance_url)
    elif integration_type == IntegrationType.AZURE_DEVOPS and organization:
        config = AzureDevOpsConfig(organization=organization)
    elif integration_type == IntegrationType.BITBUCKET and workspace:
        config = BitbucketConfig(workspace=workspace)

    account = new_account(
        name,
        integration_type,
        config=config,
        url_patterns=patterns,
        is_default=is_default,
        color=color,
    )
    engine.accounts.add_account(account)
    _save(engine)
    click.echo(account.id)


@accounts.command(name="remove")
@click.argument("account_id")
@click.option(
    "--keep-token", is_flag=True, default=False,
    help="Leave the account's token in the secret store.",
)
@click.pass_context
def accounts_remove(ctx: click.Context, account_id: str, keep_token: bool) -> None:
    """Remove an account, its assignments and profile references."""
    engine = _engine(ctx)
    try:
        account = engine.require_account(account_id)
    except GitContextError as e:
        _fail(str(e))
    engine.accounts.remove_account(account_id)
    _save(engine)
    if not keep_token:
        result = asyncio.run(
            engine.credentials.delete_token(account.integration_type, account.id)
        )
        if not result.success:
            click.echo(f"Warning: token not removed: {result.error}", err=True)
    click.echo(f"Removed account {account_id}")


@accounts.command(name="set-default")
@click.argument("account_id")
@click.pass_context
def accounts_set_default(ctx: click.Context, account_id: str) -> None:
    """Make an account the default for its provider."""
    engine = _engine(ctx)
    try:
        account = engine.require_account(account_id)
    except GitContextError as e:
        _fail(str(e))
    engine.accounts.set_default_account(account.integration_type, account.id)
    _save(engine)
    click.echo(f"Default {account.integration_type.value} account: {account.name}")


@accounts.command(name="assign")
@click.argument("repo")
@click.argument("account_id")
@click.pass_context
def accounts_assign(ctx: click.Context, repo: str, account_id: str) -> None:
    """Pin an account to a repository."""
    engine = _engine(ctx)
    try:
        account = engine.assign_account(_repo_key(repo), account_id)
    except GitContextError as e:
        _fail(str(e))
    _save(engine)
    click.echo(f"Assigned {account.name} to {_repo_key(repo)}")


@accounts.command(name="unassign")
@click.argument("repo")
@click.pass_context
def accounts_unassign(ctx: click.Context, repo: str) -> None:
    engine = _engine(ctx)
    engine.accounts.unassign_account_from_repository(_repo_key(repo))
    _save(engine)
    click.echo(f"Unassigned account from {_repo_key(repo)}")


# -- profiles ---------------------------------------------------------------

@cli.group()
def profiles() -> None:
    """Manage git identity profiles."""


@profiles.command(name="list")
@click.option("--json", "as_json", is_flag=True, default=False, help="Emit JSON.")
@click.pass_context
def profiles_list(ctx: click.Context, as_json: bool) -> None:
    """List identity profiles."""
    engine = _engine(ctx)
    items = engine.profiles.profiles

    if as_json:
        payload = {
            "profiles": [p.to_dict() for p in items],
            "repositoryAssignments": engine.profiles.repository_assignments,
        }
        click.echo(json.dumps(payload, indent=2, sort_keys=True))
        return

    if not items:
        click.echo("No profiles configured.")
        return

    click.echo("Profiles:")
    for profile in items:
        marker = "*" if profile.is_default else " "
        click.echo(
            f" {marker} {profile.id}  {profile.name} "
            f"<{profile.git_name} {profile.git_email}>"
        )
        for integration_type, account_id in sorted(profile.default_accounts.items()):
            click.echo(f"      {integration_type.value}: {account_id}")


@profiles.command(name="add")
@click.argument("name")
@click.option("--git-name", required=True)
@click.option("--git-email", required=True)
@click.option("--signing-key", default=None)
@click.option("--pattern", "patterns", multiple=True, help="URL glob pattern.")
@click.option("--default", "is_default", is_flag=True, default=False)
@click.pass_context
def profiles_add(
    ctx: click.Context,
    name: str,
    git_name: str,
    git_email: str,
    signing_key: str | None,
    patterns: tuple[str, ...],
    is_default: bool,
) -> None:
    """Add a profile and print its id."""
    engine = _engine(ctx)
    profile = new_profile(
        name,
        git_name,
        git_email,
        signing_key=signing_key,
        url_patterns=patterns,
        is_default=is_default,
    )
    engine.profiles.add_profile(profile)
    _save(engine)
    click.echo(profile.id)


@profiles.command(name="remove")
@click.argument("profile_id")
@click.pass_context
def profiles_remove(ctx: click.Context, profile_id: str) -> None:
    engine = _engine(ctx)
    try:
        engine.require_profile(profile_id)
    except GitContextError as e:
        _fail(str(e))
    engine.profiles.remove_profile(profile_id)
    _save(engine)
    click.echo(f"Removed profile {profile_id}")


@profiles.command(name="assign")
@click.argument("repo")
@click.argument("profile_id")
@click.option(
    "--apply", "apply_identity", is_flag=True, default=False,
    help="Also write the identity into the repository's git config.",
)
@click.pass_context
def profiles_assign(
    ctx: click.Context, repo: str, profile_id: str, apply_identity: bool,
) -> None:
    """Pin a profile to a repository."""
    engine = _engine(ctx)
    try:
        profile = engine.assign_profile(_repo_key(repo), profile_id)
        _save(engine)
        if apply_identity:
            apply_profile(_repo_key(repo), profile)
    except GitContextError as e:
        _fail(str(e))
    click.echo(f"Assigned {profile.name} to {_repo_key(repo)}")


@profiles.command(name="unassign")
@click.argument("repo")
@click.pass_context
def profiles_unassign(ctx: click.Context, repo: str) -> None:
    engine = _engine(ctx)
    engine.profiles.unassign_profile_from_repository(_repo_key(repo))
    _save(engine)
    click.echo(f"Unassigned profile from {_repo_key(repo)}")


@profiles.command(name="set-account")
@click.argument("profile_id")
@click.argument("type_name", type=_TYPE_CHOICE)
@click.argument("account_id", required=False)
@click.pass_context
def profiles_set_account(
    ctx: click.Context, profile_id: str, type_name: str, account_id: str | None,
) -> None:
    """Set (or clear, when ACCOUNT_ID is omitted) a profile's default account."""
    engine = _engine(ctx)
    integration_type = IntegrationType(type_name.lower())
    try:
        engine.set_profile_default_account(profile_id, integration_type, account_id)
    except GitContextError as e:
        _fail(str(e))
    _save(engine)
    if account_id:
        click.echo(f"Profile {profile_id} uses {account_id} for {integration_type.value}")
    else:
        click.echo(f"Cleared {integration_type.value} account for profile {profile_id}")


# -- resolution -------------------------------------------------------------

@cli.command()
@click.argument("repo", type=click.Path(exists=True, file_okay=False))
@click.option("--type", "type_name", type=_TYPE_CHOICE, default=None)
@click.option("--json", "as_json", is_flag=True, default=False, help="Emit JSON.")
@click.pass_context
def resolve(ctx: click.Context, repo: str, type_name: str | None, as_json: bool) -> None:
    """Show which profile and account apply to REPO."""
    engine = _engine(ctx)
    repo_path = _repo_key(repo)
    try:
        remotes = list_remotes(repo_path)
    except GitContextError as e:
        _fail(str(e))

    detected = detect_provider(remotes)
    integration_type = IntegrationType(type_name.lower()) if type_name else detected
    primary = _primary_remote(remotes)
    profile = engine.profile_for_repository(repo_path, remotes)
    source = engine.profile_assignment_source(repo_path, remotes, profile)
    account = (
        engine.best_account(
            repo_path, primary.url if primary else None, integration_type,
        )
        if integration_type is not None
        else None
    )
    relevant = engine.relevant_account(remotes, profile)

    if as_json:
        payload = {
            "repository": repo_path,
            "remotes": [{"name": r.name, "url": r.url} for r in remotes],
            "detectedProvider": detected.value if detected else None,
            "integrationType": integration_type.value if integration_type else None,
            "profile": _profile_payload(profile),
            "assignmentSource": source.value,
            "account": _account_payload(account),
            "relevantAccount": _account_payload(relevant),
        }
        click.echo(json.dumps(payload, indent=2, sort_keys=True))
        return

    click.echo(f"Repository: {repo_path}")
    click.echo(f"Provider:   {detected.value if detected else 'unknown'}")
    if profile is not None:
        label = assignment_source_label(source)
        suffix = f" ({label})" if label else ""
        click.echo(f"Profile:    {profile.name} <{profile.git_email}>{suffix}")
    else:
        click.echo("Profile:    none (add one with `gitcontext profiles add`)")
    if account is not None:
        click.echo(f"Account:    {account_display_label(account)}")
    elif integration_type is not None:
        click.echo(
            f"Account:    none (add one with "
            f"`gitcontext accounts add NAME --type {integration_type.value}`)"
        )
    else:
        click.echo("Account:    none")


# -- credentials ------------------------------------------------------------

@cli.group()
def credentials() -> None:
    """Per-account token storage."""


@credentials.command(name="key")
@click.argument("type_name", type=_TYPE_CHOICE)
@click.argument("account_id")
def credentials_key(type_name: str, account_id: str) -> None:
    """Print the secret-store key for an account."""
    click.echo(derive_credential_key(IntegrationType(type_name.lower()), account_id))


@credentials.command(name="set")
@click.argument("account_id")
@click.option(
    "--token", prompt=True, hide_input=True,
    help="Token value (prompted when omitted).",
)
@click.pass_context
def credentials_set(ctx: click.Context, account_id: str, token: str) -> None:
    """Store a token for an account."""
    engine = _engine(ctx)
    try:
        account = engine.require_account(account_id)
    except GitContextError as e:
        _fail(str(e))
    result = asyncio.run(
        engine.credentials.set_token(account.integration_type, account.id, token)
    )
    if not result.success:
        _fail(f"Failed to store token: {result.error}")
    click.echo(f"Stored token for {account.name}")


@credentials.command(name="check")
@click.argument("account_id")
@click.pass_context
def credentials_check(ctx: click.Context, account_id: str) -> None:
    """Report whether an account has a stored token."""
    engine = _engine(ctx)
    try:
        account = engine.require_account(account_id)
    except GitContextError as e:
        _fail(str(e))
    result = asyncio.run(
        engine.credentials.get_token(account.integration_type, account.id)
    )
    if not result.success:
        _fail(f"Failed to read token: {result.error}")
    if result.value:
        click.echo(f"Token present for {account.name}")
    else:
        click.echo(f"No token stored for {account.name}")
        sys.exit(1)


@cli.command(name="migrate-tokens")
@click.pass_context
def migrate_tokens(ctx: click.Context) -> None:
    """Move single-provider legacy tokens onto new accounts."""
    engine = _engine(ctx)
    try:
        result = asyncio.run(migrate_legacy_tokens(
            engine.accounts, engine.credentials, persist=engine.save,
        ))
    except GitContextError as e:
        _fail(f"Failed to save state: {e}")
    for account in result.created_accounts:
        click.echo(f"Created {account.name} ({account.id})")
    for error in result.errors:
        click.echo(f"Migration error: {error}", err=True)
    click.echo(f"Migrated {result.migrated_count} token(s).")
    if result.errors:
        sys.exit(1)


def main() -> None:
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
