"""Typer CLI for quotasync: render, publish, settings and profile commands."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Annotated, Any, NoReturn

import typer
from pydantic import ValidationError
from result import Err

from quotasync.config import Config
from quotasync.data import codec
from quotasync.models.profiles import ProfileCredentials
from quotasync.models.render import DisplayFamily
from quotasync.models.settings import Settings
from quotasync.models.snapshot import UsageSnapshot
from quotasync.services.container import StoreContainer

app = typer.Typer(
    name="quotasync",
    help="Share AI-assistant usage quota snapshots between a poller and display processes.",
    no_args_is_help=True,
)
settings_app = typer.Typer(help="Show or change display settings.", no_args_is_help=True)
profiles_app = typer.Typer(help="Manage tracked account profiles.", no_args_is_help=True)
app.add_typer(settings_app, name="settings")
app.add_typer(profiles_app, name="profiles")

ProfileOption = Annotated[
    str | None,
    typer.Option("--profile", help="Profile id (defaults to the active profile)"),
]


@app.callback()
def main(
    ctx: typer.Context,
    shared_dir: Annotated[
        Path | None,
        typer.Option("--shared-dir", help="Directory shared by every cooperating process"),
    ] = None,
    state_dir: Annotated[
        Path | None,
        typer.Option("--state-dir", help="Directory holding the key-value database"),
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    """Configure the stores used by every command."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    defaults = Config()
    state = state_dir or defaults.state_dir
    ctx.obj = Config(
        state_dir=state,
        shared_dir=shared_dir or (state / "shared" if state_dir else defaults.shared_dir),
    )


def _config(ctx: typer.Context) -> Config:
    config = ctx.obj
    if not isinstance(config, Config):
        config = Config()
    return config


async def _resolve_profile(container: StoreContainer, profile_id: str | None) -> str | None:
    if profile_id:
        return profile_id
    active = await container.profile_store.get_active()
    return active.id if active is not None else None


def _fail(message: str) -> NoReturn:
    typer.echo(message, err=True)
    raise typer.Exit(code=1)


# --- display side -------------------------------------------------------------


@app.command()
def render(
    ctx: typer.Context,
    profile: ProfileOption = None,
    family: Annotated[
        DisplayFamily, typer.Option("--family", help="Display size to render for")
    ] = DisplayFamily.SMALL,
) -> None:
    """Render once, as a display process would, and print the timeline entry."""
    output = asyncio.run(_do_render(_config(ctx), profile, family))
    typer.echo(output)


async def _do_render(config: Config, profile_id: str | None, family: DisplayFamily) -> str:
    container = await StoreContainer.create(config)
    try:
        resolved = await _resolve_profile(container, profile_id)
        entry = await container.scheduler(family).invoke(resolved)
    finally:
        await container.close()
    return entry.model_dump_json(indent=2)


# --- writer side --------------------------------------------------------------


@app.command()
def publish(
    ctx: typer.Context,
    file: Annotated[Path, typer.Argument(help="Snapshot JSON in canonical or compat shape")],
    profile: ProfileOption = None,
) -> None:
    """Publish a snapshot file as the background process would."""
    try:
        data = file.read_bytes()
    except OSError as exc:
        _fail(f"Cannot read {file}: {exc}")
    decoded = codec.decode_compat_snapshot(data)
    if isinstance(decoded, Err):
        decoded = codec.decode_snapshot(data)
    if isinstance(decoded, Err):
        _fail(f"Cannot decode {file}: {decoded.err_value}")
    message = asyncio.run(_do_publish(_config(ctx), profile, decoded.ok_value))
    typer.echo(message)


async def _do_publish(config: Config, profile_id: str | None, snapshot: UsageSnapshot) -> str:
    container = await StoreContainer.create(config)
    try:
        resolved = await _resolve_profile(container, profile_id)
        saved = await container.snapshot_store.save_snapshot(resolved, snapshot)
    finally:
        await container.close()
    if isinstance(saved, Err):
        return f"Write failed: {saved.err_value}"
    if not saved.ok_value:
        return "Discarded: a newer snapshot is already stored."
    return "Published."


# --- settings -----------------------------------------------------------------


@settings_app.command("show")
def settings_show(ctx: typer.Context, profile: ProfileOption = None) -> None:
    """Print the effective settings bundle."""
    settings = asyncio.run(_do_settings_show(_config(ctx), profile))
    typer.echo(settings.model_dump_json(indent=2))


async def _do_settings_show(config: Config, profile_id: str | None) -> Settings:
    container = await StoreContainer.create(config)
    try:
        resolved = await _resolve_profile(container, profile_id)
        return await container.snapshot_store.load_settings(resolved)
    finally:
        await container.close()


@settings_app.command("set")
def settings_set(
    ctx: typer.Context,
    key: Annotated[
        str, typer.Argument(help="Field name, e.g. color_mode or statusline.show_branch")
    ],
    value: Annotated[str, typer.Argument(help="New value")],
    profile: ProfileOption = None,
) -> None:
    """Change one settings field."""
    error = asyncio.run(_do_settings_set(_config(ctx), profile, key, value))
    if error:
        _fail(error)
    typer.echo(f"{key} = {value}")


async def _do_settings_set(
    config: Config, profile_id: str | None, key: str, value: str
) -> str | None:
    container = await StoreContainer.create(config)
    try:
        resolved = await _resolve_profile(container, profile_id)
        current = await container.snapshot_store.load_settings(resolved)
        updated = _apply_setting(current, key, value)
        if isinstance(updated, str):
            return updated
        saved = await container.snapshot_store.save_settings(resolved, updated)
    finally:
        await container.close()
    if isinstance(saved, Err):
        return f"Write failed: {saved.err_value}"
    return None


def _apply_setting(settings: Settings, key: str, value: str) -> Settings | str:
    """Return updated settings, or an error message."""
    path = key.split(".")
    data = settings.model_dump(mode="json")
    target = data
    for part in path[:-1]:
        nested = target.get(part)
        if not isinstance(nested, dict):
            return f"Unknown setting: {key}"
        target = nested
    if path[-1] not in target or isinstance(target[path[-1]], dict):
        return f"Unknown setting: {key}"
    target[path[-1]] = value
    try:
        updated = Settings.model_validate(data)
    except ValidationError as exc:
        return f"Invalid value for {key}: {exc.errors()[0]['msg']}"

    stored: Any = updated.model_dump(mode="json")
    for part in path:
        stored = stored[part]
    # Unknown choices fall back to their default during validation.
    if isinstance(stored, str) and stored != value:
        return f"Invalid value for {key}: {value!r}"
    return updated


# --- profiles -----------------------------------------------------------------


@profiles_app.command("list")
def profiles_list(ctx: typer.Context) -> None:
    """List tracked profiles; the active one is marked with '*'."""
    lines = asyncio.run(_do_profiles_list(_config(ctx)))
    for line in lines:
        typer.echo(line)


async def _do_profiles_list(config: Config) -> list[str]:
    container = await StoreContainer.create(config)
    try:
        listed = await container.profile_store.list()
        active = await container.profile_store.get_active()
    finally:
        await container.close()
    if isinstance(listed, Err):
        return [f"Error: {listed.err_value}"]
    active_id = active.id if active is not None else None
    return [
        f"{'*' if p.id == active_id else ' '} {p.id}  {p.name}" for p in listed.ok_value
    ] or ["No profiles."]


@profiles_app.command("add")
def profiles_add(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(help="Display name")],
    session_key: Annotated[str | None, typer.Option("--session-key")] = None,
    organization_id: Annotated[str | None, typer.Option("--organization-id")] = None,
) -> None:
    """Create a profile. The first profile becomes active."""
    credentials = ProfileCredentials(session_key=session_key, organization_id=organization_id)
    message = asyncio.run(_do_profiles_add(_config(ctx), name, credentials))
    typer.echo(message)


async def _do_profiles_add(config: Config, name: str, credentials: ProfileCredentials) -> str:
    container = await StoreContainer.create(config)
    try:
        created = await container.profile_store.create(name, credentials)
    finally:
        await container.close()
    if isinstance(created, Err):
        return f"Error: {created.err_value}"
    return created.ok_value.id


@profiles_app.command("activate")
def profiles_activate(
    ctx: typer.Context, profile_id: Annotated[str, typer.Argument(help="Profile id")]
) -> None:
    """Make a profile active."""
    error = asyncio.run(_do_profiles_mutate(_config(ctx), "activate", profile_id))
    if error:
        _fail(error)


@profiles_app.command("remove")
def profiles_remove(
    ctx: typer.Context, profile_id: Annotated[str, typer.Argument(help="Profile id")]
) -> None:
    """Delete a profile with its credentials, settings and cached snapshot."""
    error = asyncio.run(_do_profiles_mutate(_config(ctx), "remove", profile_id))
    if error:
        _fail(error)


async def _do_profiles_mutate(config: Config, action: str, profile_id: str) -> str | None:
    container = await StoreContainer.create(config)
    try:
        if action == "activate":
            result = await container.profile_store.set_active(profile_id)
        else:
            result = await container.profile_store.delete(profile_id)
    finally:
        await container.close()
    if isinstance(result, Err):
        return f"Error: {result.err_value}"
    return None
