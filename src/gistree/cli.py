"""Click CLI for gistree."""

import asyncio
import json
import logging
from typing import Awaitable, Callable, Optional, TypeVar

import click
import yaml
from trogon import tui

from gistree import __version__
from gistree.config import GistreeConfig
from gistree.errors import GistreeError
from gistree.models import Collapsible, EntityNode, GroupKind
from gistree.session import GistSession
from gistree.storage import GlobalStorageGroup, SortDirection, SortType
from gistree.tree import GistTreeProvider

T = TypeVar("T")

SORT_TYPES = [sort_type.value for sort_type in SortType]
SORT_DIRECTIONS = [direction.value for direction in SortDirection]
STORAGE_GROUPS = [group.value for group in GlobalStorageGroup]


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_session(ctx: click.Context) -> GistSession:
    """Build a session from the options of the top-level group."""
    obj = ctx.ensure_object(dict)
    if "session" not in obj:
        obj["session"] = GistSession.create(obj["config"], token=obj.get("token"))
    return obj["session"]


def run_async(ctx: click.Context, action: Callable[[GistSession], Awaitable[T]]) -> T:
    """Run ``action`` against the session and close the client afterwards."""
    session = get_session(ctx)

    async def main() -> T:
        try:
            return await action(session)
        finally:
            await session.close()

    try:
        return asyncio.run(main())
    except (GistreeError, PermissionError, FileNotFoundError) as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)


@tui()
@click.group()
@click.version_option(version=__version__, prog_name="gistree")
@click.option("--token", "-t", envvar="GITHUB_TOKEN", help="GitHub token with the gist scope")
@click.option("--database-url", envvar="GISTREE_DATABASE_URL", help="Database for persisted state")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, token: Optional[str], database_url: Optional[str], verbose: bool) -> None:
    """gistree - browse and edit GitHub gists as a tree.

    Quick start:
        gistree dashboard         Launch the interactive tree
        gistree tree              Print the gist tree
        gistree follow octocat    Follow a user's gists
        gistree open GIST_ID      Pin someone else's gist
    """
    config = GistreeConfig.load()
    if database_url:
        config.database_url = database_url
    configure_logging(verbose or config.enable_tracing)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["token"] = token


@cli.command()
@click.pass_context
def dashboard(ctx: click.Context) -> None:
    """Launch the interactive gist tree.

    \b
    Keyboard shortcuts:
        q - Quit
        r - Refresh
        n - Sort by name
        c - Sort by creation time
        u - Sort by update time
        d - Toggle sort direction
    """
    from gistree.tui import GistreeApp

    app = GistreeApp(get_session(ctx))
    app.run()


async def render_tree(provider: GistTreeProvider, depth: int) -> list[str]:
    """Expand the tree breadth-first down to ``depth`` and render it as lines."""
    lines: list[str] = []

    async def walk(node, level: int) -> None:
        for child in await provider.get_children(node):
            display = child.get_display()
            suffix = f"  ({display.description})" if display.description else ""
            lines.append(f"{'  ' * level}{display.label}{suffix}")
            if level + 1 < depth and display.collapsible is not Collapsible.NONE:
                await walk(child, level + 1)

    await walk(None, 0)
    return lines


@cli.command()
@click.option("--depth", "-d", default=2, show_default=True, help="Levels to expand")
@click.pass_context
def tree(ctx: click.Context, depth: int) -> None:
    """Print the gist tree."""

    async def action(session: GistSession) -> list[str]:
        return await render_tree(session.provider, depth)

    for line in run_async(ctx, action):
        click.echo(line)


@cli.command()
@click.argument("sort_type", type=click.Choice(SORT_TYPES))
@click.option("--direction", type=click.Choice(SORT_DIRECTIONS), help="Sort direction")
@click.pass_context
def sort(ctx: click.Context, sort_type: str, direction: Optional[str]) -> None:
    """Set the order of gists in every group but Followed Users."""
    session = get_session(ctx)
    session.commands.sort_by(sort_type)
    if direction:
        session.commands.sort_direction(direction)
    click.echo(f"Sort: {session.store.sort_type.value} {session.store.sort_direction.value}")


# =============================================================================
# Users and gists
# =============================================================================


@cli.command()
@click.argument("login")
@click.pass_context
def follow(ctx: click.Context, login: str) -> None:
    """Follow LOGIN: their gists appear under Followed Users."""
    run_async(ctx, lambda session: session.commands.follow_user(login))
    click.echo(f"✓ Following {login}")


@cli.command()
@click.argument("login")
@click.pass_context
def unfollow(ctx: click.Context, login: str) -> None:
    """Stop following LOGIN."""
    get_session(ctx).commands.unfollow_user(login)
    click.echo(f"✓ Unfollowed {login}")


@cli.command("open")
@click.argument("gist_id")
@click.pass_context
def open_gist(ctx: click.Context, gist_id: str) -> None:
    """Pin GIST_ID under Opened Gists."""
    run_async(ctx, lambda session: session.commands.open_gist(gist_id))
    click.echo(f"✓ Opened {gist_id}")


@cli.command("close")
@click.argument("gist_id")
@click.pass_context
def close_gist(ctx: click.Context, gist_id: str) -> None:
    """Unpin GIST_ID from Opened Gists."""
    get_session(ctx).commands.close_gist(gist_id)
    click.echo(f"✓ Closed {gist_id}")


async def _starred_node(session: GistSession, gist_id: str) -> EntityNode:
    return EntityNode(await session.remote.get_by_id(gist_id), GroupKind.STARRED)


@cli.command()
@click.argument("gist_id")
@click.pass_context
def star(ctx: click.Context, gist_id: str) -> None:
    """Star GIST_ID."""

    async def action(session: GistSession) -> None:
        await session.commands.star_gist(await _starred_node(session, gist_id))

    run_async(ctx, action)
    click.echo(f"✓ Starred {gist_id}")


@cli.command()
@click.argument("gist_id")
@click.pass_context
def unstar(ctx: click.Context, gist_id: str) -> None:
    """Remove the star from GIST_ID."""

    async def action(session: GistSession) -> None:
        await session.commands.unstar_gist(await _starred_node(session, gist_id))

    run_async(ctx, action)
    click.echo(f"✓ Unstarred {gist_id}")


# =============================================================================
# Storage Commands - Inspect persisted state
# =============================================================================


@cli.group()
def storage() -> None:
    """Inspect and reset persisted state.

    Followed users, opened gists and the sort order survive restarts.
    """
    pass


@storage.command("show")
@click.option(
    "--format", "-f", "output_format",
    type=click.Choice(["yaml", "json"]),
    default="yaml",
    help="Output format",
)
@click.pass_context
def storage_show(ctx: click.Context, output_format: str) -> None:
    """Show every persisted slot."""
    data = get_session(ctx).commands.describe_storage()
    if output_format == "json":
        click.echo(json.dumps(data, indent=2))
    else:
        click.echo(yaml.safe_dump(data, sort_keys=False, default_flow_style=False).rstrip())


@storage.command("remove")
@click.argument("group", type=click.Choice(STORAGE_GROUPS))
@click.argument("value")
@click.pass_context
def storage_remove(ctx: click.Context, group: str, value: str) -> None:
    """Remove VALUE from the persisted GROUP list."""
    get_session(ctx).store.remove_from_global_storage(group, value)
    click.echo(f"✓ Removed {value} from {group}")


@storage.command("purge")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.pass_context
def storage_purge(ctx: click.Context, yes: bool) -> None:
    """Reset followed users, opened gists and sort order."""
    if not yes:
        click.confirm("Reset all persisted state?", abort=True)
    get_session(ctx).commands.purge_storage()
    click.echo("✓ Global storage purged")


# =============================================================================
# Config Commands
# =============================================================================


@cli.group("config")
def config_group() -> None:
    """Show and change settings in ~/.gistree/config.json."""
    pass


@config_group.command("show")
def config_show() -> None:
    """Show the current configuration."""
    config = GistreeConfig.load()
    for name in config.__dataclass_fields__:
        click.echo(f"{name}: {getattr(config, name)}")


@config_group.command("set")
@click.argument("name")
@click.argument("value")
def config_set(name: str, value: str) -> None:
    """Set configuration NAME to VALUE."""
    config = GistreeConfig.load()
    try:
        config.set_value(name, value)
    except KeyError:
        click.echo(f"Error: Unknown setting '{name}'.", err=True)
        raise SystemExit(1)
    except ValueError as e:
        click.echo(f"Error: Invalid value for '{name}': {e}", err=True)
        raise SystemExit(1)
    config.save()
    click.echo(f"✓ {name} = {getattr(config, name)}")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
