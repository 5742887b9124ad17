"""Main entry point for the flockcli application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

import typer
from typing_extensions import Annotated

# --- Setup Logging Early ---
# Use basic config until setup_logging is called with the loaded settings
logging.basicConfig(level=logging.WARNING, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# --- Core Layer ---
from flockcli.core.command_handler import CommandHandler, show_quotas
from flockcli.core.services.bulk_resolver import BulkResolver
from flockcli.core.services.paginator import Paginator
from flockcli.core.services.stream_session import StreamSession

# --- Domain Layer ---
from flockcli.domain.models.common import AssociateKind, AuthMode, LookupKind, StreamFilter
from flockcli.domain.models.errors import ConfigurationError

# --- Infrastructure Layer ---
# Config
from flockcli.infrastructure.config.settings import (
    DEFAULT_CONFIG_FILE,
    get_api_base_url,
    get_config,
    get_lookup_batch_size,
    get_quota_overrides,
    get_request_timeout,
    get_stream_base_url,
    get_stream_max_reopen_attempts,
    get_stream_read_timeout,
    load_configuration,
    set_config,
    use_shared_pacing_state,
)
# API adapters
from flockcli.infrastructure.api.auth import build_auth_session
from flockcli.infrastructure.api.rest_client import HttpxSocialApi
from flockcli.infrastructure.api.stream_client import HttpxStreamTransport
# Resilience
from flockcli.infrastructure.resilience.pacing import PacingEngine
from flockcli.infrastructure.resilience.quota_registry import QuotaRegistry
# UI and output
from flockcli.infrastructure.cli.display import ConsoleDisplay
from flockcli.infrastructure.filesystem.jsonl_sink import open_sink
# Monitoring
from flockcli.infrastructure.monitoring.logger_setup import setup_logging

# --- Dependency Injection Container (Manual) ---

def create_dependencies(auth_mode: Optional[AuthMode] = None) -> Dict[str, Any]:
    """Creates and wires up all dependencies for one command run.

    This acts as the Composition Root.

    Raises:
        ConfigurationError: If credentials or quota settings are invalid.
    """
    logger.info("Initializing application dependencies...")
    dependencies: Dict[str, Any] = {}

    # 1. Credentials fix the auth mode for the whole session
    auth_session = build_auth_session(mode=auth_mode)
    dependencies['auth_session'] = auth_session

    # 2. Resilience: quota table and pacing state
    dependencies['quota_registry'] = QuotaRegistry(overrides=get_quota_overrides())
    dependencies['pacing'] = PacingEngine(
        dependencies['quota_registry'],
        auth_session.mode,
        shared_state=use_shared_pacing_state(),
    )

    # 3. Remote capabilities
    dependencies['api'] = HttpxSocialApi(
        auth_session,
        base_url=get_api_base_url(),
        timeout=get_request_timeout(),
    )
    dependencies['stream_transport'] = HttpxStreamTransport(
        auth_session,
        base_url=get_stream_base_url(),
        read_timeout=get_stream_read_timeout(),
        max_reopen_attempts=get_stream_max_reopen_attempts(),
    )

    # 4. Core services
    dependencies['paginator'] = Paginator(dependencies['pacing'])
    dependencies['bulk_resolver'] = BulkResolver(
        dependencies['api'], dependencies['pacing'], batch_size=get_lookup_batch_size()
    )
    dependencies['ui'] = ConsoleDisplay()
    dependencies['command_handler'] = CommandHandler(
        api=dependencies['api'],
        pacing=dependencies['pacing'],
        paginator=dependencies['paginator'],
        bulk_resolver=dependencies['bulk_resolver'],
        session_factory=lambda: StreamSession(dependencies['stream_transport']),
        sink_factory=open_sink,
        ui=dependencies['ui'],
    )
    logger.info("All dependencies initialized successfully.")
    return dependencies


async def close_dependencies(dependencies: Dict[str, Any]) -> None:
    """Releases the HTTP connection pools."""
    for name in ('api', 'stream_transport'):
        component = dependencies.get(name)
        if component is not None:
            await component.aclose()


# --- Typer App Definition ---
app = typer.Typer(
    name="flockcli",
    help="flockcli: collect followers, friends, timelines and posts without tripping rate limits.",
    add_completion=False,
)

# --- Helper for Running Async Commands ---

def run_command(action: Callable[[CommandHandler], Awaitable[int]]) -> None:
    """Builds the dependencies, runs one async command and exits with its status."""

    async def _run() -> int:
        dependencies = create_dependencies(auth_mode=_selected_auth_mode())
        try:
            return await action(dependencies['command_handler'])
        finally:
            await close_dependencies(dependencies)

    try:
        exit_code = asyncio.run(_run())
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        ConsoleDisplay().display_error(str(e))
        raise typer.Exit(code=2)
    except KeyboardInterrupt:
        ConsoleDisplay().display_warning("Interrupted.")
        raise typer.Exit(code=130)
    if exit_code:
        raise typer.Exit(code=exit_code)


def _selected_auth_mode() -> Optional[AuthMode]:
    value = get_config('cli.auth_mode')
    return AuthMode(value) if value else None

# --- CLI Commands ---

OutputOption = Annotated[
    Optional[Path],
    typer.Option("--output", "-o", dir_okay=False, writable=True, resolve_path=True,
                 help="Write JSON lines to this file instead of stdout."),
]

LimitOption = Annotated[
    Optional[int],
    typer.Option("--limit", "-n", min=1, help="Stop after this many records."),
]


@app.command()
def followers(
    subject: Annotated[str, typer.Argument(help="Screen name or numeric user id.")],
    output: OutputOption = None,
    limit: LimitOption = None,
):
    """List the ids of the accounts following a user."""
    run_command(lambda handler: handler.handle_associates(AssociateKind.FOLLOWERS, subject, output, limit))


@app.command()
def friends(
    subject: Annotated[str, typer.Argument(help="Screen name or numeric user id.")],
    output: OutputOption = None,
    limit: LimitOption = None,
):
    """List the ids of the accounts a user follows."""
    run_command(lambda handler: handler.handle_associates(AssociateKind.FRIENDS, subject, output, limit))


@app.command()
def timeline(
    subject: Annotated[str, typer.Argument(help="Screen name or numeric user id.")],
    output: OutputOption = None,
    limit: LimitOption = None,
):
    """Fetch a user's timeline, newest posts first."""
    run_command(lambda handler: handler.handle_timeline(subject, output, limit))


def _read_ids(ids: List[str], ids_file: Optional[Path]) -> List[str]:
    collected = list(ids)
    if ids_file is not None:
        if str(ids_file) == '-':
            collected.extend(sys.stdin.read().split())
        else:
            collected.extend(ids_file.read_text(encoding='utf-8').split())
    return collected


@app.command()
def lookup(
    ids: Annotated[Optional[List[str]], typer.Argument(help="Ids to resolve.")] = None,
    ids_file: Annotated[Optional[Path], typer.Option(
        "--ids-file", "-f", help="File with whitespace-separated ids ('-' for stdin).")] = None,
    users: Annotated[bool, typer.Option("--users", help="Resolve user ids instead of post ids.")] = False,
    entities: Annotated[bool, typer.Option(
        "--entities/--no-entities", help="Include entity metadata (urls, mentions, media).")] = True,
    output: OutputOption = None,
):
    """Resolve post (or user) ids in batches."""
    identifiers = _read_ids(ids or [], ids_file)
    if not identifiers:
        ConsoleDisplay().display_error("No ids given. Pass them as arguments or with --ids-file.")
        raise typer.Exit(code=2)
    kind = LookupKind.USERS if users else LookupKind.STATUSES
    run_command(lambda handler: handler.handle_lookup(identifiers, kind, entities, output))


@app.command()
def stream(
    box: Annotated[str, typer.Argument(help="Bounding box as west,south,east,north.")],
    output: OutputOption = None,
    limit: LimitOption = None,
):
    """Listen to posts from inside a geographic bounding box."""
    try:
        stream_filter = StreamFilter.parse(box)
    except ConfigurationError as e:
        ConsoleDisplay().display_error(str(e))
        raise typer.Exit(code=2)
    run_command(lambda handler: handler.handle_stream(stream_filter, output, limit))


@app.command()
def quotas():
    """Show the request quotas and spacing in effect."""
    try:
        mode = _selected_auth_mode() or build_auth_session().mode
        pacing = PacingEngine(QuotaRegistry(overrides=get_quota_overrides()), mode)
    except ConfigurationError as e:
        ConsoleDisplay().display_error(str(e))
        raise typer.Exit(code=2)
    exit_code = show_quotas(pacing, ConsoleDisplay())
    if exit_code:
        raise typer.Exit(code=exit_code)


@app.callback()
def main_callback(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log debug output.")] = False,
    config_file: Annotated[Path, typer.Option("--config", help="YAML configuration file.")] = DEFAULT_CONFIG_FILE,
    auth_mode: Annotated[Optional[AuthMode], typer.Option(
        "--auth-mode", case_sensitive=False, help="Force user or app context.")] = None,
):
    """Load configuration and logging before any command runs."""
    load_configuration(config_file=config_file)
    log_level_name = 'DEBUG' if verbose else str(get_config('logging.level', 'INFO')).upper()
    setup_logging(
        log_level=getattr(logging, log_level_name, logging.INFO),
        log_file=get_config('logging.file'),
        log_format=get_config('logging.format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s'),
    )
    set_config('cli.auth_mode', auth_mode.value if auth_mode is not None else None)

# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
