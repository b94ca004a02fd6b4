"""Typer application and console-script entry points for pagecache.

Two console scripts are declared in ``pyproject.toml``:

* ``pagecache`` (:func:`main`) -- operator commands: ``stats``, ``flush``,
  ``refresh``, ``config`` and ``worker``.
* ``pagecache-worker`` (:func:`worker_main`) -- the refresh worker process
  on its own, without sub-commands.

Both wrap the Typer app in the same error handling: a
:class:`~pagecache.exceptions.PagecacheError` exits with its ``exit_code``,
anything else writes a crash log under the data directory.
"""

from __future__ import annotations

import asyncio
import contextlib
import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import typer

from pagecache import __version__
from pagecache.cache.backend import CacheBackend
from pagecache.exceptions import InvalidUsageError, PagecacheError, StoreError
from pagecache.exit_codes import EXIT_CANCELLED, EXIT_GENERIC_FAILURE
from pagecache.models import CacheConfig
from pagecache.output import OutputFormat, error, get_output, info, print_table, success, warning


app = typer.Typer(
    name="pagecache",
    help="Full-page HTTP cache: inspect, flush and refresh the cache store.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

worker_app = typer.Typer(
    name="pagecache-worker",
    help="Run the pagecache refresh worker.",
    add_completion=False,
)

from pagecache.commands.config import config_app  # noqa: E402

app.add_typer(config_app, name="config", help="Configuration management.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"pagecache {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    config_path: Optional[str] = typer.Option(
        None, "--config", "-c", help="Path to the config file."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmations."),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~pagecache.output.OutputManager` and stores
    shared options in ``ctx.obj`` for the sub-commands.
    """
    from pagecache.output import OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    ctx.ensure_object(dict)
    ctx.obj["config"] = config_path
    ctx.obj["force"] = force
    ctx.obj["verbose"] = verbose


# ------------------------------------------------------------------ #
# Helpers
# ------------------------------------------------------------------ #


def _create_backend(config: CacheConfig) -> CacheBackend:
    """Build the backend for *config*. Tests patch this to use an in-memory store."""
    return CacheBackend.from_config(config)


def _load(ctx: typer.Context) -> tuple[CacheConfig, CacheBackend]:
    from pagecache.config import resolve_config

    obj = ctx.obj or {}
    config = resolve_config(obj.get("config"))
    return config, _create_backend(config)


# ------------------------------------------------------------------ #
# Operator commands
# ------------------------------------------------------------------ #


@app.command("stats")
def stats_command(ctx: typer.Context) -> None:
    """Show the number of cached pages and the store's memory usage."""
    _, backend = _load(ctx)
    try:
        stats = backend.get_stats()
    finally:
        backend.close()

    if stats is None:
        raise StoreError("Could not read cache stats, see the log for details")

    if get_output().format == OutputFormat.JSON:
        get_output().format_response(stats.model_dump())
        return

    kib = stats.memory_bytes // 1024
    print_table(
        ["metric", "value"],
        [["cache size", f"{kib} KiB"], ["pages stored", str(stats.page_count)]],
        title="pagecache",
    )


@app.command("flush")
def flush_command(ctx: typer.Context) -> None:
    """Flush the entire cache store.

    This clears every key of the store, including data that other
    applications keep in the same Redis database.
    """
    obj = ctx.obj or {}
    if not obj.get("force"):
        typer.confirm("Flush the entire cache store?", abort=True)

    _, backend = _load(ctx)
    try:
        backend.flush()
    finally:
        backend.close()
    success("cache flushed")


@app.command("refresh")
def refresh_command(
    ctx: typer.Context,
    request_key: Optional[str] = typer.Argument(
        None, help="Refresh only this request key, e.g. https_www.example.com_news."
    ),
) -> None:
    """Ask the worker to refresh all cached pages, or a single one."""
    if request_key is not None and request_key.count("_") < 2:
        raise InvalidUsageError(f"Not a request key: {request_key} (expected scheme_host_path)")

    _, backend = _load(ctx)
    try:
        if request_key is None:
            backend.refresh_all()
            success("cache refresh requested")
            return
        if not backend.refresh_page(request_key):
            raise PagecacheError(f"Page {request_key} is not cached")
        success(f"refresh requested for {request_key}")
    finally:
        backend.close()


# ------------------------------------------------------------------ #
# Worker
# ------------------------------------------------------------------ #


def _run_worker(
    config: CacheConfig,
    revision_file: Optional[Path],
    max_ticks: Optional[int],
    time_limit: Optional[float],
    verbose: bool,
) -> None:
    from pagecache.log import setup_logging
    from pagecache.worker import RefreshWorker

    setup_logging("DEBUG" if verbose else config.worker.log_level, config.worker.log_file)

    if revision_file is not None and not revision_file.is_file():
        warning(f"Revision file {revision_file} not found, deployment detection disabled")
        revision_file = None

    backend = _create_backend(config)
    worker = RefreshWorker(config, backend, revision_file=revision_file, time_limit=time_limit)

    async def _main() -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, worker.stop)
        await worker.run(max_ticks=max_ticks)

    try:
        asyncio.run(_main())
    finally:
        backend.close()

    if worker.deployment_detected:
        info("deployment detected, worker exited for restart")


def worker_command(
    ctx: typer.Context,
    config_path: Optional[str] = typer.Option(
        None, "--config", "-c", help="Path to the config file."
    ),
    revision_file: Optional[Path] = typer.Option(
        None, "--revision-file", "-r", help="Revision file watched to detect deployments."
    ),
    max_ticks: Optional[int] = typer.Option(
        None, "--max-ticks", min=1, help="Stop after this many ticks."
    ),
    time_limit: Optional[float] = typer.Option(
        None, "--time-limit", min=0, help="Stop after this many seconds."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Run the refresh worker until it is interrupted.

    Example::

        pagecache-worker -r /srv/app/REVISION
    """
    from pagecache.config import resolve_config

    obj = ctx.obj or {}
    config = resolve_config(config_path or obj.get("config"))
    _run_worker(config, revision_file, max_ticks, time_limit, verbose or bool(obj.get("verbose")))


app.command("worker")(worker_command)
worker_app.command()(worker_command)


# ------------------------------------------------------------------ #
# Entry points
# ------------------------------------------------------------------ #


def _write_crash_log(exc: Exception) -> str:
    """Write the current traceback to the data directory and return its path."""
    from pagecache.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_CANCELLED)

    signal.signal(signal.SIGINT, _handler)


def _invoke(typer_app: typer.Typer) -> None:
    try:
        typer_app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_CANCELLED)
    except PagecacheError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)


def main() -> None:
    """Entry point of the ``pagecache`` console script."""
    _setup_signal_handlers()
    _invoke(app)


def worker_main() -> None:
    """Entry point of the ``pagecache-worker`` console script.

    The worker installs its own SIGINT/SIGTERM handlers so a signal ends
    the loop after the current tick instead of killing the process.
    """
    _invoke(worker_app)
