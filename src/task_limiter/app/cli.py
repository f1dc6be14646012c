"""task_limiter.app.cli
=======================
Command-line interface powered by Typer.

Usage examples
--------------
$ task-limiter acquire thumbnailer job-42 --limit 3 --timeout 300   # exit 0 acquired, 1 full, 3 already held, 4 invalid argument
$ task-limiter acquire thumbnailer job-42 --limit 3 --timeout 300 --wait 30
$ task-limiter release thumbnailer job-42
$ task-limiter holders thumbnailer
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from enum import Enum
from typing import Iterator, Optional, Sequence

import typer
from typing_extensions import Annotated

from .container import Container
from ..core.domain.errors import StoreError
from ..core.domain.models import HolderInfo

app = typer.Typer(add_completion=False, help="Distributed task concurrency limiter")

EXIT_DENIED = 1
EXIT_STORE_ERROR = 2
EXIT_ALREADY_HELD = 3
EXIT_INVALID_ARGUMENT = 4


class LogLevel(str, Enum):
    OFF = "OFF"
    CRITICAL = "CRITICAL"
    ERROR = "ERROR"
    WARNING = "WARNING"
    INFO = "INFO"
    DEBUG = "DEBUG"


@contextmanager
def provide_container() -> Iterator[Container]:
    container = Container()
    container.init_resources()
    try:
        yield container
    except StoreError as e:
        typer.echo(f"Store error: {e}", err=True)
        raise typer.Exit(code=EXIT_STORE_ERROR)
    except ValueError as e:
        typer.echo(f"Invalid argument: {e}", err=True)
        raise typer.Exit(code=EXIT_INVALID_ARGUMENT)
    finally:
        container.shutdown_resources()


@app.callback()
def main(
    log_level: Annotated[
        Optional[LogLevel],
        typer.Option("--log-level", help="Set log level (OFF, CRITICAL, ERROR, WARNING, INFO, DEBUG). Default: OFF"),
    ] = None,
) -> None:
    """Configure package logging if requested."""
    if log_level in (None, LogLevel.OFF):
        return

    level = logging.getLevelNamesMapping().get(log_level.value, logging.INFO)
    logger = logging.getLogger(__package__.split(".", 1)[0] if __package__ else "task_limiter")

    # Avoid stacking handlers when invoked repeatedly in one process
    has_stream = any(isinstance(h, logging.StreamHandler) for h in logger.handlers)
    if not has_stream:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s | %(name)s | %(message)s"))
        logger.addHandler(handler)

    logger.propagate = False
    logger.setLevel(level)


@app.command(help="Try to acquire a slot. Exit code: 0 acquired, 1 pool full, 3 already held, 4 invalid argument.")
def acquire(
    prefix: str = typer.Argument(..., help="Task class name"),
    postfix: str = typer.Argument(..., help="Holder identifier, unique among live holders (e.g., task id)"),
    limit: int = typer.Option(..., "--limit", "-n", min=1, help="Allowed concurrent tasks"),
    timeout: float = typer.Option(..., "--timeout", "-t", min=0.001, help="Seconds before an unreleased holder expires"),
    wait: float = typer.Option(0.0, "--wait", "-w", min=0.0, help="Keep retrying a full pool for up to this many seconds"),
) -> None:
    with provide_container() as container:
        if wait > 0:
            result = container.acquire_retry_uc().execute(prefix, postfix, limit, timeout, wait_seconds=wait)
        else:
            result = container.acquire_uc().execute(prefix, postfix, limit, timeout)

    if result.acquired:
        typer.echo(f"acquired {prefix}:{postfix}")
        return
    if result.already_held:
        typer.echo(f"already held {prefix}:{postfix}")
        raise typer.Exit(code=EXIT_ALREADY_HELD)
    typer.echo(f"denied {prefix}:{postfix} ({prefix} is at capacity {limit})")
    raise typer.Exit(code=EXIT_DENIED)


@app.command(help="Release a slot. Releasing an unknown or expired holder succeeds.")
def release(
    prefix: str = typer.Argument(..., help="Task class name"),
    postfix: str = typer.Argument(..., help="Holder identifier"),
) -> None:
    with provide_container() as container:
        container.release_uc().execute(prefix, postfix)
    typer.echo(f"released {prefix}:{postfix}")


@app.command(help="Print the number of live holders of a task class.")
def count(prefix: str = typer.Argument(..., help="Task class name")) -> None:
    with provide_container() as container:
        n = container.inspect_uc().count(prefix)
    typer.echo(str(n))


@app.command(help="List live holders of a task class with their remaining TTL.")
def holders(prefix: str = typer.Argument(..., help="Task class name")) -> None:
    with provide_container() as container:
        items = container.inspect_uc().holders(prefix)
    _print_holders(items)


def _format_ttl(ttl_seconds: float | None) -> str:
    if ttl_seconds is None:
        return "-"
    return f"{ttl_seconds:.1f}s"


def _print_holders(items: Sequence[HolderInfo]) -> None:
    typer.echo(f"{'KEY':40} {'TTL':>10}")
    for h in items:
        typer.echo(f"{h.key:40} {_format_ttl(h.ttl_seconds):>10}")
    typer.echo(f"Total: {len(items)}")


if __name__ == "__main__":  # pragma: no cover
    app()
