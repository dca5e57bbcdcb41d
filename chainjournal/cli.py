import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional

import click

from .config import Settings, get_package_version
from .exceptions import ChainIntegrityError, JournalError, NotFoundError
from .logging import configure_logging
from .metrics import start_metrics_server
from .session import BlockSummary, Session

# Arrow keys arrive from click.getchar as whole escape sequences
UP_KEYS = ("w", "k", "\x1b[A")
DOWN_KEYS = ("s", "j", "\x1b[B")
CONFIRM_KEYS = ("\r", "\n")
ABORT_KEYS = ("q", "\x1b")


# Helper function for consistent error handling and output
def handle_journal_call(ctx, func, *args, **kwargs):
    """
    Calls a journal operation, handles errors, and prints them based on --json flag.
    """
    try:
        return func(*args, **kwargs)
    except NotFoundError as e:
        _report_error(ctx, "No entry for this block.", str(e))
    except JournalError as e:  # Catch specific journal errors
        _report_error(ctx, str(e), getattr(e, "details", None))
    except Exception as e:  # Catch any other unexpected errors
        if ctx.obj.get("JSON_OUTPUT"):
            click.echo(json.dumps({"status": "error", "message": "An unexpected error occurred.", "details": str(e)}, indent=2))
        else:
            click.echo(f"UNEXPECTED ERROR: {str(e)}", err=True)
        if ctx.obj.get("VERBOSE"):
            import traceback

            click.echo(traceback.format_exc(), err=True)
        ctx.exit(1)


def _report_error(ctx, message, details):
    error_info = {"status": "error", "message": message, "details": details}
    if ctx.obj.get("JSON_OUTPUT"):
        click.echo(json.dumps(error_info, indent=2))
    else:
        click.echo(f"ERROR: {message}", err=True)
        if details:
            click.echo(f"Details: {details}", err=True)
    ctx.exit(1)


def _emit(ctx, result, message):
    if ctx.obj.get("JSON_OUTPUT"):
        click.echo(json.dumps({"status": "success", "result": result}, indent=2))
    else:
        click.echo(message)


def _format_timestamp(timestamp: int) -> str:
    try:
        return datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")
    except (OverflowError, OSError, ValueError):
        return str(timestamp)


def _open_session(ctx) -> Session:
    session = ctx.obj.get("SESSION")
    if session is None:
        session = handle_journal_call(ctx, Session.open, ctx.obj["SETTINGS"])
        ctx.obj["SESSION"] = session
        if session.compromised and not ctx.obj.get("JSON_OUTPUT"):
            click.echo(f"WARNING: ledger is compromised. {session.validation.detail}", err=True)
            click.echo("Writing is disabled until the ledger is repaired; reading is still allowed.", err=True)
    return session


def pick_block(
    blocks: List[BlockSummary],
    getchar: Callable[[], str] = click.getchar,
    echo: Callable[[str], None] = click.echo,
) -> Optional[str]:
    """
    Let the user move through the blocks with single keystrokes and confirm one.

    ``w``/``k`` or the up arrow move up, ``s``/``j`` or the down arrow move down, Enter confirms, ``q`` aborts.
    Returns the selected block's hash, or None when aborted.
    """
    if not blocks:
        return None
    position = len(blocks) - 1
    while True:
        echo("")
        for index, block in enumerate(blocks):
            marker = ">" if index == position else " "
            entry_flag = "*" if block.has_entry else " "
            echo(f"{marker} {entry_flag} #{block.block_number:<4} {_format_timestamp(block.timestamp)}  {block.hash[:16]}")
        echo("[w/k/Up] up  [s/j/Down] down  [Enter] select  [q] quit")
        key = getchar()
        if key in UP_KEYS:
            position = max(position - 1, 0)
        elif key in DOWN_KEYS:
            position = min(position + 1, len(blocks) - 1)
        elif key in CONFIRM_KEYS:
            return blocks[position].hash
        elif key in ABORT_KEYS:
            return None


@click.group(invoke_without_command=True, context_settings=dict(help_option_names=["-h", "--help"]))
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="CHAINJOURNAL_DATA_DIR",
    help="Directory holding the ledger, entries and key files. Can also be set via CHAINJOURNAL_DATA_DIR env var.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--json-output", "-j", is_flag=True, help="Output results in JSON format.")
@click.version_option(get_package_version(), prog_name="chainjournal")
@click.pass_context
def cli(ctx, data_dir, verbose, json_output):
    """Hash-chained, encrypted personal journal."""
    ctx.ensure_object(dict)
    ctx.obj["VERBOSE"] = verbose
    ctx.obj["JSON_OUTPUT"] = json_output
    overrides = {"data_dir": data_dir} if data_dir is not None else {}
    try:
        settings = Settings(**overrides)
        configure_logging(settings, verbose=verbose)
    except ValueError as e:  # pydantic's ValidationError is a ValueError too
        _report_error(ctx, "Invalid configuration.", str(e))
    ctx.obj["SETTINGS"] = settings

    if settings.metrics_port is not None:
        try:
            start_metrics_server(settings.metrics_port, addr=settings.metrics_addr)
        except OSError as e:
            _report_error(
                ctx, f"Could not start the metrics server on {settings.metrics_addr}:{settings.metrics_port}.", str(e)
            )

    if ctx.invoked_subcommand is None:
        click.echo("Write a new entry or read an old one? [w/r] ", nl=False)
        choice = click.getchar().lower()
        click.echo(choice)
        if choice == "w":
            ctx.invoke(write)
        elif choice == "r":
            ctx.invoke(read)
        else:
            click.echo(f"Unknown choice {choice!r}; expected 'w' or 'r'.", err=True)
            ctx.exit(1)


@cli.command("write")
@click.argument("text", required=False)
@click.pass_context
def write(ctx, text=None):
    """
    Seal a new journal entry into a fresh block.

    Example:

        chainjournal write "Walked to the harbour."
    """
    session = _open_session(ctx)
    if session.compromised:
        handle_journal_call(ctx, session.ensure_writable)
    if text is None:
        text = click.prompt("Add new journal entry", default="", show_default=False)
    if not ctx.obj.get("JSON_OUTPUT"):
        click.echo(f'Registered entry "{text.strip()}"')
    block, _sealed = handle_journal_call(ctx, session.write, text)
    _emit(
        ctx,
        {"blockNumber": block.block_number, "hash": block.hash},
        f"Entry sealed into block #{block.block_number} ({block.hash}).",
    )


@cli.command("read")
@click.option("--hash", "block_hash", help="Hash of the block whose entry to read.")
@click.option("--block", "block_number", type=int, help="Number of the block whose entry to read.")
@click.pass_context
def read(ctx, block_hash=None, block_number=None):
    """
    Unseal and print the entry stored for a block.

    Without --hash or --block an interactive block picker is shown.
    """
    if block_hash is not None and block_number is not None:
        raise click.UsageError("Use either --hash or --block, not both.")
    session = _open_session(ctx)
    if block_number is not None:
        block = session.chain.by_number(block_number)
        if block is None:
            handle_journal_call(ctx, _raise_not_found, f"No block number {block_number} in the ledger.")
        block_hash = block.hash
    elif block_hash is None:
        block_hash = pick_block(session.blocks())
        if block_hash is None:
            click.echo("Nothing selected.")
            return
    plaintext = handle_journal_call(ctx, session.read, block_hash)
    _emit(ctx, {"hash": block_hash, "entry": plaintext}, plaintext)


def _raise_not_found(message):
    raise NotFoundError(message)


@cli.command("validate")
@click.pass_context
def validate(ctx):
    """Check the ledger's hash links and report the verdict."""
    session = _open_session(ctx)
    result = session.validation
    payload = {
        "compromised": result.compromised,
        "detail": result.detail,
        "blocks": len(session.chain),
    }
    if result.compromised:
        if ctx.obj.get("JSON_OUTPUT"):
            click.echo(json.dumps({"status": "error", "result": payload}, indent=2))
            ctx.exit(1)
        handle_journal_call(ctx, _raise_integrity, result)
    _emit(ctx, payload, f"Ledger of {len(session.chain)} block(s) is intact.")


def _raise_integrity(result):
    raise ChainIntegrityError("Ledger is compromised.", result=result)


@cli.command("blocks")
@click.pass_context
def blocks(ctx):
    """List the ledger's blocks; '*' marks blocks holding an entry."""
    session = _open_session(ctx)
    summaries = session.blocks()
    if ctx.obj.get("JSON_OUTPUT"):
        _emit(
            ctx,
            [
                {
                    "blockNumber": s.block_number,
                    "timestamp": s.timestamp,
                    "hash": s.hash,
                    "hasEntry": s.has_entry,
                }
                for s in summaries
            ],
            "",
        )
        return
    if not summaries:
        click.echo("Ledger is empty.")
    for s in summaries:
        flag = "*" if s.has_entry else " "
        click.echo(f"{flag} #{s.block_number:<4} {_format_timestamp(s.timestamp)}  {s.hash}")


if __name__ == "__main__":
    cli()
