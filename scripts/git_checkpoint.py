#!/usr/bin/env python3
"""
Git Checkpoint CLI - Local snapshots of uncommitted work.

Captures modified and untracked files of a git working directory into a
timestamped archive under .checkpoints/, without creating git commits.

Usage:
    git-checkpoint commit -m "before refactor"
    git-checkpoint commit              # prompts for a message
    git-checkpoint ls
    git-checkpoint restore 2025-01-15_10-30-00.tar.gz
"""

from __future__ import annotations

import click
import typer
from pydantic import ValidationError
from typer.core import TyperGroup

from config.settings import get_settings
from libs.checkpoints import (
    CheckpointContext,
    CheckpointError,
    CheckpointLister,
    CheckpointRestorer,
    CheckpointWriter,
    LockAcquisitionError,
    NoChanges,
    RepositoryEnvironmentError,
    ensure_repository,
    render_table,
)
from libs.common.logging import configure_logging, generate_invocation_id, set_invocation_id

SERVICE_NAME = "git_checkpoint"


class CheckpointGroup(TyperGroup):
    """Command group that shows help instead of failing on unknown verbs."""

    def resolve_command(
        self, ctx: click.Context, args: list[str]
    ) -> tuple[str | None, click.Command | None, list[str]]:
        if args and not args[0].startswith("-") and self.get_command(ctx, args[0]) is None:
            typer.echo(ctx.get_help())
            ctx.exit(0)
        return super().resolve_command(ctx, args)


app = typer.Typer(
    name="git-checkpoint",
    help="Create, list and restore local checkpoints of uncommitted work.",
    cls=CheckpointGroup,
    add_completion=False,
)


def _fail(err: CheckpointError) -> typer.Exit:
    """Report an error on stderr and build the matching exit."""
    typer.echo(f"Error: {err}", err=True)
    # Lock contention is retryable, everything else is a hard failure
    return typer.Exit(2 if isinstance(err, LockAcquisitionError) else 1)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Create, list and restore local checkpoints of uncommitted work."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(0)

    try:
        settings = get_settings()
    except ValidationError as err:
        typer.echo(f"Error: invalid configuration: {err}", err=True)
        raise typer.Exit(1) from err

    configure_logging(
        service_name=SERVICE_NAME,
        log_level="DEBUG" if verbose else settings.log_level,
    )
    set_invocation_id(generate_invocation_id())

    context = CheckpointContext.from_settings(settings)
    try:
        ensure_repository(context.working_dir, timeout=context.git_timeout_seconds)
    except RepositoryEnvironmentError as err:
        raise _fail(err) from err

    ctx.obj = context


@app.command()
def commit(
    ctx: typer.Context,
    message: str = typer.Option(
        None, "--message", "-m", help="Checkpoint message (prompted for if omitted)"
    ),
) -> None:
    """Create a checkpoint of modified and untracked files."""
    context: CheckpointContext = ctx.obj
    try:
        result = CheckpointWriter(context).create_checkpoint(message)
    except CheckpointError as err:
        raise _fail(err) from err

    if isinstance(result, NoChanges):
        if result.reason == "empty":
            typer.echo("No files to include in checkpoint.")
        else:
            typer.echo(f"No changes to checkpoint (same files as {result.previous}).")
        return

    typer.echo(f"Created checkpoint {result.timestamp} ({result.file_count} files)")


@app.command("ls")
def list_checkpoints(ctx: typer.Context) -> None:
    """List checkpoints, newest first."""
    context: CheckpointContext = ctx.obj
    summaries = CheckpointLister(context).list_checkpoints()
    if not summaries:
        typer.echo("No checkpoints found.")
        return
    typer.echo(render_table(summaries))


@app.command()
def restore(
    ctx: typer.Context,
    name: str = typer.Argument(
        None, help="Checkpoint archive name as shown by 'ls' (extension optional)"
    ),
) -> None:
    """Restore a checkpoint over the working directory (overwrites files)."""
    if not name:
        typer.echo("Error: restore requires a checkpoint name (see 'git-checkpoint ls')", err=True)
        raise typer.Exit(1)

    context: CheckpointContext = ctx.obj
    try:
        restored = CheckpointRestorer(context).restore_checkpoint(name)
    except CheckpointError as err:
        raise _fail(err) from err

    typer.echo(f"Restored checkpoint {restored.name} ({restored.file_count} files)")


def main() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    main()
