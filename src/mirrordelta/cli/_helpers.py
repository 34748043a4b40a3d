"""Shared helpers, option decorators, and the main CLI group."""

from __future__ import annotations

import json

import click

from ..changes import ChangeSet, DeletionPolicy, Full
from ..events import StructlogSink
from ..exceptions import InvalidBasePath, MirrorError
from ..logging_config import configure_logging
from ..walk import _normalize_base


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _status(ctx, msg):
    """Emit a status message to stderr when verbose mode (-v) is on."""
    if ctx.obj.get("verbose"):
        click.echo(msg, err=True)


def _store_path(ctx, param, value):
    """Click callback: store --path value in the context."""
    ctx.ensure_object(dict)
    if value is not None:
        ctx.obj["mirror_path"] = value
    return value


def _path_option(f):
    """Shared --path/-p option decorator for all commands."""
    return click.option(
        "--path", "-p", type=click.Path(file_okay=False), envvar="MIRRORDELTA_PATH",
        help="Local mirror directory (or set MIRRORDELTA_PATH).",
        expose_value=False, callback=_store_path, is_eager=True,
    )(f)


def _require_path(ctx) -> str:
    """Get the mirror path from context, raising a clear error if missing."""
    path = ctx.obj.get("mirror_path")
    if not path:
        raise click.ClickException(
            "No mirror path specified. Use --path or set MIRRORDELTA_PATH."
        )
    return path


def _check_base(ctx, param, value):
    """Click callback: reject a --base that escapes the repository."""
    try:
        _normalize_base(value)
    except InvalidBasePath as exc:
        raise click.BadParameter(str(exc))
    return value


def _change_options(f):
    """Options shared by commands that report a change set."""
    f = click.option("--json", "as_json", is_flag=True, default=False,
                     help="Print the result as a JSON object.")(f)
    f = click.option("--list", "list_files", is_flag=True, default=False,
                     help="Print the files to ingest, one per line.")(f)
    f = click.option("--base", default=None, callback=_check_base,
                     help="Only list files under this repository sub-directory.")(f)
    f = click.option("--require-ancestor", is_flag=True, default=False,
                     help="Fail if the continuation is not an ancestor of the head.")(f)
    f = click.option("--include-deletions", is_flag=True, default=False,
                     help="Report deleted files as changed.")(f)
    return f


def _deletion_policy(include_deletions: bool) -> DeletionPolicy:
    return DeletionPolicy.INCLUDE if include_deletions else DeletionPolicy.OMIT


def _sink(ctx) -> StructlogSink:
    """Configure logging for this invocation and return the event sink."""
    level = "debug" if ctx.obj.get("verbose") else None
    configure_logging(level, json_logs=ctx.obj.get("log_json", False))
    return StructlogSink()


def _fail(exc: MirrorError) -> click.ClickException:
    return click.ClickException(str(exc))


def _print_result(ctx, head: str, change_set: ChangeSet, *, created: bool | None,
                  paths: list[str] | None, as_json: bool) -> None:
    """Print the continuation token (and optionally the files to ingest)."""
    full = isinstance(change_set, Full)
    if full:
        _status(ctx, "No continuation: ingest all files")
    else:
        _status(ctx, f"Detected {change_set.count} changed file(s)")

    if as_json:
        payload = {
            "continuation": head,
            "mode": "full" if full else "incremental",
            "count": change_set.count,
        }
        if created is not None:
            payload["created"] = created
        if paths is not None:
            payload["paths"] = paths
        click.echo(json.dumps(payload))
        return

    for path in paths or ():
        click.echo(path)
    click.echo(head)


# ---------------------------------------------------------------------------
# Main group
# ---------------------------------------------------------------------------

@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose output on stderr.")
@click.option("--log-json", is_flag=True, help="Emit log events as JSON lines.")
@click.pass_context
def main(ctx, verbose, log_json):
    """mirrordelta — incremental change detection for a mirrored repository.

    Keeps a local clone identical to its remote and reports which files
    changed since a previous run's continuation token.

    \b
    Quick start:
      mirrordelta sync -p cvelist
      mirrordelta sync -p cvelist -c <token printed by the last run>
      mirrordelta diff -p cvelist -c <token> --list

    \b
    The last line printed by sync/diff is the continuation token
    for the next run.  Set MIRRORDELTA_LOG to change the log level.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["log_json"] = log_json
