"""sync, diff and head commands."""

from __future__ import annotations

import click

from ..changes import compute
from ..checkpoint import resolve
from ..exceptions import MirrorError
from ..mirror import open_mirror
from ..sync import DEFAULT_SOURCE, SyncConfig, run
from ..walk import iter_files
from ._helpers import (
    main,
    _change_options,
    _deletion_policy,
    _fail,
    _path_option,
    _print_result,
    _require_path,
    _sink,
)


# ---------------------------------------------------------------------------
# sync
# ---------------------------------------------------------------------------

@main.command("sync")
@_path_option
@click.option("--source", "-s", default=DEFAULT_SOURCE, show_default=True,
              envvar="MIRRORDELTA_SOURCE", help="Remote repository URL.")
@click.option("--continuation", "-c", default=None, envvar="MIRRORDELTA_CONTINUATION",
              help="Continuation token from a previous run.")
@_change_options
@click.pass_context
def sync_cmd(ctx, source, continuation, include_deletions, require_ancestor,
             base, list_files, as_json):
    """Clone or update the mirror, then report changes since CONTINUATION.

    Without --continuation every file counts as changed.  Local changes in
    the mirror are discarded.
    """
    config = SyncConfig(
        path=_require_path(ctx),
        source=source,
        continuation=continuation,
        deletions=_deletion_policy(include_deletions),
        require_ancestor=require_ancestor,
    )
    listed: list[str] = []

    def walker(mirror, change_set):
        listed.extend(iter_files(mirror, change_set, base))

    try:
        result = run(config, sink=_sink(ctx), walker=walker if list_files else None)
    except MirrorError as exc:
        raise _fail(exc)
    _print_result(
        ctx, result.continuation, result.change_set,
        created=result.mirror_created,
        paths=listed if list_files else None,
        as_json=as_json,
    )


# ---------------------------------------------------------------------------
# diff
# ---------------------------------------------------------------------------

@main.command("diff")
@_path_option
@click.option("--continuation", "-c", default=None, envvar="MIRRORDELTA_CONTINUATION",
              help="Continuation token from a previous run.")
@_change_options
@click.pass_context
def diff_cmd(ctx, continuation, include_deletions, require_ancestor,
             base, list_files, as_json):
    """Report changes in an existing mirror without contacting the remote."""
    path = _require_path(ctx)
    sink = _sink(ctx)
    try:
        with open_mirror(path) as mirror:
            start = resolve(mirror, continuation, require_ancestor=require_ancestor, sink=sink)
            change_set = compute(mirror, start, deletions=_deletion_policy(include_deletions), sink=sink)
            paths = list(iter_files(mirror, change_set, base)) if list_files else None
            head = str(mirror.head)
    except MirrorError as exc:
        raise _fail(exc)
    _print_result(ctx, head, change_set, created=None, paths=paths, as_json=as_json)


# ---------------------------------------------------------------------------
# head
# ---------------------------------------------------------------------------

@main.command("head")
@_path_option
@click.pass_context
def head_cmd(ctx):
    """Print the commit an existing mirror is at."""
    try:
        with open_mirror(_require_path(ctx)) as mirror:
            click.echo(str(mirror.head))
    except MirrorError as exc:
        raise _fail(exc)
