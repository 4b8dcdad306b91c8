"""Click CLI entrypoint — `dot <subcommand>`.

Every call is stateless: the store is re-read from disk each time.
JSON output by default, --human for text. Bare `dot` lists ready work and
`dot "title"` is short for `dot add "title"`.
"""

from __future__ import annotations

import logging
from pathlib import Path

import click

from dots.config import load_config
from dots.defaults import MAX_PRIORITY, MIN_PRIORITY, resolve_dots_dir
from dots.output import output as _output

PRIORITY = click.IntRange(MIN_PRIORITY, MAX_PRIORITY)


def _root(ctx: click.Context) -> Path:
    return ctx.obj["root"]


class QuickAddGroup(click.Group):
    """Group where an unknown first word is a title for `add` (`dot "Fix bug"`)."""

    def resolve_command(self, ctx, args):
        if args and not args[0].startswith("-") and self.get_command(ctx, args[0]) is None:
            return "add", self.get_command(ctx, "add"), args
        return super().resolve_command(ctx, args)


@click.group(cls=QuickAddGroup, invoke_without_command=True)
@click.version_option(package_name="dots-cli")
@click.option("-C", "project_dir", default=None, type=click.Path(file_okay=False), help="Run as if started in this directory")
@click.option("--human", is_flag=True, help="Human-readable output instead of JSON")
@click.option("--verbose", is_flag=True, help="Debug logging on stderr")
@click.pass_context
def cli(ctx: click.Context, project_dir: str | None, human: bool, verbose: bool) -> None:
    """dot — issues, plans and milestones as markdown files under .dots/."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["human"] = human
    ctx.obj["root"] = resolve_dots_dir(project_dir)
    try:
        load_config(ctx.obj["root"])
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    if ctx.invoked_subcommand is None:
        from dots.issues import ready as _ready
        _output(_ready(root=_root(ctx)), human)


# =========================================================================
# Issues
# =========================================================================

@cli.command()
@click.argument("title")
@click.option("-d", "--description", default="")
@click.option("-p", "--priority", type=PRIORITY, default=None, help="0 (critical) to 4 (backlog)")
@click.option("-P", "--parent", default=None, help="Parent issue ID")
@click.option("-a", "--after", multiple=True, help="Blocked until this issue closes (repeatable)")
@click.option("--assignee", default=None)
@click.pass_context
def add(ctx: click.Context, title: str, description: str, priority: int | None,
        parent: str | None, after: tuple[str, ...], assignee: str | None) -> None:
    """Create an issue."""
    from dots.issues import add as _add
    _output(_add(title, description, priority, parent, after, assignee, root=_root(ctx)), ctx.obj["human"])


@cli.command("ls")
@click.option("-s", "--status", default=None, help="open, active or closed")
@click.option("-k", "--kind", default=None, help="task, plan or milestone")
@click.option("--all", "include_done", is_flag=True, help="Include done/ and archive/")
@click.option("--backlog", "include_backlog", is_flag=True, help="Include backlogged plans")
@click.pass_context
def ls(ctx: click.Context, status: str | None, kind: str | None, include_done: bool, include_backlog: bool) -> None:
    """List issues in the active tree."""
    from dots.issues import list_issues
    _output(list_issues(status, kind, include_done, include_backlog, root=_root(ctx)), ctx.obj["human"])


@cli.command()
@click.argument("ids", nargs=-1, required=True)
@click.pass_context
def on(ctx: click.Context, ids: tuple[str, ...]) -> None:
    """Start working on issues (mark active)."""
    from dots.issues import start
    _output(start(ids, root=_root(ctx)), ctx.obj["human"])


@cli.command()
@click.argument("ids", nargs=-1, required=True)
@click.option("-r", "--reason", default=None, help="Close reason")
@click.pass_context
def off(ctx: click.Context, ids: tuple[str, ...], reason: str | None) -> None:
    """Close issues; they move to done/ or archive/."""
    from dots.issues import close
    _output(close(ids, reason, root=_root(ctx)), ctx.obj["human"])


@cli.command("rm")
@click.argument("issue")
@click.pass_context
def rm(ctx: click.Context, issue: str) -> None:
    """Delete an issue and its whole subtree."""
    from dots.issues import delete
    _output(delete(issue, root=_root(ctx)), ctx.obj["human"])


@cli.command()
@click.argument("issue")
@click.pass_context
def show(ctx: click.Context, issue: str) -> None:
    """Show one issue with its children and blockers."""
    from dots.issues import show as _show
    _output(_show(issue, root=_root(ctx)), ctx.obj["human"])


@cli.command()
@click.argument("issue")
@click.option("-s", "--status", default=None, help="open, active or closed")
@click.option("-t", "--title", default=None)
@click.option("-p", "--priority", type=PRIORITY, default=None)
@click.option("--assignee", default=None)
@click.option("-d", "--description", default=None)
@click.option("-r", "--reason", default=None, help="Close reason when closing")
@click.pass_context
def update(ctx: click.Context, issue: str, status: str | None, title: str | None, priority: int | None,
           assignee: str | None, description: str | None, reason: str | None) -> None:
    """Edit an issue's fields or status."""
    from dots.issues import update as _update
    _output(_update(issue, status, title, priority, assignee, description, reason, root=_root(ctx)), ctx.obj["human"])


@cli.command()
@click.pass_context
def ready(ctx: click.Context) -> None:
    """Open issues with no open blockers."""
    from dots.issues import ready as _ready
    _output(_ready(root=_root(ctx)), ctx.obj["human"])


@cli.command()
@click.argument("issue", required=False)
@click.pass_context
def tree(ctx: click.Context, issue: str | None) -> None:
    """Hierarchy of open roots, or of one issue including closed children."""
    from dots.issues import tree as _tree
    _output(_tree(issue, root=_root(ctx)), ctx.obj["human"])


@cli.command()
@click.argument("query")
@click.pass_context
def find(ctx: click.Context, query: str) -> None:
    """Search titles, bodies, close reasons and dates."""
    from dots.issues import find as _find
    _output(_find(query, root=_root(ctx)), ctx.obj["human"])


@cli.command()
@click.argument("prefix")
@click.pass_context
def resolve(ctx: click.Context, prefix: str) -> None:
    """Expand a short ID."""
    from dots.issues import resolve_id
    _output(resolve_id(prefix, root=_root(ctx)), ctx.obj["human"])


@cli.command()
@click.argument("issue")
@click.argument("blocker")
@click.pass_context
def block(ctx: click.Context, issue: str, blocker: str) -> None:
    """ISSUE waits until BLOCKER closes."""
    from dots.issues import block as _block
    _output(_block(issue, blocker, root=_root(ctx)), ctx.obj["human"])


@cli.command()
@click.argument("issue")
@click.argument("blocker")
@click.pass_context
def unblock(ctx: click.Context, issue: str, blocker: str) -> None:
    """Remove a blocking edge."""
    from dots.issues import unblock as _unblock
    _output(_unblock(issue, blocker, root=_root(ctx)), ctx.obj["human"])


# Backwards-compat aliases
cli.add_command(add, "create")
cli.add_command(ls, "list")
cli.add_command(on, "it")
cli.add_command(off, "done")
cli.add_command(off, "close")
cli.add_command(rm, "delete")


# =========================================================================
# Plans
# =========================================================================

@cli.command()
@click.argument("title")
@click.option("-s", "--scope", default=None)
@click.option("-a", "--acceptance", default=None)
@click.option("-p", "--priority", type=PRIORITY, default=None)
@click.pass_context
def plan(ctx: click.Context, title: str, scope: str | None, acceptance: str | None, priority: int | None) -> None:
    """Create a plan."""
    from dots.issues import create_plan
    _output(create_plan(title, scope, acceptance, priority, root=_root(ctx)), ctx.obj["human"])


@cli.command()
@click.argument("plan_id")
@click.argument("title")
@click.option("-d", "--description", default=None)
@click.option("-p", "--priority", type=PRIORITY, default=None)
@click.pass_context
def milestone(ctx: click.Context, plan_id: str, title: str, description: str | None, priority: int | None) -> None:
    """Add a milestone to a plan."""
    from dots.issues import add_milestone
    _output(add_milestone(plan_id, title, description, priority, root=_root(ctx)), ctx.obj["human"])


@cli.command()
@click.argument("milestone_id")
@click.argument("title")
@click.option("-d", "--description", default=None)
@click.option("-p", "--priority", type=PRIORITY, default=None)
@click.option("-a", "--after", multiple=True, help="Blocked until this issue closes (repeatable)")
@click.pass_context
def task(ctx: click.Context, milestone_id: str, title: str, description: str | None,
         priority: int | None, after: tuple[str, ...]) -> None:
    """Add a task to a milestone."""
    from dots.issues import add_task
    _output(add_task(milestone_id, title, description, priority, after, root=_root(ctx)), ctx.obj["human"])


@cli.command()
@click.argument("issue")
@click.argument("message")
@click.pass_context
def progress(ctx: click.Context, issue: str, message: str) -> None:
    """Log a progress entry."""
    from dots.issues import progress as _progress
    _output(_progress(issue, message, root=_root(ctx)), ctx.obj["human"])


@cli.command()
@click.argument("issue")
@click.argument("observation")
@click.option("-e", "--evidence", default=None)
@click.pass_context
def discover(ctx: click.Context, issue: str, observation: str, evidence: str | None) -> None:
    """Log a surprise or discovery."""
    from dots.issues import discover as _discover
    _output(_discover(issue, observation, evidence, root=_root(ctx)), ctx.obj["human"])


@cli.command()
@click.argument("issue")
@click.argument("decision")
@click.option("-r", "--rationale", default=None)
@click.pass_context
def decide(ctx: click.Context, issue: str, decision: str, rationale: str | None) -> None:
    """Log a decision."""
    from dots.issues import decide as _decide
    _output(_decide(issue, decision, rationale, root=_root(ctx)), ctx.obj["human"])


@cli.command()
@click.argument("plan_id")
@click.pass_context
def backlog(ctx: click.Context, plan_id: str) -> None:
    """Park a plan under backlog/."""
    from dots.issues import move_to_backlog
    _output(move_to_backlog(plan_id, root=_root(ctx)), ctx.obj["human"])


@cli.command()
@click.argument("plan_id")
@click.pass_context
def activate(ctx: click.Context, plan_id: str) -> None:
    """Bring a plan back from backlog/."""
    from dots.issues import activate_plan
    _output(activate_plan(plan_id, root=_root(ctx)), ctx.obj["human"])


# =========================================================================
# Store maintenance
# =========================================================================

@cli.command()
@click.option("--from-jsonl", "from_jsonl", default=None, type=click.Path(dir_okay=False), help="Import a JSONL export")
@click.pass_context
def init(ctx: click.Context, from_jsonl: str | None) -> None:
    """Create .dots/ (and optionally import issues)."""
    from dots.issues import init_store
    _output(init_store(from_jsonl, root=_root(ctx)), ctx.obj["human"])


@cli.command()
@click.argument("issue")
@click.pass_context
def archive(ctx: click.Context, issue: str) -> None:
    """Move an already-closed issue to its closed location."""
    from dots.issues import archive as _archive
    _output(_archive(issue, root=_root(ctx)), ctx.obj["human"])


@cli.command()
@click.pass_context
def purge(ctx: click.Context) -> None:
    """Delete everything under archive/."""
    from dots.issues import purge as _purge
    _output(_purge(root=_root(ctx)), ctx.obj["human"])


@cli.command()
@click.pass_context
def fix(ctx: click.Context) -> None:
    """Flatten orphan directories."""
    from dots.issues import fix as _fix
    result = _fix(root=_root(ctx))
    if ctx.obj["human"] and "error" not in result:
        click.echo(f"Fixed {result['fixed_dirs']} orphan parent(s), moved {result['moved_files']} file(s)")
        return
    _output(result, ctx.obj["human"])


@cli.command()
@click.argument("source", required=False, type=click.Path(file_okay=False))
@click.pass_context
def migrate(ctx: click.Context, source: str | None) -> None:
    """Turn ExecPlan markdown files into plans (default .agent/execplans)."""
    from dots.issues import migrate as _migrate
    _output(_migrate(source, root=_root(ctx)), ctx.obj["human"])


@cli.command()
@click.option("--dry-run", is_flag=True, help="Show the ID mapping without writing")
@click.pass_context
def restructure(ctx: click.Context, dry_run: bool) -> None:
    """Convert legacy hash-ID plans to the plan/milestone/task layout."""
    from dots.issues import restructure as _restructure
    _output(_restructure(dry_run, root=_root(ctx)), ctx.obj["human"])


# =========================================================================
# Agent hooks
# =========================================================================

@cli.group()
def hook() -> None:
    """Agent integration hooks."""


@hook.command("session")
@click.pass_context
def hook_session(ctx: click.Context) -> None:
    """Print open plans, active and ready work for a new session."""
    from dots.hooks import format_session
    from dots.issues import hook_session as _hook_session
    result = _hook_session(root=_root(ctx))
    if "error" in result:
        _output(result)
        return
    text = format_session(result)
    if text:
        click.echo(text)


@hook.command("sync")
@click.pass_context
def hook_sync(ctx: click.Context) -> None:
    """Sync a TodoWrite event from stdin. No input within 100ms is a no-op."""
    from dots.hooks import read_piped_stdin
    from dots.issues import hook_sync as _hook_sync
    payload = read_piped_stdin()
    if not payload or not payload.strip():
        return
    _output(_hook_sync(payload, root=_root(ctx)), ctx.obj["human"])
