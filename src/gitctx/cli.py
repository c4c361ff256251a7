"""Command-line interface: git-ctx (also runs as `git ctx`).

Every subcommand handler receives the opened GitContext and the parsed
arguments and returns a process exit code. GitCtxError subclasses are
mapped to their exit codes in `main`.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from gitctx import render
from gitctx.config import load_config
from gitctx.core import GitContext
from gitctx.editor import edit_text
from gitctx.errors import GitCtxError
from gitctx.model import TaskStatus

logger = logging.getLogger(__name__)


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def add_scope_args(p: argparse.ArgumentParser, default: str) -> None:
    group = p.add_mutually_exclusive_group()
    group.add_argument("--local", dest="scope", action="store_const", const="local", help="local entries only")
    group.add_argument("--shared", dest="scope", action="store_const", const="shared", help="shared entries only")
    group.add_argument("--all", dest="scope", action="store_const", const="all", help="local and shared entries")
    p.add_argument("--json", action="store_true", help="JSON output")
    p.set_defaults(scope=default)


def print_json(obj: object) -> None:
    print(render.to_json(obj))


def _strip_heading(text: str, title: str) -> str:
    """Drop the `# title` line the editor template starts with."""
    first, _, rest = text.partition("\n")
    if first.strip() == f"# {title}".strip():
        return rest
    return text


def _read_content(ctx: GitContext, message: str | None, title: str) -> str:
    if message is not None:
        return message
    if not sys.stdin.isatty():
        return sys.stdin.read()
    return _strip_heading(edit_text(f"# {title}\n\n", ctx.config.editor), title)


# ── Memories ─────────────────────────────────────────────────


def cmd_add(ctx: GitContext, args: argparse.Namespace) -> int:
    title = args.title or " ".join(args.words) or "Untitled"
    content = _read_content(ctx, args.message, title)
    memory = ctx.add_memory(title, content, tags=args.tag, shared=args.shared)
    print(f"Created ({'shared' if memory.shared else 'local'}): {memory.id}")
    return 0


def cmd_list(ctx: GitContext, args: argparse.Namespace) -> int:
    memories = ctx.list_memories(args.scope)
    if args.json:
        print_json([render.memory_json(m) for m in memories])
    else:
        print(render.memory_table(memories))
    return 0


def cmd_show(ctx: GitContext, args: argparse.Namespace) -> int:
    memory = ctx.show_memory(args.id)
    if args.json:
        print_json(render.memory_json(memory))
    else:
        print(render.memory_detail(memory))
    return 0


def cmd_edit(ctx: GitContext, args: argparse.Namespace) -> int:
    content = args.message
    if content is None and args.title is None and not args.tag:
        current = ctx.show_memory(args.id)
        content = edit_text(current.content, ctx.config.editor)
    ctx.edit_memory(args.id, content=content, title=args.title, tags=args.tag or None)
    print(f"Updated: {args.id}")
    return 0


def cmd_rm(ctx: GitContext, args: argparse.Namespace) -> int:
    origin = ctx.remove_memory(args.id)
    print(f"Removed ({origin}): {args.id}")
    return 0


def cmd_search(ctx: GitContext, args: argparse.Namespace) -> int:
    results = ctx.search_memories(args.query, args.scope)
    if args.json:
        print_json([render.memory_json(m) for m in results])
    elif not results:
        print(f"No results for: {args.query}")
    else:
        print(render.search_table(args.query, results))
    return 0


# ── Tasks ────────────────────────────────────────────────────


def cmd_task_add(ctx: GitContext, args: argparse.Namespace) -> int:
    task = ctx.add_task(
        " ".join(args.words),
        args.description,
        shared=args.shared,
        blocked_by=args.blocked_by,
    )
    print(f"Created ({'shared' if task.shared else 'local'}): {task.id}")
    return 0


def _print_tasks(ctx: GitContext, tasks: list, as_json: bool) -> None:
    blocked = ctx.blocked_ids(tasks)
    if as_json:
        print_json([render.task_json(t, is_blocked=t.id in blocked) for t in tasks])
    else:
        print(render.task_table(tasks, blocked))


def cmd_task_list(ctx: GitContext, args: argparse.Namespace) -> int:
    status = TaskStatus(args.status) if args.status else None
    _print_tasks(ctx, ctx.list_tasks(args.scope, status), args.json)
    return 0


def cmd_task_search(ctx: GitContext, args: argparse.Namespace) -> int:
    tasks = ctx.search_tasks(args.query, args.scope)
    if not tasks and not args.json:
        print(f"No results for: {args.query}")
        return 0
    _print_tasks(ctx, tasks, args.json)
    return 0


def cmd_task_show(ctx: GitContext, args: argparse.Namespace) -> int:
    task = ctx.show_task(args.id)
    blocked = ctx.is_blocked(task)
    if args.json:
        print_json(render.task_json(task, is_blocked=blocked))
    else:
        print(render.task_detail(task, is_blocked=blocked))
    return 0


def cmd_task_claim(ctx: GitContext, args: argparse.Namespace) -> int:
    ctx.claim_task(args.id)
    print(f"Claimed: {args.id}")
    return 0


def cmd_task_drop(ctx: GitContext, args: argparse.Namespace) -> int:
    ctx.drop_task(args.id)
    print(f"Dropped: {args.id}")
    return 0


def cmd_task_done(ctx: GitContext, args: argparse.Namespace) -> int:
    ctx.complete_task(args.id)
    print(f"Done: {args.id}")
    return 0


def cmd_task_comment(ctx: GitContext, args: argparse.Namespace) -> int:
    ctx.comment_task(args.id, " ".join(args.message))
    print(f"Comment added to: {args.id}")
    return 0


def cmd_task_block(ctx: GitContext, args: argparse.Namespace) -> int:
    ctx.block_task(args.id, args.blocker)
    print(f"Blocked: {args.id} by {args.blocker}")
    return 0


def cmd_task_unblock(ctx: GitContext, args: argparse.Namespace) -> int:
    ctx.unblock_task(args.id, args.blocker)
    print(f"Unblocked: {args.id} from {args.blocker}")
    return 0


def cmd_task_rm(ctx: GitContext, args: argparse.Namespace) -> int:
    origin = ctx.remove_task(args.id)
    print(f"Removed ({origin}): {args.id}")
    return 0


# ── Locks ────────────────────────────────────────────────────


def cmd_lock(ctx: GitContext, args: argparse.Namespace) -> int:
    lock = ctx.lock(args.target, shared=args.shared)
    print(f"Locked ({'shared' if lock.shared else 'local'}): {lock.target}")
    return 0


def cmd_unlock(ctx: GitContext, args: argparse.Namespace) -> int:
    if args.target:
        origin = ctx.unlock(args.target)
        print(f"Unlocked ({origin}): {args.target}")
        return 0
    released = ctx.unlock_all()
    for lock in released:
        print(f"Unlocked ({'shared' if lock.shared else 'local'}): {lock.target}")
    if not released:
        print("No locks to release")
    return 0


def cmd_locks(ctx: GitContext, args: argparse.Namespace) -> int:
    locks = ctx.list_locks(args.scope, include_expired=args.expired)
    if args.json:
        print_json([render.lock_json(lock) for lock in locks])
    elif not locks:
        print("No active locks")
    else:
        print(render.lock_table(locks))
    return 0


# ── Sync ─────────────────────────────────────────────────────


def cmd_push(ctx: GitContext, args: argparse.Namespace) -> int:
    result = ctx.push()
    print(f"Pushed {ctx.config.sync.ref} to {ctx.config.sync.remote} ({(result.commit or '')[:12]})")
    return 0


def cmd_pull(ctx: GitContext, args: argparse.Namespace) -> int:
    result = ctx.pull()
    print(f"Pulled from {ctx.config.sync.remote}: {result.added} added, {result.updated} updated")
    for path in result.conflicts:
        print(f"  kept local changes: {path}")
    return 0


# ── Parser ───────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="git-ctx", description="Shared context for humans and AI agents, stored in git")
    p.add_argument("--config", help="path to gitctx.toml")
    p.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_add = sub.add_parser("add", help="add a context entry")
    p_add.add_argument("words", nargs="*", help="title")
    p_add.add_argument("-t", "--title")
    p_add.add_argument("-m", "--message", help="content (default: stdin or $EDITOR)")
    p_add.add_argument("--tag", action="append", default=[])
    p_add.add_argument("--shared", action="store_true", help="store in shared context")
    p_add.set_defaults(func=cmd_add)

    p_list = sub.add_parser("list", help="list context entries")
    add_scope_args(p_list, "local")
    p_list.set_defaults(func=cmd_list)

    p_show = sub.add_parser("show", help="show a context entry")
    p_show.add_argument("id")
    p_show.add_argument("--json", action="store_true")
    p_show.set_defaults(func=cmd_show)

    p_edit = sub.add_parser("edit", help="edit a context entry")
    p_edit.add_argument("id")
    p_edit.add_argument("-m", "--message", help="new content (default: $EDITOR)")
    p_edit.add_argument("-t", "--title")
    p_edit.add_argument("--tag", action="append", default=[])
    p_edit.set_defaults(func=cmd_edit)

    p_rm = sub.add_parser("rm", help="remove a context entry")
    p_rm.add_argument("id")
    p_rm.set_defaults(func=cmd_rm)

    p_search = sub.add_parser("search", help="search context entries")
    p_search.add_argument("query")
    add_scope_args(p_search, "all")
    p_search.set_defaults(func=cmd_search)

    # task
    p_task = sub.add_parser("task", help="manage tasks")
    task_sub = p_task.add_subparsers(dest="task_cmd", required=True)

    t_add = task_sub.add_parser("add", help="create a task")
    t_add.add_argument("words", nargs="+", help="title")
    t_add.add_argument("-d", "--description", default="")
    t_add.add_argument("--blocked-by", action="append", default=[], metavar="ID")
    t_add.add_argument("--shared", action="store_true")
    t_add.set_defaults(func=cmd_task_add)

    t_list = task_sub.add_parser("list", help="list tasks")
    t_list.add_argument("--status", choices=[s.value for s in TaskStatus])
    add_scope_args(t_list, "local")
    t_list.set_defaults(func=cmd_task_list)

    t_search = task_sub.add_parser("search", help="search tasks")
    t_search.add_argument("query")
    add_scope_args(t_search, "all")
    t_search.set_defaults(func=cmd_task_search)

    t_show = task_sub.add_parser("show", help="show task details")
    t_show.add_argument("id")
    t_show.add_argument("--json", action="store_true")
    t_show.set_defaults(func=cmd_task_show)

    for name, func, help_text in (
        ("claim", cmd_task_claim, "claim a task"),
        ("drop", cmd_task_drop, "release a claimed task"),
        ("done", cmd_task_done, "mark a task done"),
        ("rm", cmd_task_rm, "remove a task"),
    ):
        t_cmd = task_sub.add_parser(name, help=help_text)
        t_cmd.add_argument("id")
        t_cmd.set_defaults(func=func)

    t_comment = task_sub.add_parser("comment", help="comment on a task")
    t_comment.add_argument("id")
    t_comment.add_argument("message", nargs="+")
    t_comment.set_defaults(func=cmd_task_comment)

    for name, func, help_text in (
        ("block", cmd_task_block, "mark a task as blocked by another"),
        ("unblock", cmd_task_unblock, "remove a blocking dependency"),
    ):
        t_dep = task_sub.add_parser(name, help=help_text)
        t_dep.add_argument("id")
        t_dep.add_argument("blocker")
        t_dep.set_defaults(func=func)

    # locks
    p_lock = sub.add_parser("lock", help="claim a file, directory or task")
    p_lock.add_argument("target")
    p_lock.add_argument("--shared", action="store_true")
    p_lock.set_defaults(func=cmd_lock)

    p_unlock = sub.add_parser("unlock", help="release a lock (all of yours without a target)")
    p_unlock.add_argument("target", nargs="?")
    p_unlock.set_defaults(func=cmd_unlock)

    p_locks = sub.add_parser("locks", help="list locks")
    p_locks.add_argument("--expired", action="store_true", help="include expired locks")
    add_scope_args(p_locks, "all")
    p_locks.set_defaults(func=cmd_locks)

    # sync
    sub.add_parser("push", help="push shared context to the remote").set_defaults(func=cmd_push)
    sub.add_parser("pull", help="pull shared context from the remote").set_defaults(func=cmd_pull)
    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        config = load_config(Path(args.config) if args.config else None)
        _setup_logging("DEBUG" if args.verbose else config.log_level)
        ctx = GitContext.open(config)
        return args.func(ctx, args)
    except GitCtxError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return e.exit_code
