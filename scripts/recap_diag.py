"""Session Recap diagnostics CLI."""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path

from session_recap.config import RecapSettings
from session_recap.git import GitNotFoundError, GitRunner, GitRunnerError, serialize_result
from session_recap.storage import SessionStore, SessionStoreError, session_to_payload, workspace_id_for
from session_recap.summary import generate_fallback_summary


def load_store(settings: RecapSettings) -> SessionStore:
    workspace = settings.workspace_root.expanduser().resolve()
    store = SessionStore(settings.storage_path.expanduser(), workspace_id=workspace_id_for(workspace))
    if not asyncio.run(store.is_available()):
        print(f"Session storage unavailable: {store.sessions_dir}")
        raise SystemExit(1)
    return store


def _load_or_exit(store: SessionStore, session_id: str):
    session = asyncio.run(store.load_session(session_id))
    if session is None:
        print(f"Session not found: {session_id}")
        raise SystemExit(1)
    return session


def cmd_sessions(args: argparse.Namespace) -> None:
    store = load_store(RecapSettings())
    session_ids = asyncio.run(store.get_all_session_ids())
    if args.json:
        print(json.dumps(session_ids, indent=2))
    else:
        for session_id in session_ids:
            print(session_id)


def cmd_show(args: argparse.Namespace) -> None:
    store = load_store(RecapSettings())
    session = _load_or_exit(store, args.session_id)
    print(json.dumps(session_to_payload(session), indent=2))


def cmd_last(args: argparse.Namespace) -> None:
    store = load_store(RecapSettings())
    session = asyncio.run(store.load_last_session())
    if session is None:
        print("No previous session for this workspace")
        return
    print(json.dumps(session_to_payload(session), indent=2))


def cmd_summary(args: argparse.Namespace) -> None:
    store = load_store(RecapSettings())
    session = _load_or_exit(store, args.session_id)
    print(session.summary or generate_fallback_summary(session))


def cmd_delete(args: argparse.Namespace) -> None:
    store = load_store(RecapSettings())
    try:
        asyncio.run(store.delete_session(args.session_id))
    except SessionStoreError as exc:
        print(str(exc))
        raise SystemExit(1)
    print(f"Deleted {args.session_id}")


def cmd_clear(args: argparse.Namespace) -> None:
    store = load_store(RecapSettings())
    session_ids = asyncio.run(store.get_all_session_ids())
    try:
        asyncio.run(store.clear_all_sessions())
    except SessionStoreError as exc:
        print(str(exc))
        raise SystemExit(1)
    print(f"Deleted {len(session_ids)} session(s)")


def cmd_git(args: argparse.Namespace) -> None:
    settings = RecapSettings()
    try:
        runner = GitRunner(
            settings.workspace_root.expanduser(),
            Path(settings.git_path) if settings.git_path else None,
        )
        results = [asyncio.run(runner.version()), asyncio.run(runner.current_branch())]
    except GitRunnerError as exc:
        label = "git unavailable" if isinstance(exc, GitNotFoundError) else "git failed"
        print(f"{label}: {exc}")
        raise SystemExit(1)
    for result in results:
        print(serialize_result(result))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Session Recap diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_sessions = sub.add_parser("sessions", help="List stored session ids")
    p_sessions.add_argument("--json", action="store_true", help="Output JSON")
    p_sessions.set_defaults(func=cmd_sessions)

    p_show = sub.add_parser("show", help="Print a stored session")
    p_show.add_argument("session_id")
    p_show.set_defaults(func=cmd_show)

    p_last = sub.add_parser("last", help="Print the latest session of this workspace")
    p_last.set_defaults(func=cmd_last)

    p_summary = sub.add_parser("summary", help="Print a session's summary")
    p_summary.add_argument("session_id")
    p_summary.set_defaults(func=cmd_summary)

    p_delete = sub.add_parser("delete", help="Delete a stored session")
    p_delete.add_argument("session_id")
    p_delete.set_defaults(func=cmd_delete)

    p_clear = sub.add_parser("clear", help="Delete every stored session")
    p_clear.set_defaults(func=cmd_clear)

    p_git = sub.add_parser("git", help="Show the git version and current branch")
    p_git.set_defaults(func=cmd_git)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
