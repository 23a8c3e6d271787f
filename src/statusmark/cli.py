"""CLI for statusmark - status tracking for markdown notes."""

import argparse
import asyncio
import inspect
import json
import platform
import sys
from pathlib import Path
from typing import Any

import yaml

from . import __version__
from .config import setup_logging
from .runtime import build_runtime

DEFAULT_NEW_STATUS = "on radar"


def _parse_value(value_str: str) -> Any:
    """Interpret a command-line value as JSON, bool, number or string."""
    if value_str.startswith("{") or value_str.startswith("["):
        try:
            return json.loads(value_str)
        except json.JSONDecodeError:
            return value_str
    if value_str.lower() in ("true", "false"):
        return value_str.lower() == "true"
    try:
        if "." in value_str:
            return float(value_str)
        return int(value_str)
    except ValueError:
        return value_str


def cmd_statuses(args: argparse.Namespace, rt: Any) -> int:
    """List configured status names."""
    statuses = rt.tracker.statuses()
    if args.json:
        print(json.dumps(statuses))
    else:
        for name in statuses:
            print(name)
    return 0


def cmd_set(args: argparse.Namespace, rt: Any) -> int:
    """Set the status of a note."""
    doc = rt.tracker.set_status(args.path, args.status)
    if not args.quiet:
        print(f"{args.path}: {doc.metadata['status']} ({doc.metadata['status date']})")
    return 0


def _default_status(statuses: list[str]) -> str:
    for status in statuses:
        if status.lower() == DEFAULT_NEW_STATUS:
            return status
    return statuses[0] if statuses else DEFAULT_NEW_STATUS


async def cmd_new(args: argparse.Namespace, rt: Any) -> int:
    """Create a new item note."""
    item_type = rt.config.item_type(args.type)
    if item_type is None:
        choices = ", ".join(t.folder for t in rt.config.item_types)
        print(f"Unknown item type '{args.type}' (choose from: {choices})", file=sys.stderr)
        return 1

    status = args.status or _default_status(rt.tracker.statuses())
    path = await rt.tracker.create_item(args.name, status, item_type)
    if not args.quiet:
        print(f"Created {path}")
    return 0


async def cmd_lookup(args: argparse.Namespace, rt: Any) -> int:
    """Look a game up on IGDB."""
    if not rt.config.igdb.configured:
        print("IGDB client id and secret are not configured", file=sys.stderr)
        return 1
    found = await rt.tracker.lookup(args.name)
    if found is None:
        print(f"No IGDB match for '{args.name}'", file=sys.stderr)
        return 1
    if args.json:
        print(json.dumps({"name": found.canonical_name, "thumbnail": found.thumbnail}))
    else:
        print(f"name={found.canonical_name or ''}")
        print(f"thumbnail={found.thumbnail or ''}")
    return 0


async def cmd_refresh(args: argparse.Namespace, rt: Any) -> int:
    """Refresh cover thumbnails for every note in a folder."""
    if not rt.config.igdb.configured:
        print("IGDB client id and secret are not configured", file=sys.stderr)
        return 1
    counts = await rt.tracker.refresh_covers(folder=args.folder, force=args.force)

    if args.json:
        print(json.dumps(counts))
    elif not args.quiet:
        print(f"Scanned: {counts['scanned']}")
        print(f"Updated: {counts['updated']}")
        print(f"Skipped: {counts['skipped']}")
        if counts["failed"] > 0:
            print(f"Failed: {counts['failed']}")
    return 0 if counts["failed"] == 0 else 1


def cmd_meta_get(args: argparse.Namespace, rt: Any) -> int:
    """Get metadata values from a note."""
    doc = rt.vault.get(args.path)
    if doc is None:
        print(f"Note {args.path} not found", file=sys.stderr)
        return 1

    if args.keys:
        for key in args.keys:
            if key in doc.metadata:
                value = doc.metadata[key]
                if args.json:
                    print(json.dumps({key: value}))
                else:
                    print(f"{key}={value}")
            elif not args.quiet:
                print(f"Key '{key}' not found", file=sys.stderr)
    else:
        if args.json:
            print(json.dumps(doc.metadata.to_dict()))
        else:
            for key, value in doc.metadata.items():
                print(f"{key}={value}")
    return 0


def cmd_meta_set(args: argparse.Namespace, rt: Any) -> int:
    """Set metadata values in a note, keeping the rest of the block as written."""
    doc = rt.vault.get(args.path)
    if doc is None:
        print(f"Note {args.path} not found", file=sys.stderr)
        return 1

    for kv in args.pairs:
        if "=" not in kv:
            print(f"Invalid format: {kv}. Expected key=value", file=sys.stderr)
            return 1
        key, _, value_str = kv.partition("=")
        doc.metadata[key.strip()] = _parse_value(value_str.strip())

    rt.vault.put(args.path, doc)
    if not args.quiet:
        print(f"Updated metadata for {args.path}")
    return 0


def cmd_meta_unset(args: argparse.Namespace, rt: Any) -> int:
    """Remove metadata keys from a note."""
    doc = rt.vault.get(args.path)
    if doc is None:
        print(f"Note {args.path} not found", file=sys.stderr)
        return 1

    removed = []
    for key in args.keys:
        if key in doc.metadata:
            del doc.metadata[key]
            removed.append(key)

    if removed:
        rt.vault.put(args.path, doc)
        if not args.quiet:
            print(f"Removed keys: {', '.join(removed)}")
    elif not args.quiet:
        print("No keys removed")
    return 0


def cmd_meta_show(args: argparse.Namespace, rt: Any) -> int:
    """Pretty-print frontmatter for a note."""
    doc = rt.vault.get(args.path)
    if doc is None:
        print(f"Note {args.path} not found", file=sys.stderr)
        return 1

    if doc.handle is not None and doc.metadata:
        print(doc.handle.render(), end="")
    elif doc.metadata:
        print(yaml.dump(doc.metadata.to_dict(), sort_keys=False, allow_unicode=True), end="")
    else:
        print("# No metadata")
    return 0


def cmd_serve(args: argparse.Namespace, rt: Any) -> int:
    """Start local JSON API server."""
    import uvicorn

    from .api.app import create_app, generate_token

    token_arg = getattr(args, "token", "auto")
    token = None

    if token_arg == "auto":
        token = generate_token()
        print(f"Generated bearer token: {token}")
        print(f"Use in requests: Authorization: Bearer {token}")
    elif token_arg == "none":
        print("Warning: Running without authentication. Only use in trusted environments.")
        token = None
    else:
        token = token_arg

    app = create_app(rt, token=token, enable_cors=getattr(args, "cors", False))

    host = getattr(args, "host", "127.0.0.1")
    port = getattr(args, "port", 8766)
    print(f"Starting server on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port, log_level="info")
    return 0


def _version_text() -> str:
    return (
        f"statusmark {__version__}\n"
        f"python {platform.python_version()}\n"
        f"platform {platform.platform()}"
    )


def main() -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="statusmark", description="Status and cover-art frontmatter for markdown notes"
    )
    parser.add_argument(
        "--version", action="version", version=_version_text()
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config file (default: search cwd/statusmark.toml, vault/statusmark.toml)",
    )
    parser.add_argument(
        "--vault",
        type=Path,
        default=None,
        help="Path to vault directory (overrides config)",
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", help="Minimize output"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Debug logging"
    )
    parser.add_argument(
        "--json", action="store_true", help="Machine-readable output"
    )

    subparsers = parser.add_subparsers(dest="cmd", required=True)

    subparsers.add_parser("statuses", help="List configured statuses")

    parser_set = subparsers.add_parser("set", help="Set the status of a note")
    parser_set.add_argument("path", help="Note path relative to the vault")
    parser_set.add_argument("status", help="Status name")

    parser_new = subparsers.add_parser("new", help="Create a new item note")
    parser_new.add_argument("name", help="Item name (becomes the file name)")
    parser_new.add_argument(
        "--type", default="games",
        help="Item type folder or label (default: games)"
    )
    parser_new.add_argument(
        "--status", default=None,
        help="Initial status (default: 'on radar' or the first configured status)"
    )

    parser_lookup = subparsers.add_parser("lookup", help="Look a game up on IGDB")
    parser_lookup.add_argument("name", help="Game name")

    parser_refresh = subparsers.add_parser("refresh", help="Refresh cover thumbnails")
    parser_refresh.add_argument(
        "--folder", default="games",
        help="Folder to refresh (default: games)"
    )
    parser_refresh.add_argument(
        "--force", action="store_true",
        help="Rewrite covers even when already current"
    )

    parser_meta = subparsers.add_parser("meta", help="Manage note metadata")
    meta_sub = parser_meta.add_subparsers(dest="meta_cmd", required=True)
    parser_meta_get = meta_sub.add_parser("get", help="Get metadata values")
    parser_meta_get.add_argument("path")
    parser_meta_get.add_argument("keys", nargs="*")
    parser_meta_set = meta_sub.add_parser("set", help="Set metadata values")
    parser_meta_set.add_argument("path")
    parser_meta_set.add_argument("pairs", nargs="+", help="key=value pairs")
    parser_meta_unset = meta_sub.add_parser("unset", help="Remove metadata keys")
    parser_meta_unset.add_argument("path")
    parser_meta_unset.add_argument("keys", nargs="+")
    parser_meta_show = meta_sub.add_parser("show", help="Pretty-print frontmatter")
    parser_meta_show.add_argument("path")

    parser_serve = subparsers.add_parser("serve", help="Start local JSON API server")
    parser_serve.add_argument(
        "--host", default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)"
    )
    parser_serve.add_argument(
        "--port", type=int, default=8766,
        help="Port to bind to (default: 8766)"
    )
    parser_serve.add_argument(
        "--token", default="auto",
        help="Bearer token (auto|<string>|none, default: auto)"
    )
    parser_serve.add_argument(
        "--cors", action="store_true",
        help="Enable CORS (default: false)"
    )

    args = parser.parse_args()

    rt = build_runtime(vault_path=args.vault, config_path=args.config)
    setup_logging("DEBUG" if args.verbose else rt.config.log.level)

    handlers = {
        "statuses": cmd_statuses,
        "set": cmd_set,
        "new": cmd_new,
        "lookup": cmd_lookup,
        "refresh": cmd_refresh,
        "serve": cmd_serve,
    }

    if args.cmd == "meta":
        meta_handlers = {
            "get": cmd_meta_get,
            "set": cmd_meta_set,
            "unset": cmd_meta_unset,
            "show": cmd_meta_show,
        }
        handler = meta_handlers.get(args.meta_cmd)
    else:
        handler = handlers.get(args.cmd)

    if handler:
        try:
            if inspect.iscoroutinefunction(handler):
                exit_code = asyncio.run(handler(args, rt))
            else:
                exit_code = handler(args, rt)
            sys.exit(exit_code)
        except Exception as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
    else:
        print(f"Unknown command: {args.cmd}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
