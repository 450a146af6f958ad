"""CharStats CLI: manage character stats from the command line.

Usage:
    charstats set Height 6 --unit ft --character Alex
    charstats observe "Alex gained strength." --character Alex
    charstats inject payload.json --url /api/chat/completions --character Alex
    charstats compare --character Alex
    charstats extract "strength increased to 20"
    charstats version
"""

import argparse
import json
import logging
import sys

from . import __version__
from .app import StatsApp
from .context import StaticHostContext
from .errors import InvalidGrowth, NothingToCompare
from .extractor import extract_stat_changes
from .store import DEFAULT_STATS
from .types import CharacterInfo, OutboundRequest

DEFAULT_DB = ".charstats/stats.db"


def _open_app(args: argparse.Namespace) -> StatsApp:
    """Build the app from --db and --character."""
    character = CharacterInfo(name=args.character) if args.character else None
    return StatsApp.from_path(args.db, host=StaticHostContext(character))


def _records_json(app: StatsApp) -> dict:
    return {
        "scope": app.active_scope(),
        "stats": [
            {"key": r.key, "name": r.name, "value": r.value, "unit": r.unit}
            for r in app.snapshot()
        ],
    }


def _print(data: dict) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def cmd_extract(args: argparse.Namespace) -> int:
    """Show what the extraction rules find, without touching any store."""
    changes = extract_stat_changes(args.text)
    _print({
        "changes": [
            {
                "rule": c.rule,
                "key": c.key,
                "name": c.name,
                "value": c.value,
                "create_only": c.create_only,
            }
            for c in changes
        ]
    })
    return 0


def cmd_observe(args: argparse.Namespace) -> int:
    """Apply chat text to the active character's stats."""
    app = _open_app(args)
    try:
        applied = app.observe_chat(args.text)
        _print({"applied": [c.key for c in applied], **_records_json(app)})
    finally:
        app.close()
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    app = _open_app(args)
    try:
        _print(_records_json(app))
    finally:
        app.close()
    return 0


def cmd_set(args: argparse.Namespace) -> int:
    app = _open_app(args)
    try:
        app.store.add_stat(app.active_scope(), args.name, args.value, args.unit)
        _print(_records_json(app))
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        app.close()
    return 0


def cmd_edit(args: argparse.Namespace) -> int:
    app = _open_app(args)
    try:
        app.store.edit_stat(app.active_scope(), args.key, args.name, args.value, args.unit)
        _print(_records_json(app))
    except KeyError:
        print(f"Error: no stat with key {args.key!r}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        app.close()
    return 0


def cmd_delete(args: argparse.Namespace) -> int:
    app = _open_app(args)
    try:
        deleted = app.store.delete_record(app.active_scope(), args.key)
        _print({"deleted": deleted, **_records_json(app)})
    finally:
        app.close()
    return 0 if deleted else 1


def cmd_reset(args: argparse.Namespace) -> int:
    app = _open_app(args)
    try:
        count = app.store.reset_scope(app.active_scope())
        _print({"cleared": count, **_records_json(app)})
    finally:
        app.close()
    return 0


def cmd_grow(args: argparse.Namespace) -> int:
    app = _open_app(args)
    try:
        count = app.store.grow_stats(app.active_scope(), args.percent)
        _print({"grown": count, **_records_json(app)})
    except InvalidGrowth as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        app.close()
    return 0


def cmd_default(args: argparse.Namespace) -> int:
    app = _open_app(args)
    try:
        added = app.store.add_default_stat(app.active_scope(), args.name)
        _print({"added": added, **_records_json(app)})
    finally:
        app.close()
    return 0


def cmd_compare(args: argparse.Namespace) -> int:
    app = _open_app(args)
    try:
        report = app.compare()
    except NothingToCompare as e:
        print(f"Nothing to compare: {e}")
        return 1
    finally:
        app.close()
    print(report.render())
    return 0


def cmd_summary(args: argparse.Namespace) -> int:
    app = _open_app(args)
    try:
        text = app.summary()
    finally:
        app.close()
    if not text:
        print("No stats to copy", file=sys.stderr)
        return 1
    print(text)
    return 0


def cmd_inject(args: argparse.Namespace) -> int:
    """Run a JSON request body through the injection pipeline."""
    if args.payload == "-":
        body = sys.stdin.read()
    else:
        with open(args.payload, "r", encoding="utf-8") as f:
            body = f.read()

    app = _open_app(args)
    try:
        result = app.prepare_request(OutboundRequest(method=args.method, url=args.url, body=body))
    finally:
        app.close()

    if args.body_only:
        print(result.request.body)
        return 0
    _print({
        "intercepted": result.intercepted,
        "injected": result.injected,
        "target": result.target,
        "reason": result.reason,
        "body": result.request.body,
    })
    return 0


def cmd_prefs(args: argparse.Namespace) -> int:
    app = _open_app(args)
    try:
        if args.enabled is not None or args.auto_inject is not None or args.role:
            app.preferences.update(
                enabled=args.enabled,
                auto_inject=args.auto_inject,
                inject_role=args.role,
            )
        _print(app.preferences.prefs.to_dict())
    finally:
        app.close()
    return 0


def cmd_version(_args: argparse.Namespace) -> int:
    """Print the version."""
    print(f"charstats {__version__}")
    return 0


def _on_off(value: str) -> bool:
    lowered = value.lower()
    if lowered in ("on", "true", "yes", "1"):
        return True
    if lowered in ("off", "false", "no", "0"):
        return False
    raise argparse.ArgumentTypeError(f"expected on/off, got {value!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="charstats",
        description="CharStats: character stat tracking for conversational AI",
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--db",
        default=DEFAULT_DB,
        help=f"Path to the SQLite database (default: {DEFAULT_DB})",
    )
    common.add_argument(
        "--character", "-c",
        default=None,
        help="Active character name; omit to use the global scope",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    sub = parser.add_subparsers(dest="command")

    # charstats extract
    p_extract = sub.add_parser("extract", help="Show stat changes found in text")
    p_extract.add_argument("text", help="Chat text to scan")
    p_extract.set_defaults(func=cmd_extract)

    # charstats observe
    p_observe = sub.add_parser("observe", parents=[common], help="Apply stat changes from chat text")
    p_observe.add_argument("text", help="Chat text to scan")
    p_observe.set_defaults(func=cmd_observe)

    # charstats list
    p_list = sub.add_parser("list", parents=[common], help="List stats of the active scope")
    p_list.set_defaults(func=cmd_list)

    # charstats set
    p_set = sub.add_parser("set", parents=[common], help="Add or overwrite a stat")
    p_set.add_argument("name", help="Display name, e.g. Height")
    p_set.add_argument("value", help="Value; a leading number makes it numeric")
    p_set.add_argument("--unit", "-u", default="", help="Unit suffix, e.g. ft")
    p_set.set_defaults(func=cmd_set)

    # charstats edit
    p_edit = sub.add_parser("edit", parents=[common], help="Edit a stat in place (key stays)")
    p_edit.add_argument("key", help="Stat key, e.g. height")
    p_edit.add_argument("name", help="New display name")
    p_edit.add_argument("value", help="New value")
    p_edit.add_argument("--unit", "-u", default="", help="New unit suffix")
    p_edit.set_defaults(func=cmd_edit)

    # charstats delete
    p_delete = sub.add_parser("delete", parents=[common], help="Delete a stat")
    p_delete.add_argument("key", help="Stat key")
    p_delete.set_defaults(func=cmd_delete)

    # charstats reset
    p_reset = sub.add_parser("reset", parents=[common], help="Clear all stats of the active scope")
    p_reset.set_defaults(func=cmd_reset)

    # charstats grow
    p_grow = sub.add_parser("grow", parents=[common], help="Scale every numeric stat by a percentage")
    p_grow.add_argument("percent", type=float, help="Growth percentage, e.g. 5 or -10")
    p_grow.set_defaults(func=cmd_grow)

    # charstats default
    p_default = sub.add_parser("default", parents=[common], help="Add a default stat")
    p_default.add_argument("name", choices=[name.lower() for name, _ in DEFAULT_STATS])
    p_default.set_defaults(func=cmd_default)

    # charstats compare
    p_compare = sub.add_parser("compare", parents=[common], help="Compare the first numeric stat to known objects")
    p_compare.set_defaults(func=cmd_compare)

    # charstats summary
    p_summary = sub.add_parser("summary", parents=[common], help="Print the injected stats summary")
    p_summary.set_defaults(func=cmd_summary)

    # charstats inject
    p_inject = sub.add_parser("inject", parents=[common], help="Inject stats into a JSON request body")
    p_inject.add_argument("payload", help="Path to the JSON body, or - for stdin")
    p_inject.add_argument("--url", default="/api/chat/completions", help="Request URL (default: /api/chat/completions)")
    p_inject.add_argument("--method", default="POST", help="HTTP method (default: POST)")
    p_inject.add_argument("--body-only", action="store_true", help="Print only the resulting body")
    p_inject.set_defaults(func=cmd_inject)

    # charstats prefs
    p_prefs = sub.add_parser("prefs", parents=[common], help="Show or change preferences")
    p_prefs.add_argument("--enabled", type=_on_off, default=None, help="on/off")
    p_prefs.add_argument("--auto-inject", type=_on_off, default=None, help="on/off")
    p_prefs.add_argument("--role", choices=["system", "user"], default=None, help="Role of injected messages")
    p_prefs.set_defaults(func=cmd_prefs)

    # charstats version
    p_version = sub.add_parser("version", help="Show version")
    p_version.set_defaults(func=cmd_version)

    return parser


def main(argv=None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        sys.exit(0)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
