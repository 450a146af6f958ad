"""CharStats MCP Server: exposes stat tracking and request injection via Model Context Protocol.

Usage:
    charstats-mcp --db .charstats/stats.db
    charstats-mcp --db .charstats/stats.db --character Alex

    # Or via Python:
    python -m charstats_mcp.server --db .charstats/stats.db
"""

import argparse
import json
import logging
from typing import Optional

from mcp.server import FastMCP

from charstats import StatsApp
from charstats.context import StaticHostContext
from charstats.errors import InvalidGrowth, NothingToCompare
from charstats.storage import SQLiteKeyValueStore
from charstats.types import CharacterInfo, OutboundRequest

logger = logging.getLogger("charstats-mcp")

# Global state
_app: Optional[StatsApp] = None

# Create the FastMCP server
mcp = FastMCP(
    "charstats",
    instructions=(
        "CharStats tracks per-character stats (height, strength, ...) for a "
        "role-play conversation. Call stats_select_character when the active "
        "character changes. Pass every new chat message to stats_observe_chat "
        "so stat changes mentioned in the story are picked up automatically. "
        "Before sending a generation request, pass its JSON body to "
        "stats_prepare_request and send the returned body instead; it carries "
        "the stats summary exactly once."
    ),
)


def _get_app() -> StatsApp:
    global _app
    if _app is None:
        _app = StatsApp(SQLiteKeyValueStore(":memory:"), StaticHostContext())
        _app.load()
    return _app


def _host() -> StaticHostContext:
    host = _get_app().host
    if not isinstance(host, StaticHostContext):
        raise RuntimeError("Character selection needs a StaticHostContext host")
    return host


def _stats_to_dict(app: StatsApp) -> dict:
    """Convert the active scope to a JSON-serializable dict."""
    return {
        "scope": app.active_scope(),
        "stats": [
            {"key": r.key, "name": r.name, "value": r.value, "unit": r.unit}
            for r in app.snapshot()
        ],
    }


@mcp.tool()
def stats_select_character(name: str = "", avatar: str = "") -> str:
    """Set the active character. Leave both empty to fall back to global stats.

    Args:
        name: Character display name (preferred identity).
        avatar: Avatar id, used when there is no name.
    """
    _host().select(name=name or None, avatar=avatar or None)
    return json.dumps(_stats_to_dict(_get_app()), indent=2)


@mcp.tool()
def stats_observe_chat(text: str) -> str:
    """Scan a chat message for stat changes and apply them.

    Recognized phrasings: "has grown a X", "gained X", "X increased to N",
    "X is now N". Returns the stats that changed and the full stat list.

    Args:
        text: The newly rendered chat message.
    """
    app = _get_app()
    applied = app.observe_chat(text)
    result = {
        "applied": [
            {"rule": c.rule, "key": c.key, "value": c.value}
            for c in applied
        ],
        **_stats_to_dict(app),
    }
    return json.dumps(result, indent=2)


@mcp.tool()
def stats_list() -> str:
    """List the active character's stats."""
    return json.dumps(_stats_to_dict(_get_app()), indent=2)


@mcp.tool()
def stats_set(name: str, value: str, unit: str = "", key: str = "") -> str:
    """Add a stat, or edit an existing one in place when *key* is given.

    Args:
        name: Display name (e.g. 'Height'). The key is derived from it.
        value: Value; text starting with a number is stored as a number.
        unit: Optional unit suffix (e.g. 'ft').
        key: Existing stat key to edit; its key never changes.
    """
    app = _get_app()
    scope = app.active_scope()
    try:
        if key:
            app.store.edit_stat(scope, key, name, value, unit)
        else:
            app.store.add_stat(scope, name, value, unit)
    except KeyError:
        return json.dumps({"error": f"No stat with key {key!r}"}, indent=2)
    except ValueError as e:
        return json.dumps({"error": str(e)}, indent=2)
    return json.dumps(_stats_to_dict(app), indent=2)


@mcp.tool()
def stats_delete(key: str) -> str:
    """Delete one stat of the active character.

    Args:
        key: Stat key (e.g. 'height').
    """
    app = _get_app()
    deleted = app.store.delete_record(app.active_scope(), key)
    return json.dumps({"deleted": deleted, **_stats_to_dict(app)}, indent=2)


@mcp.tool()
def stats_reset() -> str:
    """Clear every stat of the active character."""
    app = _get_app()
    cleared = app.store.reset_scope(app.active_scope())
    return json.dumps({"cleared": cleared, **_stats_to_dict(app)}, indent=2)


@mcp.tool()
def stats_grow(percent: float) -> str:
    """Scale every numeric stat by a percentage (negative shrinks).

    Args:
        percent: Growth in percent, e.g. 5 for +5%. Zero is rejected.
    """
    app = _get_app()
    try:
        grown = app.store.grow_stats(app.active_scope(), percent)
    except InvalidGrowth as e:
        return json.dumps({"error": str(e)}, indent=2)
    return json.dumps({"grown": grown, **_stats_to_dict(app)}, indent=2)


@mcp.tool()
def stats_compare() -> str:
    """Compare the first numeric stat to everyday objects (length units only)."""
    app = _get_app()
    try:
        report = app.compare()
    except NothingToCompare as e:
        return json.dumps({"compared": False, "note": str(e)}, indent=2)
    result = {
        "compared": True,
        "stat": report.stat_name,
        "canonical_cm": report.canonical_cm,
        "comparisons": [
            {"item": m.item.name, "ratio": m.ratio, "factor": m.factor, "bigger": m.bigger}
            for m in report.matches
        ],
        "text": report.render(),
    }
    return json.dumps(result, indent=2)


@mcp.tool()
def stats_prepare_request(body: str, url: str = "/api/chat/completions",
                          method: str = "POST") -> str:
    """Return the request body to send, with the stats summary injected once.

    Bodies that are not generation requests, not JSON, or already carry the
    stats block come back unchanged.

    Args:
        body: JSON request body with 'messages' or 'prompt'.
        url: Target URL of the request.
        method: HTTP method of the request.
    """
    result = _get_app().prepare_request(OutboundRequest(method=method, url=url, body=body))
    return json.dumps(
        {
            "injected": result.injected,
            "target": result.target,
            "reason": result.reason,
            "body": result.request.body,
        },
        indent=2,
    )


@mcp.tool()
def stats_preferences(enabled: Optional[bool] = None, auto_inject: Optional[bool] = None,
                      inject_role: str = "") -> str:
    """Show preferences, changing the ones that are given.

    Args:
        enabled: Master switch for injection.
        auto_inject: Inject into generation requests automatically.
        inject_role: 'system' (default) or 'user' for injected chat messages.
    """
    prefs = _get_app().preferences
    try:
        prefs.update(enabled=enabled, auto_inject=auto_inject, inject_role=inject_role or None)
    except ValueError as e:
        return json.dumps({"error": str(e)}, indent=2)
    return json.dumps(prefs.prefs.to_dict(), indent=2)


def main():
    """Entry point for the charstats-mcp command."""
    parser = argparse.ArgumentParser(description="CharStats MCP Server")
    parser.add_argument(
        "--db",
        default=".charstats/stats.db",
        help="Path to SQLite database for persistent stats (default: .charstats/stats.db)",
    )
    parser.add_argument(
        "--character", "-c",
        default=None,
        help="Initially active character; omit to start in the global scope",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)

    # Initialize global app
    global _app
    character = CharacterInfo(name=args.character) if args.character else None
    _app = StatsApp.from_path(args.db, host=StaticHostContext(character))
    _app.start_polling()
    logger.info(
        f"CharStats MCP server started with db={args.db}, scope={_app.active_scope()}"
    )

    # Run via stdio (standard for MCP)
    try:
        mcp.run(transport="stdio")
    finally:
        _app.close()


if __name__ == "__main__":
    main()
