"""MCP server for logscope - allows AI assistants to page and filter log indices."""

import asyncio
from typing import Any, Optional

import mcp.server.stdio
import mcp.types as types
from mcp.server import Server

from ..config import load_config
from ..errors import NotFoundError, SearchError
from ..formatting import format_row
from ..gateway import SearchGateway
from ..normalizer import CandidateFilter, GlobalFilterState
from ..opensearch.client import (
    AuthenticationError,
    ConnectionFailedError,
    OpenSearchError,
    get_opensearch_client,
)

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 20

_cached = None


def _create_gateway():
    """Create (once) a gateway and load config; the mapping cache lives as long as the server."""
    global _cached
    if _cached is not None:
        return _cached
    try:
        cfg = load_config()
        client = get_opensearch_client()
        _cached = (SearchGateway.from_config(client, cfg), cfg)
        return _cached
    except ConnectionFailedError as e:
        raise RuntimeError(f"OpenSearch connection failed: {e}")
    except AuthenticationError as e:
        raise RuntimeError(f"OpenSearch authentication failed: {e}")
    except Exception as e:
        raise RuntimeError(f"Failed to initialize logscope: {e}")


def _candidates(filters: Optional[dict[str, Any]]) -> tuple:
    """Turn the tool's `{field: value}` object into candidate filter rows."""
    if not isinstance(filters, dict):
        return ()
    rows = []
    for field, value in filters.items():
        if isinstance(value, list):
            value = tuple(value)
        rows.append(CandidateFilter(field=field, value=value))
    return tuple(rows)


def _format_page(result, cfg) -> str:
    if not result.data:
        return "No logs found matching the search criteria."
    lines = [
        format_row(
            row,
            timestamp_field=cfg.timestamp_field,
            level_field=cfg.level_field,
            message_field=cfg.message_field,
            use_utc=True,
        )
        for row in result.data
    ]
    header = f"Page {result.page} of {result.total_pages} ({result.total} matching entries):"
    return header + "\n\n" + "\n".join(lines)


def _format_mapping(index: str, document: list) -> str:
    fields = document[0] if document else {}
    if not fields:
        return f"No mapped fields for {index}."
    lines = [f"{name}: {spec.get('type')}" for name, spec in fields.items()]
    return f"Fields of {index}:\n" + "\n".join(lines)


def _page_size(value: Any) -> int:
    try:
        size = int(value)
    except (TypeError, ValueError):
        return DEFAULT_PAGE_SIZE
    return min(size, MAX_PAGE_SIZE)


def run_tool(gateway, cfg, name: str, arguments: dict[str, Any]) -> str:
    """Execute one tool call and return its text result."""
    index = arguments.get("index") or cfg.index_logs
    if name == "search_logs":
        since = arguments.get("since")
        until = arguments.get("until")
        state = GlobalFilterState(
            main_search=arguments.get("query"),
            level=arguments.get("level"),
            timestamp_range=(since, until) if since or until else None,
            additional_filters=_candidates(arguments.get("filters")),
        )
        page_size = _page_size(arguments.get("page_size", DEFAULT_PAGE_SIZE))
        result = gateway.search_logs(
            index,
            state=state,
            page=arguments.get("page", 1),
            page_size=page_size,
        )
        return _format_page(result, cfg)
    if name == "get_mapping":
        return _format_mapping(index, gateway.get_mapping(index))
    raise ValueError(f"Unknown tool: {name}")


TOOLS = [
    types.Tool(
        name="search_logs",
        description="Page through log entries, newest first. Filters are typed using the index mapping, so numbers, dates, keywords and IPs are matched correctly.",
        inputSchema={
            "type": "object",
            "properties": {
                "index": {
                    "type": "string",
                    "description": "Index name or pattern (defaults to the configured log index)",
                },
                "query": {
                    "type": "string",
                    "description": "Phrase to match against the log message",
                },
                "level": {
                    "type": "string",
                    "description": "Exact log level (e.g. error, warn, info, debug)",
                },
                "since": {
                    "type": "string",
                    "description": "ISO timestamp lower bound (e.g. '2025-01-01T00:00:00Z')",
                },
                "until": {
                    "type": "string",
                    "description": "ISO timestamp upper bound",
                },
                "filters": {
                    "type": "object",
                    "description": "Field to value map. Use a two-element array for ranges, e.g. {\"http_status\": [500, 599]}",
                },
                "page": {
                    "type": "integer",
                    "description": "Page number starting at 1",
                    "default": 1,
                },
                "page_size": {
                    "type": "integer",
                    "description": "Entries per page (default: 20, max: 100)",
                    "default": 20,
                },
            },
        },
    ),
    types.Tool(
        name="get_mapping",
        description="List the fields of a log index and their types. Use this before filtering on unfamiliar fields.",
        inputSchema={
            "type": "object",
            "properties": {
                "index": {
                    "type": "string",
                    "description": "Index name or pattern (defaults to the configured log index)",
                },
            },
        },
    ),
]


async def main():
    """Run the MCP server."""
    server = Server("logscope")

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        """List available MCP tools."""
        return TOOLS

    @server.call_tool()
    async def handle_call_tool(
        name: str, arguments: dict | None
    ) -> list[types.TextContent | types.ImageContent | types.EmbeddedResource]:
        """Handle tool calls."""
        if arguments is None:
            arguments = {}

        try:
            gateway, cfg = _create_gateway()
        except RuntimeError as e:
            return [types.TextContent(type="text", text=f"Error: {e}")]

        try:
            text = run_tool(gateway, cfg, name, arguments)
        except NotFoundError as e:
            text = f"Error: {e}"
        except (SearchError, OpenSearchError) as e:
            text = f"Search error: {e}"
        except Exception as e:
            text = f"Error: {e}"
        return [types.TextContent(type="text", text=text)]

    # Run the server using stdio transport
    async with mcp.server.stdio.stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options()
        )


if __name__ == "__main__":
    asyncio.run(main())
