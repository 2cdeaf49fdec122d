import signal
import sys

# Handle Ctrl+C gracefully before any other imports
signal.signal(signal.SIGINT, lambda *_: sys.exit(130))

import contextlib
import json
import logging
from typing import List, Optional

import typer

from .config import load_config, set_dotenv_path
from .errors import SearchError
from .filters import FilterDescriptor, FilterKind, FilterValidationError
from .formatting import format_row
from .gateway import SearchGateway, SearchOptions
from .normalizer import CandidateFilter, GlobalFilterState
from .opensearch.client import (
	OpenSearchError,
	check_connection,
	get_opensearch_client,
)
from .query_builder import GlobalQuery

app = typer.Typer(help="Page, sort, filter and search log indices.")


@app.callback()
def _main_options(
	env: Optional[str] = typer.Option(None, "--env", help="Path to a .env file to load settings from"),
	verbose: bool = typer.Option(False, "--verbose", "-v", help="Log search requests to stderr"),
):
	if env:
		set_dotenv_path(env)
	if verbose:
		logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)


def _scalar(text: str):
	"""Numbers and booleans typed on the command line keep their JSON type."""
	try:
		value = json.loads(text)
	except ValueError:
		return text
	if isinstance(value, (str, int, float, bool)):
		return value
	return text


def parse_filter_option(text: str) -> FilterDescriptor:
	"""Parse `field[:type]=value`; `field:exists` carries no value.

	Ranges are written `low..high` (either side may be empty), terms as
	comma-separated values and bool bodies as JSON.
	"""
	spec, has_value, raw = text.partition("=")
	field, _, kind = spec.partition(":")
	kind = (kind or "term").strip()
	payload = {"field": field.strip(), "type": kind}
	if kind == FilterKind.EXISTS.value:
		return FilterDescriptor.from_wire(payload)
	if not has_value:
		raise FilterValidationError(f"Filter '{text}' needs a value (field:type=value).")
	if kind == FilterKind.RANGE.value:
		low, _, high = raw.partition("..")
		payload["value"] = {
			"gte": _scalar(low) if low.strip() else None,
			"lte": _scalar(high) if high.strip() else None,
		}
	elif kind == FilterKind.TERMS.value:
		payload["value"] = [_scalar(v.strip()) for v in raw.split(",") if v.strip()]
	elif kind == FilterKind.BOOL.value:
		try:
			payload["value"] = json.loads(raw)
		except ValueError:
			raise FilterValidationError(f"Bool filter on '{field}' needs a JSON body.")
	else:
		payload["value"] = _scalar(raw) if kind == FilterKind.TERM.value else raw
	return FilterDescriptor.from_wire(payload)


def parse_where_option(text: str) -> CandidateFilter:
	"""Parse a raw `field=value` row; `a..b` is a bound pair and `a,b` a list."""
	field, has_value, raw = text.partition("=")
	if not has_value:
		raise FilterValidationError(f"Filter '{text}' needs a value (field=value).")
	if ".." in raw:
		low, _, high = raw.partition("..")
		value = (low.strip() or None, high.strip() or None)
	elif "," in raw:
		value = tuple(v.strip() for v in raw.split(","))
	elif raw.strip().lower() in ("true", "false"):
		value = raw.strip().lower() == "true"
	else:
		value = raw
	return CandidateFilter(field=field.strip(), value=value)


def require_opensearch():
	"""Get a gateway and verify OpenSearch is accessible."""
	cfg = load_config()
	client = get_opensearch_client()
	try:
		check_connection(client)
	except OpenSearchError as e:
		typer.echo(typer.style(f"Error: {e}", fg=typer.colors.RED), err=True)
		raise typer.Exit(1)
	return SearchGateway.from_config(client, cfg), cfg


def _echo_result(result, cfg, as_json: bool, utc: bool):
	if as_json:
		typer.echo(json.dumps(result.to_dict(), indent=2, default=str))
		return
	if not result.data:
		typer.echo(typer.style("No logs found.", dim=True), err=True)
	for row in result.data:
		typer.echo(format_row(
			row,
			timestamp_field=cfg.timestamp_field,
			level_field=cfg.level_field,
			message_field=cfg.message_field,
			use_utc=utc,
		))
	typer.echo(
		typer.style(f"Page {result.page}/{result.total_pages} ({result.total} total)", dim=True),
		err=True,
	)


def _run(action):
	try:
		return action()
	except FilterValidationError as e:
		raise typer.BadParameter(str(e))
	except (SearchError, OpenSearchError) as e:
		typer.echo(typer.style(f"Error: {e}", fg=typer.colors.RED), err=True)
		raise typer.Exit(1)


@app.command()
def search(
	index: str = typer.Argument(..., help="Index name or pattern"),
	q: str = typer.Option("", "--q", help="Free-text query matched across fields"),
	fields: List[str] = typer.Option([], "--field", help="Fields for the free-text query (default: all)"),
	filters: List[str] = typer.Option([], "--filter", "-f", help="field[:type]=value, repeatable"),
	sort: List[str] = typer.Option([], "--sort", help="Sort field, repeatable"),
	order: str = typer.Option("desc", "--order", help="asc or desc"),
	page: int = typer.Option(1, "--page"),
	page_size: int = typer.Option(10, "--page-size"),
	as_json: bool = typer.Option(False, "--json", help="Print the raw paginated result"),
	utc: bool = typer.Option(False, "--utc", help="Display timestamps in UTC instead of local time"),
):
	"""Search an index with typed filters."""
	descriptors = _run(lambda: [parse_filter_option(f) for f in filters])
	gateway, cfg = require_opensearch()
	options = SearchOptions(
		page=page,
		page_size=page_size,
		sort_fields=tuple(sort),
		sort_order=order,
		filters=tuple(descriptors),
		global_search=GlobalQuery(text=q, fields=tuple(fields)) if q else None,
	)
	result = _run(lambda: gateway.search(index, options))
	_echo_result(result, cfg, as_json, utc)


@app.command()
def logs(
	index: Optional[str] = typer.Argument(None, help="Index name or pattern (default: LOGSCOPE_INDEX)"),
	where: List[str] = typer.Option([], "--where", "-w", help="field=value, typed by the index mapping; repeatable"),
	text: str = typer.Option("", "--search", "-s", help="Phrase matched against the message field"),
	level: Optional[str] = typer.Option(None, "--level"),
	since: Optional[str] = typer.Option(None, "--since", help="ISO timestamp lower bound"),
	until: Optional[str] = typer.Option(None, "--until", help="ISO timestamp upper bound"),
	sort: List[str] = typer.Option([], "--sort", help="Sort field, repeatable (default: newest first)"),
	order: str = typer.Option("desc", "--order"),
	page: int = typer.Option(1, "--page"),
	page_size: int = typer.Option(20, "--page-size"),
	as_json: bool = typer.Option(False, "--json", help="Print the raw paginated result"),
	utc: bool = typer.Option(False, "--utc", help="Display timestamps in UTC instead of local time"),
):
	"""List logs, newest first, with filters typed by the index mapping."""
	rows = _run(lambda: tuple(parse_where_option(w) for w in where))
	gateway, cfg = require_opensearch()
	state = GlobalFilterState(
		main_search=text or None,
		level=level,
		timestamp_range=(since, until) if since or until else None,
		additional_filters=rows,
	)
	result = _run(lambda: gateway.search_logs(
		index or cfg.index_logs,
		state=state,
		page=page,
		page_size=page_size,
		sort_fields=sort,
		sort_order=order,
	))
	_echo_result(result, cfg, as_json, utc)


@app.command()
def mapping(
	index: Optional[str] = typer.Argument(None, help="Index name or pattern (default: LOGSCOPE_INDEX)"),
	as_json: bool = typer.Option(False, "--json", help="Print the raw mapping document"),
):
	"""Show the field types of an index."""
	gateway, cfg = require_opensearch()
	document = _run(lambda: gateway.get_mapping(index or cfg.index_logs))
	if as_json:
		typer.echo(json.dumps(document, indent=2))
		return
	fields = document[0] if document else {}
	if not fields:
		typer.echo(typer.style("No mapped fields.", dim=True), err=True)
	width = max((len(name) for name in fields), default=0)
	for name, spec in fields.items():
		typer.echo(f"{name.ljust(width)}  {spec.get('type')}")


@app.command()
def serve(
	port: int = typer.Option(8888, "--port", "-p", help="Port to serve on"),
	host: str = typer.Option("127.0.0.1", "--host", "-h", help="Host to bind to"),
	reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload for development"),
):
	"""Start the search API server."""
	import uvicorn
	uvicorn.run("logscope.web.server:app", host=host, port=port, reload=reload)


@app.command()
def mcp():
	"""Run the MCP server on stdio."""
	import asyncio
	from .mcp.server import main as mcp_main
	asyncio.run(mcp_main())


def main():
	if len(sys.argv) == 1:
		# No arguments: show help on stderr (rich renders to whatever stdout is)
		with contextlib.redirect_stdout(sys.stderr):
			app(["--help"], prog_name="logscope", standalone_mode=False)
		return 0
	try:
		app()
	except typer.Exit:
		raise
	except Exception as e:
		typer.echo(typer.style(
			f"Fatal error: {type(e).__name__}: {e}",
			fg=typer.colors.RED
		), err=True)
		sys.exit(1)

if __name__ == "__main__":
	main()
