# Web server API endpoints for logscope

import logging
import re
from typing import Any, Dict, List

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..config import load_config
from ..errors import SearchError, ValidationError
from ..gateway import SearchGateway
from ..opensearch.client import ConnectionFailedError, OpenSearchError, get_opensearch_client
from .models import LogListingRequestModel, SearchOptionsModel, SearchUiRequestModel

logger = logging.getLogger(__name__)

app = FastAPI(title="logscope", description="Paged, filtered search over log indices.")

_gateway = None

# Characters OpenSearch refuses in index names and patterns
_BAD_PATTERN = re.compile(r'[\\/?"<>|#\s]')


def _try_client():
	try:
		return get_opensearch_client(), None
	except OpenSearchError as e:
		return None, str(e)


def get_gateway() -> SearchGateway:
	"""Process-wide gateway so the mapping cache outlives a single request."""
	global _gateway
	if _gateway is None:
		client, error = _try_client()
		if client is None:
			raise HTTPException(status_code=503, detail=error or "Storage engine unavailable")
		_gateway = SearchGateway.from_config(client, load_config())
	return _gateway


def _require_name(value: str, label: str) -> str:
	if not value or not value.strip():
		raise ValidationError(f"{label} cannot be empty.")
	return value.strip()


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError):
	return JSONResponse(status_code=400, content={"detail": jsonable_errors(exc)})


@app.exception_handler(SearchError)
async def _search_error(request: Request, exc: SearchError):
	return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


@app.exception_handler(ConnectionFailedError)
async def _connection_error(request: Request, exc: ConnectionFailedError):
	logger.error("Storage engine unreachable: %s", exc)
	return JSONResponse(status_code=503, content={"detail": str(exc)})


def jsonable_errors(exc: RequestValidationError) -> List[Dict[str, Any]]:
	return [
		{"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
		for error in exc.errors()
	]


@app.get("/api/health")
def health():
	client, error = _try_client()
	if client is None:
		return {"ok": False, "error": error}
	try:
		info = client.info() or {}
	except OpenSearchError as e:
		return {"ok": False, "error": str(e)}
	return {"ok": True, "version": (info.get("version") or {}).get("number")}


@app.get("/search/mapping/{index_name}")
def get_mapping(index_name: str, gateway: SearchGateway = Depends(get_gateway)):
	index_name = _require_name(index_name, "Index name")
	logger.info("Mapping requested for index: %s", index_name)
	return gateway.get_mapping(index_name)


@app.post("/search/search-ui/{index_pattern}")
def search_ui(index_pattern: str, body: SearchUiRequestModel, gateway: SearchGateway = Depends(get_gateway)):
	index_pattern = _require_name(index_pattern, "Index pattern")
	if _BAD_PATTERN.search(index_pattern) or index_pattern.startswith(("-", "+", "_")):
		raise ValidationError(f"Malformed index pattern: '{index_pattern}'")
	logger.info("Received search UI request for index pattern: %s", index_pattern)
	result = gateway.search(
		index_pattern,
		body.to_options(),
		with_aggregations=body.with_aggregations,
	)
	return result.to_dict(include_aggregations=True)


@app.post("/search/logs/{index_name}")
def search_logs(index_name: str, body: LogListingRequestModel, gateway: SearchGateway = Depends(get_gateway)):
	index_name = _require_name(index_name, "Index name")
	logger.info("Received log listing request for index: %s", index_name)
	result = gateway.search_logs(
		index_name,
		columns=body.to_columns(),
		state=body.to_state(),
		page=body.page,
		page_size=body.page_size,
		sort_fields=body.sort_fields,
		sort_order=body.sort_order,
	)
	return result.to_dict()


@app.post("/search/{index_name}")
def search(index_name: str, body: SearchOptionsModel, gateway: SearchGateway = Depends(get_gateway)):
	index_name = _require_name(index_name, "Index name")
	logger.info("Received search request for index: %s", index_name)
	logger.debug("Search options: %s", body.model_dump(by_alias=True))
	options = body.to_options()
	result = gateway.search(index_name, options)
	return result.to_dict()
