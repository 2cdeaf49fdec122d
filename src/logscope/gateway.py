"""Search gateway: one storage request per search, reshaped into a paginated result.

The gateway is the only component that talks to the storage engine. It clamps
pagination, turns filters into a query with the query builder, issues exactly
one `_search` call and maps hits, totals and aggregations into a
`PaginatedResult`. Storage failures are translated into the error taxonomy of
`logscope.errors`; transport failures propagate unchanged.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .errors import NotFoundError, SearchFailedError, ValidationError
from .filters import FilterDescriptor
from .mapping import MappingCache, mapping_document
from .normalizer import CandidateFilter, GlobalFields, GlobalFilterState, normalize_filter_state
from .opensearch.client import AuthenticationError, IndexNotFoundError, QueryError
from .pagination import MAX_PAGE_SIZE, compute_total_pages, normalize_page
from .query_builder import (
	DEFAULT_FACETS,
	RELEVANCE,
	TIMESTAMP,
	GlobalQuery,
	base_filters,
	build_aggregations,
	build_search_body,
	build_sort,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchOptions:
	page: Any = 1
	page_size: Any = 10
	sort_fields: Tuple[str, ...] = ()
	sort_order: str = "desc"
	filters: Tuple[FilterDescriptor, ...] = ()
	global_search: Optional[GlobalQuery] = None


@dataclass
class PaginatedResult:
	data: List[Dict[str, Any]]
	total: int
	page: int
	page_size: int
	total_pages: int
	aggregations: Optional[Dict[str, Any]] = None

	def to_dict(self, include_aggregations: bool = False) -> Dict[str, Any]:
		result = {
			"data": self.data,
			"total": self.total,
			"page": self.page,
			"pageSize": self.page_size,
			"totalPages": self.total_pages,
		}
		if include_aggregations or self.aggregations is not None:
			result["aggregations"] = self.aggregations or {}
		return result


def read_total(hits: Mapping[str, Any]) -> int:
	"""Engine totals are either a plain integer or `{"value": n, "relation": ...}`."""
	total = hits.get("total")
	if isinstance(total, Mapping):
		total = total.get("value")
	try:
		return int(total or 0)
	except (TypeError, ValueError):
		return 0


def hits_to_rows(hits: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
	rows = []
	for hit in hits:
		row = {"id": hit.get("_id")}
		row.update(hit.get("_source") or {})
		rows.append(row)
	return rows


def _require_index(index: Optional[str]) -> str:
	if index is None or not str(index).strip():
		raise ValidationError("Index name cannot be empty.")
	return str(index).strip()


class SearchGateway:
	def __init__(self, client, mapping_cache: Optional[MappingCache] = None, fields: GlobalFields = GlobalFields(),
			max_page_size: int = MAX_PAGE_SIZE, base_filters: Sequence[FilterDescriptor] = ()):
		self.client = client
		self.mapping_cache = mapping_cache or MappingCache(client)
		self.fields = fields
		self.max_page_size = max_page_size
		self.base_filters = tuple(base_filters)

	@classmethod
	def from_config(cls, client, cfg) -> "SearchGateway":
		return cls(
			client,
			MappingCache(client, ttl=cfg.mapping_ttl_seconds),
			fields=GlobalFields.from_config(cfg),
			max_page_size=cfg.max_page_size,
			base_filters=base_filters(cfg.required_field, cfg.excluded_field, cfg.excluded_pattern),
		)

	def search(
		self,
		index: str,
		options: SearchOptions = SearchOptions(),
		context: str = RELEVANCE,
		with_aggregations: bool = False,
		facets=DEFAULT_FACETS,
	) -> PaginatedResult:
		index = _require_index(index)
		page = normalize_page(options.page, options.page_size, self.max_page_size)
		sort = build_sort(options.sort_fields, options.sort_order, context, timestamp_field=self.fields.timestamp)
		body = build_search_body(
			options.filters,
			offset=page.offset,
			size=page.page_size,
			sort=sort,
			global_query=options.global_search,
			aggregations=build_aggregations(facets) if with_aggregations else None,
		)
		logger.debug("Search body for %s: %s", index, body)
		response = self._execute(index, body)
		hits = response.get("hits") or {}
		total = read_total(hits)
		result = PaginatedResult(
			data=hits_to_rows(hits.get("hits") or []),
			total=total,
			page=page.page,
			page_size=page.page_size,
			total_pages=compute_total_pages(total, page.page_size),
			aggregations=(response.get("aggregations") or {}) if with_aggregations else None,
		)
		logger.info("Search on %s found %d items (page %d/%d)", index, total, result.page, result.total_pages)
		return result

	def search_logs(
		self,
		index: str,
		columns: Sequence[CandidateFilter] = (),
		state: GlobalFilterState = GlobalFilterState(),
		page: Any = 1,
		page_size: Any = 10,
		sort_fields: Sequence[str] = (),
		sort_order: str = "desc",
	) -> PaginatedResult:
		"""Log listing: normalise raw UI filter state, newest first by default."""
		index = _require_index(index)
		catalog = self.mapping_cache.get(index, degrade=True)
		descriptors = list(self.base_filters) + normalize_filter_state(columns, state, catalog, self.fields)
		options = SearchOptions(
			page=page,
			page_size=page_size,
			sort_fields=tuple(sort_fields),
			sort_order=sort_order,
			filters=tuple(descriptors),
		)
		return self.search(index, options, context=TIMESTAMP)

	def get_mapping(self, index: str) -> List[Dict[str, Any]]:
		index = _require_index(index)
		try:
			catalog = self.mapping_cache.refresh(index)
		except IndexNotFoundError:
			logger.warning("Mapping requested for missing index %s", index)
			raise NotFoundError(f"Index '{index}' not found.")
		except (QueryError, AuthenticationError) as e:
			logger.error("Mapping fetch failed for %s: %s", index, e)
			raise SearchFailedError(f"Mapping failed: {e}", engine_message=str(e), status_code=_status_for(e))
		return mapping_document(catalog)

	def _execute(self, index: str, body: Dict[str, Any]) -> Dict[str, Any]:
		try:
			response = self.client.search(index=index, body=body)
		except IndexNotFoundError:
			logger.warning("Search failed: index not found - %s", index)
			raise NotFoundError(f"Index '{index}' not found.")
		except (QueryError, AuthenticationError) as e:
			logger.error("Search failed for index %s: %s", index, e)
			raise SearchFailedError(f"Search failed: {e}", engine_message=str(e), status_code=_status_for(e))
		if not isinstance(response, dict):
			raise SearchFailedError(f"Search failed: storage returned {type(response).__name__}", status_code=500)
		return response


def _status_for(error) -> int:
	"""Engine rejections are the caller's fault; anything else is ours."""
	status = getattr(error, "status", None)
	if isinstance(status, int) and 400 <= status < 500 and status != 401:
		return 400
	return 500
