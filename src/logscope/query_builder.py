# Query builder: descriptors + free text -> OpenSearch bool query, sort and aggregations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from .filters import FilterDescriptor, FilterKind

RELEVANCE = "relevance"
TIMESTAMP = "timestamp"


@dataclass(frozen=True)
class GlobalQuery:
	text: str
	fields: Tuple[str, ...] = ()
	fuzziness: Union[int, str, None] = None


@dataclass(frozen=True)
class ValueFacet:
	name: str
	field: str
	size: int = 10

	def to_aggregation(self) -> Dict[str, Any]:
		return {"terms": {"field": self.field, "size": self.size}}


@dataclass(frozen=True)
class DateRange:
	name: str
	start: Optional[str] = None
	end: Optional[str] = None


@dataclass(frozen=True)
class RangeFacet:
	name: str
	field: str
	ranges: Tuple[DateRange, ...] = field(default_factory=tuple)

	def to_aggregation(self) -> Dict[str, Any]:
		ranges = []
		for item in self.ranges:
			entry: Dict[str, Any] = {"key": item.name}
			if item.start is not None:
				entry["from"] = item.start
			if item.end is not None:
				entry["to"] = item.end
			ranges.append(entry)
		return {"date_range": {"field": self.field, "ranges": ranges}}


DEFAULT_FACETS: Tuple[Union[ValueFacet, RangeFacet], ...] = (
	RangeFacet("@timestamp", "@timestamp", (
		DateRange("Last hour", "now-1h/h", "now"),
		DateRange("Last day", "now-24h/d", "now"),
		DateRange("Last week", "now-7d/w", "now"),
		DateRange("Last 30 days", "now-30d/d", "now"),
	)),
	ValueFacet("client_ip", "client_ip", 10),
	ValueFacet("server_ip", "server_ip", 10),
	ValueFacet("http_method", "http_method", 5),
	ValueFacet("http_status", "http_status", 10),
	ValueFacet("host.name", "host.name", 10),
	ValueFacet("tags", "tags", 10),
)


def _with_boost(kind: str, field_name: str, value_key: str, value: Any, boost: Optional[float]) -> Dict[str, Any]:
	if boost is None:
		return {kind: {field_name: value}}
	return {kind: {field_name: {value_key: value, "boost": boost}}}


def build_clause(descriptor: FilterDescriptor) -> Dict[str, Any]:
	"""Map one descriptor to exactly one engine clause."""
	kind = descriptor.kind
	name = descriptor.field
	value = descriptor.raw_value
	boost = descriptor.boost
	if kind is FilterKind.TERM:
		return _with_boost("term", name, "value", value, boost)
	if kind is FilterKind.TERMS:
		clause: Dict[str, Any] = {"terms": {name: value}}
		if boost is not None:
			clause["terms"]["boost"] = boost
		return clause
	if kind is FilterKind.RANGE:
		bounds = dict(value)
		if boost is not None:
			bounds["boost"] = boost
		return {"range": {name: bounds}}
	if kind is FilterKind.MATCH:
		if descriptor.operator is None and boost is None:
			return {"match": {name: value}}
		body: Dict[str, Any] = {"query": value}
		if descriptor.operator is not None:
			body["operator"] = descriptor.operator.value.lower()
		if boost is not None:
			body["boost"] = boost
		return {"match": {name: body}}
	if kind is FilterKind.MATCH_PHRASE:
		return _with_boost("match_phrase", name, "query", value, boost)
	if kind is FilterKind.PREFIX:
		return _with_boost("prefix", name, "value", value, boost)
	if kind is FilterKind.WILDCARD:
		return _with_boost("wildcard", name, "value", value, boost)
	if kind is FilterKind.EXISTS:
		return {"exists": {"field": name}}
	if kind is FilterKind.BOOL:
		return {"bool": value}
	raise ValueError(f"Unhandled filter kind: {kind}")


def build_global_clause(global_query: Optional[GlobalQuery]) -> Optional[Dict[str, Any]]:
	if global_query is None or not global_query.text or not global_query.text.strip():
		return None
	return {
		"multi_match": {
			"query": global_query.text.strip(),
			"fields": list(global_query.fields) or ["*"],
			"type": "best_fields",
			"fuzziness": global_query.fuzziness if global_query.fuzziness is not None else "AUTO",
		}
	}


def build_query(descriptors: Sequence[FilterDescriptor], global_query: Optional[GlobalQuery] = None) -> Dict[str, Any]:
	"""AND every clause together; no clauses matches everything."""
	must: List[Dict[str, Any]] = []
	text_clause = build_global_clause(global_query)
	if text_clause is not None:
		must.append(text_clause)
	must.extend(build_clause(descriptor) for descriptor in descriptors)
	if not must:
		return {"bool": {"must": {"match_all": {}}}}
	return {"bool": {"must": must}}


def build_sort(
	sort_fields: Optional[Sequence[str]],
	sort_order: str = "desc",
	context: str = RELEVANCE,
	timestamp_field: str = "@timestamp",
) -> List[Dict[str, Any]]:
	fields = [f for f in (sort_fields or []) if f and f.strip()]
	if not fields:
		if context == TIMESTAMP:
			return [{timestamp_field: {"order": "desc"}}]
		return [{"_score": {"order": "desc"}}]
	order = sort_order if sort_order in ("asc", "desc") else "desc"
	# unmapped_type keeps sorting on fields missing from some indices from failing
	return [{name: {"order": order, "unmapped_type": "keyword"}} for name in fields]


def build_aggregations(facets: Sequence[Union[ValueFacet, RangeFacet]] = DEFAULT_FACETS) -> Dict[str, Any]:
	return {facet.name: facet.to_aggregation() for facet in facets}


def base_filters(required_field: str = "", excluded_field: str = "", excluded_pattern: str = "") -> List[FilterDescriptor]:
	"""Optional filters every log listing carries: a required field and a wildcard exclusion."""
	filters = []
	if required_field:
		filters.append(FilterDescriptor.exists(required_field))
	if excluded_field and excluded_pattern:
		filters.append(FilterDescriptor.bool(
			excluded_field,
			{"must_not": [{"wildcard": {excluded_field: excluded_pattern}}]},
		))
	return filters


def build_search_body(
	descriptors: Sequence[FilterDescriptor],
	offset: int,
	size: int,
	sort: List[Dict[str, Any]],
	global_query: Optional[GlobalQuery] = None,
	aggregations: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
	body: Dict[str, Any] = {
		"from": offset,
		"size": size,
		"query": build_query(descriptors, global_query),
		"sort": sort,
		"track_total_hits": True,
	}
	if aggregations:
		body["aggs"] = aggregations
	return body
