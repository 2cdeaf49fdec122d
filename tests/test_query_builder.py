from logscope.filters import FilterDescriptor, Operator
from logscope.mapping import FieldMappingInfo, FieldType, MappingCatalog
from logscope.normalizer import CandidateFilter, normalize_filter
from logscope.query_builder import (
	DEFAULT_FACETS,
	RELEVANCE,
	TIMESTAMP,
	DateRange,
	GlobalQuery,
	RangeFacet,
	ValueFacet,
	base_filters,
	build_aggregations,
	build_clause,
	build_query,
	build_search_body,
	build_sort,
)


def test_each_kind_maps_to_one_clause():
	assert build_clause(FilterDescriptor.term("level", "error")) == {"term": {"level": "error"}}
	assert build_clause(FilterDescriptor.terms("level", ["a", "b"])) == {"terms": {"level": ["a", "b"]}}
	assert build_clause(FilterDescriptor.range("n", gte=1)) == {"range": {"n": {"gte": 1}}}
	assert build_clause(FilterDescriptor.match("message", "x")) == {"match": {"message": "x"}}
	assert build_clause(FilterDescriptor.match_phrase("message", "x y")) == {"match_phrase": {"message": "x y"}}
	assert build_clause(FilterDescriptor.prefix("url", "/api")) == {"prefix": {"url": "/api"}}
	assert build_clause(FilterDescriptor.wildcard("url", "*x*")) == {"wildcard": {"url": "*x*"}}
	assert build_clause(FilterDescriptor.exists("server_ip")) == {"exists": {"field": "server_ip"}}
	body = {"must_not": [{"wildcard": {"url": "*health*"}}]}
	assert build_clause(FilterDescriptor.bool("url", body)) == {"bool": body}


def test_operator_and_boost_use_long_form():
	clause = build_clause(FilterDescriptor.match("message", "disk full", operator=Operator.AND, boost=2.0))
	assert clause == {"match": {"message": {"query": "disk full", "operator": "and", "boost": 2.0}}}
	assert build_clause(FilterDescriptor.term("level", "x", boost=1.5)) == {"term": {"level": {"value": "x", "boost": 1.5}}}
	assert build_clause(FilterDescriptor.range("n", lte=3, boost=2)) == {"range": {"n": {"lte": 3, "boost": 2}}}


def test_no_clauses_matches_everything():
	assert build_query([]) == {"bool": {"must": {"match_all": {}}}}
	assert build_query([], GlobalQuery(text="   ")) == {"bool": {"must": {"match_all": {}}}}


def test_keyword_filter_and_free_text_are_anded():
	catalog = MappingCatalog({"level": FieldMappingInfo(FieldType.KEYWORD)})
	descriptor = normalize_filter(CandidateFilter("level", "error"), catalog)

	query = build_query([descriptor])
	assert query == {"bool": {"must": [{"term": {"level": "error"}}]}}

	query = build_query([descriptor], GlobalQuery(text="timeout"))
	must = query["bool"]["must"]
	assert len(must) == 2
	assert {"term": {"level": "error"}} in must
	assert must[0] == {
		"multi_match": {
			"query": "timeout",
			"fields": ["*"],
			"type": "best_fields",
			"fuzziness": "AUTO",
		}
	}


def test_free_text_fields_and_fuzziness():
	query = build_query([], GlobalQuery(text="gpu", fields=("name", "description"), fuzziness=1))
	multi = query["bool"]["must"][0]["multi_match"]
	assert multi["fields"] == ["name", "description"]
	assert multi["fuzziness"] == 1


def test_default_sort_depends_on_context():
	assert build_sort([], context=TIMESTAMP) == [{"@timestamp": {"order": "desc"}}]
	assert build_sort(None, context=RELEVANCE) == [{"_score": {"order": "desc"}}]
	assert build_sort([], context=TIMESTAMP, timestamp_field="ts") == [{"ts": {"order": "desc"}}]


def test_explicit_sort_fields():
	assert build_sort(["rating", "price"], "asc") == [
		{"rating": {"order": "asc", "unmapped_type": "keyword"}},
		{"price": {"order": "asc", "unmapped_type": "keyword"}},
	]
	assert build_sort(["price"], "sideways")[0]["price"]["order"] == "desc"


def test_aggregations_from_static_facets():
	aggs = build_aggregations((
		ValueFacet("level", "level", 5),
		RangeFacet("@timestamp", "@timestamp", (DateRange("Last hour", "now-1h/h", "now"),)),
	))
	assert aggs == {
		"level": {"terms": {"field": "level", "size": 5}},
		"@timestamp": {"date_range": {"field": "@timestamp", "ranges": [{"key": "Last hour", "from": "now-1h/h", "to": "now"}]}},
	}


def test_default_facets_cover_the_log_dashboard():
	aggs = build_aggregations(DEFAULT_FACETS)
	assert set(aggs) == {"@timestamp", "client_ip", "server_ip", "http_method", "http_status", "host.name", "tags"}
	assert aggs["http_method"] == {"terms": {"field": "http_method", "size": 5}}


def test_base_filters_are_opt_in():
	assert base_filters() == []
	filters = base_filters("server_ip", "url", "*health*")
	assert [build_clause(f) for f in filters] == [
		{"exists": {"field": "server_ip"}},
		{"bool": {"must_not": [{"wildcard": {"url": "*health*"}}]}},
	]


def test_search_body():
	body = build_search_body(
		[FilterDescriptor.term("level", "error")],
		offset=20,
		size=10,
		sort=[{"@timestamp": {"order": "desc"}}],
		aggregations={"level": {"terms": {"field": "level"}}},
	)
	assert body["from"] == 20
	assert body["size"] == 10
	assert body["track_total_hits"] is True
	assert body["aggs"] == {"level": {"terms": {"field": "level"}}}
	assert "aggs" not in build_search_body([], 0, 10, [])
