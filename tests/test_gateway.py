import pytest

from logscope.errors import NotFoundError, SearchFailedError, ValidationError
from logscope.filters import FilterDescriptor
from logscope.gateway import SearchGateway, SearchOptions, hits_to_rows, read_total
from logscope.normalizer import CandidateFilter, GlobalFilterState
from logscope.opensearch.client import (
	AuthenticationError,
	ConnectionFailedError,
	IndexNotFoundError,
	QueryError,
)
from logscope.query_builder import TIMESTAMP, GlobalQuery, base_filters


def _hits(n, total=None):
	hits = [{"_id": f"doc-{i}", "_source": {"message": f"line {i}", "level": "info"}} for i in range(n)]
	return {"hits": {"total": total if total is not None else {"value": n, "relation": "eq"}, "hits": hits}}


def test_read_total_accepts_both_shapes():
	assert read_total({"total": 7}) == 7
	assert read_total({"total": {"value": 42, "relation": "eq"}}) == 42
	assert read_total({}) == 0


def test_hits_become_rows_with_id():
	rows = hits_to_rows([{"_id": "abc", "_source": {"level": "warn"}}])
	assert rows == [{"id": "abc", "level": "warn"}]


def test_search_builds_one_request(make_client):
	client = make_client(response=_hits(2, total=101))
	gateway = SearchGateway(client)
	options = SearchOptions(
		page=3,
		page_size=25,
		filters=(FilterDescriptor.term("level", "error"),),
		global_search=GlobalQuery(text="timeout"),
	)
	result = gateway.search("logs-*", options)

	assert len(client.searches) == 1
	index, body = client.searches[0]
	assert index == "logs-*"
	assert body["from"] == 50
	assert body["size"] == 25
	assert body["sort"] == [{"_score": {"order": "desc"}}]
	assert body["query"]["bool"]["must"][1] == {"term": {"level": "error"}}
	assert "aggs" not in body

	assert result.total == 101
	assert result.total_pages == 5
	assert result.page == 3
	assert result.page_size == 25
	assert [row["id"] for row in result.data] == ["doc-0", "doc-1"]
	assert result.to_dict() == {
		"data": result.data,
		"total": 101,
		"page": 3,
		"pageSize": 25,
		"totalPages": 5,
	}


def test_search_clamps_pagination(make_client):
	client = make_client()
	result = SearchGateway(client).search("logs-*", SearchOptions(page=0, page_size=1000))
	body = client.searches[0][1]
	assert body["from"] == 0
	assert body["size"] == 250
	assert result.page == 1
	assert result.total_pages == 0


def test_search_with_aggregations(make_client):
	response = _hits(1)
	response["aggregations"] = {"level": {"buckets": [{"key": "info", "doc_count": 1}]}}
	client = make_client(response=response)
	result = SearchGateway(client).search("logs-*", with_aggregations=True)
	assert "http_method" in client.searches[0][1]["aggs"]
	assert result.to_dict()["aggregations"] == response["aggregations"]


def test_empty_index_is_rejected_before_storage(make_client):
	client = make_client()
	with pytest.raises(ValidationError):
		SearchGateway(client).search("  ")
	assert client.searches == []


def test_missing_index_is_not_found(make_client):
	client = make_client(error=IndexNotFoundError("no such index [nope]", status=404))
	with pytest.raises(NotFoundError) as exc:
		SearchGateway(client).search("nope")
	assert exc.value.status_code == 404


def test_engine_rejection_is_search_failure(make_client):
	client = make_client(error=QueryError("POST /logs/_search failed: No mapping found for [x]", status=400))
	with pytest.raises(SearchFailedError) as exc:
		SearchGateway(client).search("logs")
	assert str(exc.value).startswith("Search failed:")
	assert "No mapping found" in exc.value.engine_message
	assert exc.value.status_code == 400


def test_server_side_failure_is_500(make_client):
	client = make_client(error=QueryError("POST /logs/_search failed: shard failure", status=503))
	with pytest.raises(SearchFailedError) as exc:
		SearchGateway(client).search("logs")
	assert exc.value.status_code == 500


def test_auth_failure_is_500(make_client):
	client = make_client(error=AuthenticationError("Authentication failed (HTTP 401)", status=401))
	with pytest.raises(SearchFailedError) as exc:
		SearchGateway(client).search("logs")
	assert exc.value.status_code == 500


def test_connection_failure_propagates(make_client):
	client = make_client(error=ConnectionFailedError("Cannot connect: refused"))
	with pytest.raises(ConnectionFailedError):
		SearchGateway(client).search("logs")


def test_search_logs_normalizes_against_mapping(make_client):
	client = make_client(response=_hits(1))
	gateway = SearchGateway(client)
	result = gateway.search_logs(
		"logs-*",
		columns=[CandidateFilter("http_status", ["400", "499"]), CandidateFilter("client_ip", {"from": "", "to": ""})],
		state=GlobalFilterState(main_search="timeout", level="error"),
	)
	body = client.searches[0][1]
	assert body["sort"] == [{"@timestamp": {"order": "desc"}}]
	assert body["query"]["bool"]["must"] == [
		{"range": {"http_status": {"gte": 400, "lte": 499}}},
		{"match_phrase": {"message": "timeout"}},
		{"term": {"level": "error"}},
	]
	assert client.mapping_calls == ["logs-*"]
	assert result.total == 1


def test_search_logs_without_mapping_uses_text_match(make_client):
	client = make_client(mapping_error=QueryError("forbidden", status=403))
	SearchGateway(client).search_logs("logs-*", columns=[CandidateFilter("http_status", "500")])
	assert client.searches[0][1]["query"]["bool"]["must"] == [{"match": {"http_status": "500"}}]


def test_search_logs_carries_base_filters(make_client):
	client = make_client()
	gateway = SearchGateway(client, base_filters=base_filters("server_ip", "url", "*health*"))
	gateway.search_logs("logs-*")
	must = client.searches[0][1]["query"]["bool"]["must"]
	assert must[0] == {"exists": {"field": "server_ip"}}
	assert must[1] == {"bool": {"must_not": [{"wildcard": {"url": "*health*"}}]}}


def test_search_logs_explicit_sort(make_client):
	client = make_client()
	SearchGateway(client).search_logs("logs-*", sort_fields=["http_status"], sort_order="asc")
	assert client.searches[0][1]["sort"] == [{"http_status": {"order": "asc", "unmapped_type": "keyword"}}]


def test_get_mapping_returns_document(make_client):
	client = make_client()
	document = SearchGateway(client).get_mapping("logs-*")
	assert document[0]["level"] == {"type": "keyword"}
	assert document[0]["host.name"] == {"type": "keyword"}


def test_get_mapping_refreshes(make_client):
	client = make_client()
	gateway = SearchGateway(client)
	gateway.get_mapping("logs-*")
	gateway.get_mapping("logs-*")
	assert len(client.mapping_calls) == 2


def test_get_mapping_missing_index(make_client):
	with pytest.raises(NotFoundError):
		SearchGateway(make_client(mapping={})).get_mapping("nope-*")
	with pytest.raises(NotFoundError):
		SearchGateway(make_client(mapping_error=IndexNotFoundError("gone", status=404))).get_mapping("gone")


def test_timestamp_context_uses_configured_field(make_client):
	from logscope.normalizer import GlobalFields

	client = make_client()
	gateway = SearchGateway(client, fields=GlobalFields(timestamp="ts"))
	gateway.search("logs-*", context=TIMESTAMP)
	assert client.searches[0][1]["sort"] == [{"ts": {"order": "desc"}}]
