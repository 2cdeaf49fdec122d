import pytest

from logscope.mapping import (
	FieldMappingInfo,
	FieldType,
	MappingCache,
	MappingCatalog,
	catalog_from_document,
	catalog_from_response,
	fetch_catalog,
	flatten_properties,
	mapping_document,
)
from logscope.opensearch.client import ConnectionFailedError, IndexNotFoundError, QueryError
from conftest import LOG_MAPPING


class FakeClock:
	def __init__(self):
		self.now = 0.0

	def __call__(self):
		return self.now


def test_flatten_nested_objects_and_multi_fields():
	flat = flatten_properties(LOG_MAPPING["logs-2025.01"]["mappings"]["properties"])
	assert flat["host"].type is FieldType.OBJECT
	assert flat["host.name"].type is FieldType.KEYWORD
	assert flat["message"].type is FieldType.TEXT
	assert flat["message.keyword"].type is FieldType.KEYWORD
	assert flat["http_status"].type is FieldType.INTEGER


def test_unknown_types_are_kept_as_unknown():
	flat = flatten_properties({"location": {"type": "geo_point"}})
	assert flat["location"].type is FieldType.UNKNOWN


def test_index_pattern_merges_indices_first_wins():
	response = {
		"logs-b": {"mappings": {"properties": {"status": {"type": "keyword"}, "extra": {"type": "ip"}}}},
		"logs-a": {"mappings": {"properties": {"status": {"type": "integer"}}}},
	}
	catalog = catalog_from_response(response)
	assert catalog.lookup("status").type is FieldType.INTEGER
	assert catalog.lookup("extra").type is FieldType.IP
	assert len(catalog) == 2


def test_legacy_type_nesting():
	response = {"old": {"mappings": {"_doc": {"properties": {"level": {"type": "keyword"}}}}}}
	assert "level" in catalog_from_response(response)


def test_catalog_is_read_only():
	catalog = MappingCatalog({"level": FieldMappingInfo(FieldType.KEYWORD)})
	with pytest.raises(TypeError):
		catalog._fields["level"] = FieldMappingInfo(FieldType.TEXT)
	assert catalog.lookup("missing") is None


def test_mapping_document_shape():
	catalog = catalog_from_response(LOG_MAPPING)
	document = mapping_document(catalog)
	assert isinstance(document, list)
	assert document[0]["@timestamp"] == {"type": "date"}
	assert document[0]["client_ip"] == {"type": "ip"}
	assert catalog_from_document(document).as_type_map() == catalog.as_type_map()


def test_catalog_from_empty_document():
	assert len(catalog_from_document([])) == 0


def test_fetch_catalog_empty_response_is_not_found(make_client):
	with pytest.raises(IndexNotFoundError):
		fetch_catalog(make_client(mapping={}), "nope-*")


def test_cache_reuses_catalog_until_ttl(make_client):
	client = make_client()
	clock = FakeClock()
	cache = MappingCache(client, ttl=300, clock=clock)

	first = cache.get("logs-*")
	clock.now = 299
	assert cache.get("logs-*") is first
	assert client.mapping_calls == ["logs-*"]

	clock.now = 301
	assert cache.get("logs-*") is not first
	assert client.mapping_calls == ["logs-*", "logs-*"]


def test_refresh_and_invalidate(make_client):
	client = make_client()
	cache = MappingCache(client, clock=FakeClock())
	cache.get("logs-*")
	cache.refresh("logs-*")
	assert len(client.mapping_calls) == 2
	cache.invalidate()
	cache.get("logs-*")
	assert len(client.mapping_calls) == 3


def test_fetch_errors_propagate_without_degrade(make_client):
	cache = MappingCache(make_client(mapping_error=QueryError("boom", status=400)), clock=FakeClock())
	with pytest.raises(QueryError):
		cache.get("logs-*")


@pytest.mark.parametrize("error", [
	QueryError("boom", status=400),
	ConnectionFailedError("down"),
])
def test_degraded_lookup_returns_empty_catalog(make_client, error, caplog):
	client = make_client(mapping_error=error)
	cache = MappingCache(client, clock=FakeClock())
	with caplog.at_level("WARNING", logger="logscope.mapping"):
		catalog = cache.get("logs-*", degrade=True)
	assert len(catalog) == 0
	assert "falling back" in caplog.text
	# Failures are not cached
	cache.get("logs-*", degrade=True)
	assert len(client.mapping_calls) == 2
