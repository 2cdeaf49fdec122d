import os
import sys

import pytest

PROJECT_ROOT = os.path.dirname(os.path.dirname(__file__))
SRC_DIR = os.path.join(PROJECT_ROOT, "src")
if SRC_DIR not in sys.path:
	sys.path.insert(0, SRC_DIR)


LOG_MAPPING = {
	"logs-2025.01": {
		"mappings": {
			"properties": {
				"@timestamp": {"type": "date"},
				"level": {"type": "keyword"},
				"message": {"type": "text", "fields": {"keyword": {"type": "keyword"}}},
				"http_status": {"type": "integer"},
				"response_time": {"type": "float"},
				"client_ip": {"type": "ip"},
				"cached": {"type": "boolean"},
				"host": {"properties": {"name": {"type": "keyword"}}},
			}
		}
	}
}


class FakeOpenSearch:
	"""Stands in for LightweightOpenSearchClient; records every call."""

	def __init__(self, response=None, mapping=None, error=None, mapping_error=None):
		self.response = response if response is not None else {"hits": {"total": {"value": 0}, "hits": []}}
		self.mapping = mapping if mapping is not None else LOG_MAPPING
		self.error = error
		self.mapping_error = mapping_error
		self.searches = []
		self.mapping_calls = []

	def search(self, index, body):
		self.searches.append((index, body))
		if self.error is not None:
			raise self.error
		return self.response

	def get_mapping(self, index):
		self.mapping_calls.append(index)
		if self.mapping_error is not None:
			raise self.mapping_error
		return self.mapping

	def info(self):
		return {"version": {"number": "2.11.0"}}


@pytest.fixture
def fake_client():
	return FakeOpenSearch()


@pytest.fixture
def make_client():
	return FakeOpenSearch
