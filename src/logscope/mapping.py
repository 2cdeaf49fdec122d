# Field mapping catalog: field path -> declared storage type

import logging
import time
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .opensearch.client import IndexNotFoundError, OpenSearchError

logger = logging.getLogger(__name__)


class FieldType(str, Enum):
	DATE = "date"
	DATE_NANOS = "date_nanos"
	LONG = "long"
	INTEGER = "integer"
	SHORT = "short"
	BYTE = "byte"
	DOUBLE = "double"
	FLOAT = "float"
	HALF_FLOAT = "half_float"
	SCALED_FLOAT = "scaled_float"
	UNSIGNED_LONG = "unsigned_long"
	KEYWORD = "keyword"
	CONSTANT_KEYWORD = "constant_keyword"
	WILDCARD = "wildcard"
	IP = "ip"
	TEXT = "text"
	MATCH_ONLY_TEXT = "match_only_text"
	BOOLEAN = "boolean"
	OBJECT = "object"
	NESTED = "nested"
	FLATTENED = "flattened"
	UNKNOWN = "unknown"

	@classmethod
	def parse(cls, value: Any) -> "FieldType":
		if isinstance(value, FieldType):
			return value
		text = str(value or "").strip().lower()
		try:
			return cls(text)
		except ValueError:
			return cls.UNKNOWN


NUMERIC_TYPES = frozenset({
	FieldType.LONG,
	FieldType.INTEGER,
	FieldType.SHORT,
	FieldType.BYTE,
	FieldType.DOUBLE,
	FieldType.FLOAT,
	FieldType.HALF_FLOAT,
	FieldType.SCALED_FLOAT,
	FieldType.UNSIGNED_LONG,
})


@dataclass(frozen=True)
class FieldMappingInfo:
	type: FieldType

	def to_dict(self) -> Dict[str, str]:
		return {"type": self.type.value}


def flatten_properties(properties: Mapping[str, Any], prefix: str = "") -> Dict[str, FieldMappingInfo]:
	"""Flatten an OpenSearch `properties` tree into dot-notation paths.

	Fields without an explicit type but with sub-properties are objects.
	Multi-fields (`message.keyword`) get their own entry.
	"""
	flat: Dict[str, FieldMappingInfo] = {}
	for name, spec in (properties or {}).items():
		if not isinstance(spec, Mapping):
			continue
		path = f"{prefix}{name}"
		children = spec.get("properties")
		declared = spec.get("type")
		if declared is None and children:
			declared = FieldType.OBJECT
		flat[path] = FieldMappingInfo(FieldType.parse(declared))
		if isinstance(children, Mapping):
			flat.update(flatten_properties(children, prefix=f"{path}."))
		for sub_name, sub_spec in (spec.get("fields") or {}).items():
			if isinstance(sub_spec, Mapping):
				flat[f"{path}.{sub_name}"] = FieldMappingInfo(FieldType.parse(sub_spec.get("type")))
	return flat


class MappingCatalog:
	"""Read-only field path lookup. Replaced wholesale, never updated in place."""

	def __init__(self, fields: Optional[Mapping[str, FieldMappingInfo]] = None):
		self._fields = MappingProxyType(dict(fields or {}))

	def lookup(self, field_path: str) -> Optional[FieldMappingInfo]:
		return self._fields.get(field_path)

	def __contains__(self, field_path):
		return field_path in self._fields

	def __len__(self):
		return len(self._fields)

	def __iter__(self):
		return iter(self._fields)

	def items(self):
		return self._fields.items()

	def as_type_map(self) -> Dict[str, Dict[str, str]]:
		return {path: info.to_dict() for path, info in sorted(self._fields.items())}


def catalog_from_response(response: Mapping[str, Any]) -> MappingCatalog:
	"""Build a catalog from a `GET /<index>/_mapping` response.

	Index patterns can match several indices; the first declaration of a path wins.
	"""
	fields: Dict[str, FieldMappingInfo] = {}
	for index_name in sorted(response or {}):
		body = response[index_name]
		if not isinstance(body, Mapping):
			continue
		mappings = body.get("mappings") or {}
		properties = mappings.get("properties")
		if properties is None:
			# Pre-7.x responses nest properties under a type name
			for type_body in mappings.values():
				if isinstance(type_body, Mapping) and "properties" in type_body:
					properties = type_body["properties"]
					break
		for path, info in flatten_properties(properties or {}).items():
			fields.setdefault(path, info)
	return MappingCatalog(fields)


def mapping_document(catalog: MappingCatalog) -> List[Dict[str, Dict[str, str]]]:
	"""Render the catalog as the mapping endpoint document (first element is the field map)."""
	return [catalog.as_type_map()]


def catalog_from_document(document: Iterable[Mapping[str, Any]]) -> MappingCatalog:
	"""Inverse of mapping_document: accept the first element's field -> {type} map."""
	entries = list(document or [])
	if not entries:
		return MappingCatalog()
	fields = {}
	for path, spec in (entries[0] or {}).items():
		declared = spec.get("type") if isinstance(spec, Mapping) else spec
		fields[path] = FieldMappingInfo(FieldType.parse(declared))
	return MappingCatalog(fields)


def fetch_catalog(client, index: str) -> MappingCatalog:
	response = client.get_mapping(index)
	if not response:
		raise IndexNotFoundError(f"Index '{index}' does not exist.", status=404, error_type="index_not_found_exception")
	return catalog_from_response(response)


class MappingCache:
	"""Per-index catalog cache with wholesale replacement after `ttl` seconds."""

	def __init__(self, client, ttl: float = 300.0, clock=time.monotonic):
		self.client = client
		self.ttl = ttl
		self._clock = clock
		self._entries: Dict[str, tuple] = {}

	def get(self, index: str, degrade: bool = False) -> MappingCatalog:
		entry = self._entries.get(index)
		now = self._clock()
		if entry is not None and now - entry[1] < self.ttl:
			return entry[0]
		try:
			catalog = fetch_catalog(self.client, index)
		except OpenSearchError as e:
			if not degrade:
				raise
			logger.warning("Mapping fetch failed for %s, falling back to text matching: %s", index, e)
			return MappingCatalog()
		self._entries = {**self._entries, index: (catalog, now)}
		logger.debug("Cached mapping for %s (%d fields)", index, len(catalog))
		return catalog

	def refresh(self, index: str) -> MappingCatalog:
		self.invalidate(index)
		return self.get(index)

	def invalidate(self, index: Optional[str] = None):
		if index is None:
			self._entries = {}
		else:
			self._entries = {k: v for k, v in self._entries.items() if k != index}
