# Filter normalizer: raw UI filter values -> zero or one FilterDescriptor

import json
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .filters import FilterDescriptor
from .mapping import NUMERIC_TYPES, FieldMappingInfo, FieldType, MappingCatalog


@dataclass(frozen=True)
class CandidateFilter:
	"""One column filter or dynamic filter row as the UI sent it."""
	field: str
	value: Any = None


@dataclass(frozen=True)
class GlobalFilterState:
	main_search: Optional[str] = None
	level: Optional[str] = None
	timestamp_range: Optional[Tuple[Any, Any]] = None
	additional_filters: Tuple[CandidateFilter, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class GlobalFields:
	"""Fields the global filters attach to."""
	message: str = "message"
	level: str = "level"
	timestamp: str = "@timestamp"

	@classmethod
	def from_config(cls, cfg) -> "GlobalFields":
		return cls(message=cfg.message_field, level=cfg.level_field, timestamp=cfg.timestamp_field)


def _is_blank(value: Any) -> bool:
	if value is None:
		return True
	if isinstance(value, str):
		return not value.strip()
	if isinstance(value, (list, tuple, set, dict)):
		return len(value) == 0
	return False


def _is_pair(value: Any) -> bool:
	return isinstance(value, (list, tuple)) and len(value) == 2


def _stringify(value: Any) -> str:
	if isinstance(value, (dict, list, tuple)):
		return json.dumps(value, default=str, sort_keys=True)
	if isinstance(value, bool):
		return "true" if value else "false"
	if isinstance(value, (datetime, date)):
		return _to_iso(value)
	return str(value).strip()


def _to_iso(value: Any) -> Optional[str]:
	if _is_blank(value):
		return None
	if isinstance(value, datetime):
		if value.tzinfo is None:
			value = value.replace(tzinfo=timezone.utc)
		return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")
	if isinstance(value, date):
		return value.isoformat()
	return str(value).strip()


def _to_number(value: Any) -> Optional[float]:
	"""Parse a number; None when blank or not numeric. Booleans are not numbers here."""
	if isinstance(value, bool) or _is_blank(value):
		return None
	if isinstance(value, int):
		return value
	if isinstance(value, float):
		return value if math.isfinite(value) else None
	text = str(value).strip()
	try:
		return int(text)
	except ValueError:
		pass
	try:
		number = float(text)
	except ValueError:
		return None
	return number if math.isfinite(number) else None


def _date_filter(field_path: str, value: Any) -> Optional[FilterDescriptor]:
	if not _is_pair(value):
		return None
	gte, lte = _to_iso(value[0]), _to_iso(value[1])
	if gte is None and lte is None:
		return None
	return FilterDescriptor.range(field_path, gte=gte, lte=lte)


def _numeric_filter(field_path: str, value: Any) -> Optional[FilterDescriptor]:
	if _is_pair(value):
		low, high = value
		gte, lte = _to_number(low), _to_number(high)
		# A bound that was filled in but does not parse spoils the whole range
		if (gte is None and not _is_blank(low)) or (lte is None and not _is_blank(high)):
			return None
		if gte is None and lte is None:
			return None
		return FilterDescriptor.range(field_path, gte=gte, lte=lte)
	if isinstance(value, (list, tuple, set, dict)):
		return None
	number = _to_number(value)
	if number is None:
		return None
	return FilterDescriptor.term(field_path, number)


def _keyword_filter(field_path: str, value: Any) -> Optional[FilterDescriptor]:
	if isinstance(value, (list, tuple, set)):
		values = [_stringify(v) for v in value if not _is_blank(v)]
		values = [v for v in values if v]
		if not values:
			return None
		return FilterDescriptor.terms(field_path, values)
	if _is_blank(value) or isinstance(value, dict):
		return None
	return FilterDescriptor.term(field_path, _stringify(value))


def _ip_filter(field_path: str, value: Any) -> Optional[FilterDescriptor]:
	if isinstance(value, Mapping):
		low, high = value.get("from"), value.get("to")
	elif _is_pair(value):
		low, high = value
	elif isinstance(value, (list, tuple, set)) or _is_blank(value):
		return None
	else:
		return FilterDescriptor.term(field_path, _stringify(value))
	gte = None if _is_blank(low) else _stringify(low)
	lte = None if _is_blank(high) else _stringify(high)
	if gte is None and lte is None:
		return None
	return FilterDescriptor.range(field_path, gte=gte, lte=lte)


def _text_filter(field_path: str, value: Any) -> Optional[FilterDescriptor]:
	if _is_blank(value):
		return None
	text = _stringify(value)
	if not text:
		return None
	return FilterDescriptor.match(field_path, text)


def _boolean_filter(field_path: str, value: Any) -> Optional[FilterDescriptor]:
	if value is True or value is False:
		return FilterDescriptor.term(field_path, value)
	return None


Normalizer = Callable[[str, Any], Optional[FilterDescriptor]]

# One entry per storage field type; a new type is a one-line change here.
DISPATCH: Dict[FieldType, Normalizer] = {
	FieldType.DATE: _date_filter,
	FieldType.DATE_NANOS: _date_filter,
	FieldType.KEYWORD: _keyword_filter,
	FieldType.CONSTANT_KEYWORD: _keyword_filter,
	FieldType.WILDCARD: _keyword_filter,
	FieldType.IP: _ip_filter,
	FieldType.TEXT: _text_filter,
	FieldType.MATCH_ONLY_TEXT: _text_filter,
	FieldType.BOOLEAN: _boolean_filter,
	FieldType.OBJECT: _text_filter,
	FieldType.NESTED: _text_filter,
	FieldType.FLATTENED: _text_filter,
	FieldType.UNKNOWN: _text_filter,
}
DISPATCH.update({numeric: _numeric_filter for numeric in NUMERIC_TYPES})


def normalize_value(field_path: str, value: Any, info: Optional[FieldMappingInfo]) -> Optional[FilterDescriptor]:
	"""Turn one raw value into a descriptor using the field's mapping, or None to drop it."""
	if not field_path or not str(field_path).strip():
		return None
	if info is None:
		return _text_filter(field_path, value)
	return DISPATCH.get(info.type, _text_filter)(field_path, value)


def normalize_filter(candidate: CandidateFilter, catalog: MappingCatalog) -> Optional[FilterDescriptor]:
	return normalize_value(candidate.field, candidate.value, catalog.lookup(candidate.field))


def normalize_column_filters(candidates: Iterable[CandidateFilter], catalog: MappingCatalog) -> List[FilterDescriptor]:
	descriptors = []
	for candidate in candidates:
		descriptor = normalize_filter(candidate, catalog)
		if descriptor is not None:
			descriptors.append(descriptor)
	return descriptors


def normalize_global_filters(
	state: GlobalFilterState,
	catalog: MappingCatalog,
	fields: GlobalFields = GlobalFields(),
) -> List[FilterDescriptor]:
	descriptors: List[FilterDescriptor] = []
	if state.main_search and state.main_search.strip():
		descriptors.append(FilterDescriptor.match_phrase(fields.message, state.main_search.strip()))
	if state.level and str(state.level).strip():
		descriptors.append(FilterDescriptor.term(fields.level, str(state.level).strip()))
	if state.timestamp_range is not None:
		timestamp = _date_filter(fields.timestamp, state.timestamp_range)
		if timestamp is not None:
			descriptors.append(timestamp)
	descriptors.extend(normalize_column_filters(state.additional_filters, catalog))
	return descriptors


def normalize_filter_state(
	columns: Sequence[CandidateFilter],
	state: GlobalFilterState,
	catalog: MappingCatalog,
	fields: GlobalFields = GlobalFields(),
) -> List[FilterDescriptor]:
	"""Column filters first, then the global filters, in the order the UI lists them."""
	return normalize_column_filters(columns, catalog) + normalize_global_filters(state, catalog, fields)
