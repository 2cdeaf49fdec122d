# Filter descriptors: the engine-agnostic unit of search intent

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .errors import ValidationError

Scalar = Union[str, int, float, bool]


class FilterValidationError(ValidationError):
	"""Raised when a descriptor would break its invariants or the wire payload is malformed."""
	pass


class FilterKind(str, Enum):
	TERM = "term"
	TERMS = "terms"
	RANGE = "range"
	MATCH = "match"
	MATCH_PHRASE = "match_phrase"
	PREFIX = "prefix"
	WILDCARD = "wildcard"
	EXISTS = "exists"
	BOOL = "bool"


class Operator(str, Enum):
	AND = "AND"
	OR = "OR"


@dataclass(frozen=True)
class ScalarValue:
	value: Scalar


@dataclass(frozen=True)
class Bounds:
	gte: Optional[Scalar] = None
	lte: Optional[Scalar] = None

	def is_empty(self) -> bool:
		return self.gte is None and self.lte is None

	def to_dict(self) -> Dict[str, Scalar]:
		bounds = {}
		if self.gte is not None:
			bounds["gte"] = self.gte
		if self.lte is not None:
			bounds["lte"] = self.lte
		return bounds


@dataclass(frozen=True)
class ScalarList:
	values: Tuple[Scalar, ...]


@dataclass(frozen=True)
class Clause:
	"""Structured pass-through body for `bool` descriptors."""
	body: Tuple[Tuple[str, Any], ...]

	@classmethod
	def of(cls, body: Mapping[str, Any]) -> "Clause":
		return cls(tuple(body.items()))

	def to_dict(self) -> Dict[str, Any]:
		return dict(self.body)


FilterValue = Union[ScalarValue, Bounds, ScalarList, Clause, None]

_VALUE_SHAPES = {
	FilterKind.TERM: ScalarValue,
	FilterKind.TERMS: ScalarList,
	FilterKind.RANGE: Bounds,
	FilterKind.MATCH: ScalarValue,
	FilterKind.MATCH_PHRASE: ScalarValue,
	FilterKind.PREFIX: ScalarValue,
	FilterKind.WILDCARD: ScalarValue,
	FilterKind.EXISTS: type(None),
	FilterKind.BOOL: Clause,
}


def _is_scalar(value):
	return isinstance(value, (str, int, float, bool))


@dataclass(frozen=True)
class FilterDescriptor:
	field: str
	kind: FilterKind
	value: FilterValue = None
	operator: Optional[Operator] = None
	boost: Optional[float] = None

	def __post_init__(self):
		if not isinstance(self.field, str) or not self.field.strip():
			raise FilterValidationError("Filter field cannot be empty.")
		if not isinstance(self.kind, FilterKind):
			raise FilterValidationError(f"Unsupported filter type: {self.kind}")
		expected = _VALUE_SHAPES[self.kind]
		if not isinstance(self.value, expected):
			raise FilterValidationError(
				f"Filter '{self.field}' of type {self.kind.value} cannot carry {type(self.value).__name__}"
			)
		if isinstance(self.value, Bounds) and self.value.is_empty():
			raise FilterValidationError(f"Range filter on '{self.field}' needs gte or lte.")
		if isinstance(self.value, ScalarList) and not self.value.values:
			raise FilterValidationError(f"Terms filter on '{self.field}' needs at least one value.")
		if self.operator is not None and not isinstance(self.operator, Operator):
			raise FilterValidationError(f"Unsupported operator: {self.operator}")
		if self.boost is not None and (isinstance(self.boost, bool) or not isinstance(self.boost, (int, float))):
			raise FilterValidationError(f"Boost must be a number, got {self.boost!r}")

	# Named constructors, one per kind

	@classmethod
	def term(cls, field, value, boost=None):
		return cls(field, FilterKind.TERM, ScalarValue(value), boost=boost)

	@classmethod
	def terms(cls, field, values, boost=None):
		return cls(field, FilterKind.TERMS, ScalarList(tuple(values)), boost=boost)

	@classmethod
	def range(cls, field, gte=None, lte=None, boost=None):
		return cls(field, FilterKind.RANGE, Bounds(gte, lte), boost=boost)

	@classmethod
	def match(cls, field, value, operator=None, boost=None):
		return cls(field, FilterKind.MATCH, ScalarValue(value), operator=operator, boost=boost)

	@classmethod
	def match_phrase(cls, field, value, boost=None):
		return cls(field, FilterKind.MATCH_PHRASE, ScalarValue(value), boost=boost)

	@classmethod
	def prefix(cls, field, value, boost=None):
		return cls(field, FilterKind.PREFIX, ScalarValue(value), boost=boost)

	@classmethod
	def wildcard(cls, field, value, boost=None):
		return cls(field, FilterKind.WILDCARD, ScalarValue(value), boost=boost)

	@classmethod
	def exists(cls, field):
		return cls(field, FilterKind.EXISTS, None)

	@classmethod
	def bool(cls, field, body):
		return cls(field, FilterKind.BOOL, Clause.of(body))

	@property
	def raw_value(self) -> Any:
		"""Plain Python value as it appears on the wire."""
		value = self.value
		if isinstance(value, ScalarValue):
			return value.value
		if isinstance(value, Bounds):
			return value.to_dict()
		if isinstance(value, ScalarList):
			return list(value.values)
		if isinstance(value, Clause):
			return value.to_dict()
		return None

	def to_wire(self) -> Dict[str, Any]:
		wire = {"field": self.field, "type": self.kind.value}
		if self.kind is not FilterKind.EXISTS:
			wire["value"] = self.raw_value
		if self.operator is not None:
			wire["operator"] = self.operator.value
		if self.boost is not None:
			wire["boost"] = self.boost
		return wire

	@classmethod
	def from_wire(cls, payload: Mapping[str, Any]) -> "FilterDescriptor":
		"""Parse `{field, type, value, operator?, boost?}` into a descriptor."""
		if not isinstance(payload, Mapping):
			raise FilterValidationError("Filter must be an object.")
		field = payload.get("field")
		raw_kind = payload.get("type")
		try:
			kind = FilterKind(raw_kind)
		except ValueError:
			raise FilterValidationError(f"Unsupported filter type: {raw_kind}")
		operator = payload.get("operator")
		if operator is not None:
			try:
				operator = Operator(str(operator).upper())
			except ValueError:
				raise FilterValidationError(f"Unsupported operator: {operator}")
		boost = payload.get("boost")
		value = payload.get("value")
		return cls(field, kind, _wire_value(kind, field, value), operator=operator, boost=boost)


def _wire_value(kind, field, value):
	if kind is FilterKind.EXISTS:
		return None
	if kind is FilterKind.RANGE:
		if not isinstance(value, Mapping):
			raise FilterValidationError(f"Range filter on '{field}' needs an object with gte/lte.")
		unknown = set(value) - {"gte", "lte"}
		if unknown:
			raise FilterValidationError(f"Range filter on '{field}' has unsupported keys: {sorted(unknown)}")
		gte = value.get("gte")
		lte = value.get("lte")
		return Bounds(gte, lte)
	if kind is FilterKind.TERMS:
		if not isinstance(value, (list, tuple)) or not all(_is_scalar(v) for v in value):
			raise FilterValidationError(f"Terms filter on '{field}' needs a list of values.")
		return ScalarList(tuple(value))
	if kind is FilterKind.BOOL:
		if not isinstance(value, Mapping):
			raise FilterValidationError(f"Bool filter on '{field}' needs an object body.")
		return Clause.of(value)
	if not _is_scalar(value):
		raise FilterValidationError(f"Filter '{field}' of type {kind.value} needs a single value.")
	return ScalarValue(value)
