# Request bodies accepted by the web API

from typing import Any, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from ..filters import FilterDescriptor
from ..gateway import SearchOptions
from ..normalizer import CandidateFilter, GlobalFilterState
from ..query_builder import GlobalQuery


class FieldFilterModel(BaseModel):
	field: str
	type: str
	value: Any = None
	operator: Optional[str] = None
	boost: Optional[float] = None

	def to_descriptor(self) -> FilterDescriptor:
		return FilterDescriptor.from_wire(self.model_dump(exclude_none=True))


class GlobalSearchModel(BaseModel):
	query: str
	fields: Optional[List[str]] = None
	fuzziness: Optional[Union[int, str]] = None

	@field_validator("fuzziness")
	@classmethod
	def _check_fuzziness(cls, value):
		if value is None:
			return value
		if isinstance(value, int):
			if not 0 <= value <= 2:
				raise ValueError("fuzziness must be between 0 and 2")
			return value
		if not value.upper().startswith("AUTO"):
			raise ValueError("fuzziness must be a number or AUTO")
		return value.upper()

	def to_global_query(self) -> GlobalQuery:
		return GlobalQuery(text=self.query, fields=tuple(self.fields or ()), fuzziness=self.fuzziness)


class SearchOptionsModel(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	page: int = 1
	page_size: int = Field(10, alias="pageSize")
	sort_fields: List[str] = Field(default_factory=list, alias="sortFields")
	sort_order: Literal["asc", "desc"] = Field("desc", alias="sortOrder")
	filters: List[FieldFilterModel] = Field(default_factory=list)
	global_search: Optional[GlobalSearchModel] = Field(None, alias="globalSearch")

	def to_options(self) -> SearchOptions:
		return SearchOptions(
			page=self.page,
			page_size=self.page_size,
			sort_fields=tuple(self.sort_fields),
			sort_order=self.sort_order,
			filters=tuple(f.to_descriptor() for f in self.filters),
			global_search=self.global_search.to_global_query() if self.global_search else None,
		)


class StrictFieldFilterModel(FieldFilterModel):
	model_config = ConfigDict(extra="forbid")


class StrictGlobalSearchModel(GlobalSearchModel):
	model_config = ConfigDict(extra="forbid")


class SearchUiRequestModel(SearchOptionsModel):
	"""Whitelisted search UI body: unknown keys are rejected at every level and page size is capped at 100."""
	model_config = ConfigDict(populate_by_name=True, extra="forbid")

	index_name: Optional[str] = Field(None, alias="indexName")
	page: int = Field(1, ge=1)
	page_size: int = Field(10, ge=1, le=100, alias="pageSize")
	filters: List[StrictFieldFilterModel] = Field(default_factory=list)
	global_search: Optional[StrictGlobalSearchModel] = Field(None, alias="globalSearch")
	with_aggregations: bool = Field(True, alias="withAggregations")


class CandidateFilterModel(BaseModel):
	field: str = Field(validation_alias=AliasChoices("field", "id"))
	value: Any = None

	def to_candidate(self) -> CandidateFilter:
		return CandidateFilter(field=self.field, value=_freeze(self.value))


class LogListingRequestModel(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	page: int = 1
	page_size: int = Field(10, alias="pageSize")
	sort_fields: List[str] = Field(default_factory=list, alias="sortFields")
	sort_order: Literal["asc", "desc"] = Field("desc", alias="sortOrder")
	column_filters: List[CandidateFilterModel] = Field(default_factory=list, alias="columnFilters")
	main_search: Optional[str] = Field(None, alias="mainSearch")
	level: Optional[str] = None
	timestamp_range: Optional[List[Any]] = Field(None, alias="timestampRange")
	additional_filters: List[CandidateFilterModel] = Field(default_factory=list, alias="additionalFilters")

	def to_columns(self) -> List[CandidateFilter]:
		return [c.to_candidate() for c in self.column_filters]

	def to_state(self) -> GlobalFilterState:
		return GlobalFilterState(
			main_search=self.main_search,
			level=self.level,
			timestamp_range=tuple(self.timestamp_range) if self.timestamp_range is not None else None,
			additional_filters=tuple(c.to_candidate() for c in self.additional_filters),
		)


def _freeze(value):
	# JSON arrays arrive as lists; candidates hold tuples so they stay immutable
	if isinstance(value, list):
		return tuple(_freeze(v) for v in value)
	return value
