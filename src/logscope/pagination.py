# Page clamping and page counts

from dataclasses import dataclass
from typing import Any

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 250


@dataclass(frozen=True)
class Page:
	page: int
	page_size: int

	@property
	def offset(self) -> int:
		return (self.page - 1) * self.page_size


def _as_int(value: Any, default: int) -> int:
	if value is None or isinstance(value, bool):
		return default
	try:
		return int(value)
	except (TypeError, ValueError):
		return default


def normalize_page(page: Any = 1, page_size: Any = DEFAULT_PAGE_SIZE, max_page_size: int = MAX_PAGE_SIZE) -> Page:
	"""Clamp to page >= 1 and 1 <= page_size <= max_page_size."""
	page = max(1, _as_int(page, 1))
	# An unset (0) page size means the default, not the minimum
	size = _as_int(page_size, DEFAULT_PAGE_SIZE) or DEFAULT_PAGE_SIZE
	return Page(page=page, page_size=min(max(1, size), max_page_size))


def compute_total_pages(total: int, page_size: int) -> int:
	if total <= 0 or page_size <= 0:
		return 0
	return -(-total // page_size)
