# Error taxonomy surfaced by the search gateway


class SearchError(Exception):
	"""Base class for errors raised by the search layer."""
	status_code = 500


class ValidationError(SearchError):
	"""Rejected before any storage call: bad filter kind, empty index name, malformed body."""
	status_code = 400


class NotFoundError(SearchError):
	"""The index or index pattern matches nothing."""
	status_code = 404


class SearchFailedError(SearchError):
	"""The storage engine rejected or failed the request."""
	status_code = 400

	def __init__(self, message, engine_message=None, status_code=None):
		super().__init__(message)
		self.engine_message = engine_message
		if status_code is not None:
			self.status_code = status_code
