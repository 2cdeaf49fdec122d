# OpenSearch client factory - using stdlib urllib for fast imports

import json
import ssl
import urllib.error
import urllib.parse
import urllib.request
from base64 import b64encode

from ..config import load_config


class OpenSearchError(Exception):
	"""Base exception for OpenSearch errors with user-friendly messages."""

	def __init__(self, message, status=None, error_type=None):
		super().__init__(message)
		self.status = status
		self.error_type = error_type


class ConnectionFailedError(OpenSearchError):
	"""Raised when OpenSearch is not reachable."""
	pass


class IndexNotFoundError(OpenSearchError):
	"""Raised when the specified index or pattern does not exist."""
	pass


class AuthenticationError(OpenSearchError):
	"""Raised when authentication fails."""
	pass


class QueryError(OpenSearchError):
	"""Raised when OpenSearch rejects a request (bad query, bad field, ...)."""
	pass


def _parse_error_body(raw):
	"""Return (error_type, reason) from an OpenSearch error body."""
	try:
		payload = json.loads(raw) if raw else {}
	except ValueError:
		return None, raw.strip() if raw else None
	if not isinstance(payload, dict):
		return None, None
	error = payload.get("error")
	if isinstance(error, str):
		return None, error
	if not isinstance(error, dict):
		return None, None
	error_type = error.get("type")
	reason = error.get("reason")
	root_causes = error.get("root_cause") or []
	if not reason and root_causes and isinstance(root_causes[0], dict):
		reason = root_causes[0].get("reason")
	return error_type, reason


def _error_from_http(e, method, path):
	try:
		raw = e.read().decode("utf-8")
	except Exception:
		raw = ""
	error_type, reason = _parse_error_body(raw)
	reason = reason or e.reason or f"HTTP {e.code}"
	if e.code == 401:
		return AuthenticationError("Authentication failed (HTTP 401)", status=401, error_type=error_type)
	if error_type == "index_not_found_exception" or (e.code == 404 and error_type is None):
		return IndexNotFoundError(reason, status=e.code, error_type=error_type or "index_not_found_exception")
	return QueryError(f"{method} {path} failed: {reason}", status=e.code, error_type=error_type)


class LightweightOpenSearchClient:
	"""Minimal OpenSearch client using stdlib urllib for fast imports."""

	def __init__(self, host, port, user, password, timeout=5, scheme="http", verify_certs=True):
		self.base_url = f"{scheme}://{host}:{port}"
		self.timeout = timeout
		self.headers = {"Content-Type": "application/json"}
		if user:
			credentials = b64encode(f"{user}:{password}".encode()).decode('ascii')
			self.headers["Authorization"] = f"Basic {credentials}"
		self._ssl_context = None
		if scheme == "https" and not verify_certs:
			self._ssl_context = ssl.create_default_context()
			self._ssl_context.check_hostname = False
			self._ssl_context.verify_mode = ssl.CERT_NONE

	def _request(self, method, path, body=None):
		"""Make HTTP request to OpenSearch."""
		url = f"{self.base_url}{path}"
		data = json.dumps(body).encode('utf-8') if body is not None else None
		req = urllib.request.Request(url, data=data, headers=self.headers, method=method)
		try:
			with urllib.request.urlopen(req, timeout=self.timeout, context=self._ssl_context) as resp:
				raw = resp.read().decode('utf-8')
				if not raw:
					return {}
				return json.loads(raw)
		except urllib.error.HTTPError as e:
			raise _error_from_http(e, method, path)
		except urllib.error.URLError as e:
			raise ConnectionFailedError(f"Cannot connect: {e.reason}")

	def info(self):
		"""Get cluster info (used for connection check)."""
		return self._request("GET", "/")

	def search(self, index, body):
		"""Search an index or index pattern."""
		return self._request("POST", f"/{_quote_index(index)}/_search", body)

	def get_mapping(self, index):
		"""Fetch the mapping of every index matching `index`."""
		return self._request("GET", f"/{_quote_index(index)}/_mapping")


def _quote_index(index):
	# Patterns keep their wildcards and commas
	return urllib.parse.quote(index, safe="*,-_.")


def get_opensearch_client():
	cfg = load_config()
	return LightweightOpenSearchClient(
		host=cfg.opensearch_host,
		port=cfg.opensearch_port,
		user=cfg.opensearch_user,
		password=cfg.opensearch_pass,
		timeout=cfg.opensearch_timeout,
		scheme=cfg.opensearch_scheme,
		verify_certs=cfg.verify_certs,
	)


def check_connection(client):
	"""Check if OpenSearch is reachable. Raises ConnectionFailedError if not."""
	cfg = load_config()
	try:
		client.info()
	except ConnectionFailedError:
		raise ConnectionFailedError(
			f"Cannot connect to OpenSearch at {cfg.opensearch_host}:{cfg.opensearch_port}\n"
			f"Make sure OpenSearch is running and accessible."
		)
	except AuthenticationError:
		raise AuthenticationError(
			f"Authentication failed for OpenSearch at {cfg.opensearch_host}:{cfg.opensearch_port}\n"
			f"Check LOGSCOPE_OPENSEARCH_USER and LOGSCOPE_OPENSEARCH_PASS in your .env file.",
			status=401,
		)
