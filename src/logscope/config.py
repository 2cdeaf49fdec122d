# Configuration loading for logscope

import os

# Lazy load dotenv - only when config is first accessed
_dotenv_loaded = False
_custom_dotenv_path = None

def _getenv(name, default):
	value = os.getenv(name)
	return value if value else default

def _getbool(name, default):
	value = os.getenv(name)
	if not value:
		return default
	return value.strip().lower() in ("1", "true", "yes", "on")

class LogscopeConfig:
	"""Loads configuration from environment variables and provides defaults."""
	def __init__(self):
		self.opensearch_host = _getenv("LOGSCOPE_OPENSEARCH_HOST", "localhost")
		self.opensearch_port = int(_getenv("LOGSCOPE_OPENSEARCH_PORT", "9200"))
		self.opensearch_scheme = _getenv("LOGSCOPE_OPENSEARCH_SCHEME", "http")
		self.opensearch_user = _getenv("LOGSCOPE_OPENSEARCH_USER", "admin")
		self.opensearch_pass = _getenv("LOGSCOPE_OPENSEARCH_PASS", "admin")
		self.opensearch_timeout = int(_getenv("LOGSCOPE_OPENSEARCH_TIMEOUT", "30"))
		self.verify_certs = _getbool("LOGSCOPE_OPENSEARCH_VERIFY_CERTS", True)
		self.index_logs = _getenv("LOGSCOPE_INDEX", "logs-*")
		# Field names used by the global log filters
		self.timestamp_field = _getenv("LOGSCOPE_TIMESTAMP_FIELD", "@timestamp")
		self.message_field = _getenv("LOGSCOPE_MESSAGE_FIELD", "message")
		self.level_field = _getenv("LOGSCOPE_LEVEL_FIELD", "level")
		# Paging
		self.max_page_size = int(_getenv("LOGSCOPE_MAX_PAGE_SIZE", "250"))
		# Mapping catalog cache lifetime
		self.mapping_ttl_seconds = int(_getenv("LOGSCOPE_MAPPING_TTL_SECONDS", "300"))
		# Optional base filters for the log listing path (empty disables them)
		self.required_field = _getenv("LOGSCOPE_REQUIRED_FIELD", "")
		self.excluded_field = _getenv("LOGSCOPE_EXCLUDED_FIELD", "")
		self.excluded_pattern = _getenv("LOGSCOPE_EXCLUDED_PATTERN", "")

def set_dotenv_path(path: str):
	"""Set a custom .env file path to load. Must be called before load_config()."""
	global _custom_dotenv_path, _dotenv_loaded
	_custom_dotenv_path = path
	_dotenv_loaded = False  # Reset to force reload with new path

def load_config() -> LogscopeConfig:
	"""Return a config object with all settings loaded."""
	global _dotenv_loaded, _custom_dotenv_path
	if not _dotenv_loaded:
		from dotenv import load_dotenv, find_dotenv
		dotenv_path = os.getenv("DOTENV_PATH") or _custom_dotenv_path
		if dotenv_path:
			# Explicit file wins over whatever is already in the environment
			load_dotenv(dotenv_path, override=True)
		else:
			dotenv_path = find_dotenv(usecwd=True)
			if dotenv_path:
				load_dotenv(dotenv_path)
		_dotenv_loaded = True
	return LogscopeConfig()
