# Display helpers shared by the CLI and the MCP server

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def format_timestamp(value: Any, use_utc: bool = False) -> str:
	"""Render an ISO-8601 timestamp in local time (or UTC); unparseable input is returned as-is."""
	if not value:
		return ""
	text = str(value)
	try:
		parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
	except ValueError:
		return text
	if parsed.tzinfo is None:
		parsed = parsed.replace(tzinfo=timezone.utc)
	if use_utc:
		return parsed.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S") + "Z"
	return parsed.astimezone().strftime("%Y-%m-%d %H:%M:%S")


def format_row(
	row: Dict[str, Any],
	timestamp_field: str = "@timestamp",
	level_field: str = "level",
	message_field: str = "message",
	use_utc: bool = False,
) -> str:
	"""One log line: timestamp, level, message, then the remaining fields as key=value."""
	timestamp = format_timestamp(row.get(timestamp_field), use_utc=use_utc)
	level = row.get(level_field) or ""
	message = row.get(message_field)
	skip = {"id", timestamp_field, level_field, message_field}
	extras = []
	for key in sorted(k for k in row if k not in skip):
		extras.append(f"{key}={_short(row[key])}")
	parts = [p for p in (timestamp, str(level).upper() if level else "", _short(message) if message is not None else "") if p]
	if extras:
		parts.append(f"[{' '.join(extras)}]")
	return " ".join(parts)


def _short(value: Any, limit: Optional[int] = 200) -> str:
	if isinstance(value, (dict, list)):
		text = json.dumps(value, default=str, sort_keys=True)
	elif value is None:
		text = "null"
	else:
		text = str(value)
	if limit is not None and len(text) > limit:
		return text[: limit - 3] + "..."
	return text
