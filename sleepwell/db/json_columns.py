import json
from typing import Any, Optional


def dump_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"))


def load_json(raw: Optional[str]) -> Any:
    """Parse a JSON text column; empty or unreadable values read as None."""
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return None


def load_dict(raw: Optional[str]) -> dict[str, Any]:
    loaded = load_json(raw)
    return loaded if isinstance(loaded, dict) else {}


def load_list(raw: Optional[str]) -> list[dict[str, Any]]:
    loaded = load_json(raw)
    if not isinstance(loaded, list):
        return []
    return [entry for entry in loaded if isinstance(entry, dict)]
