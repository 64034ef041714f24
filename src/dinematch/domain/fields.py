from __future__ import annotations

from typing import Any, Dict


def pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """First non-None value among `keys` (snake_case first, then legacy camelCase)."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default
