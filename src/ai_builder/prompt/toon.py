"""
Compact tabular text encoding (TOON) for lists of records.

A block looks like::

    colors[2]{label}:
      Red
      Dark Blue

The header names the collection, its length and its columns; each row is
indented two spaces with values separated by commas. Values that would
break the row layout are JSON-quoted.
"""

import json
from typing import Any, Dict, List, Sequence

_NEEDS_QUOTING = (",", "\n", "\r", '"', "\t")


def encode_value(value: Any) -> str:
    """Encode one cell."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if not isinstance(value, str):
        value = json.dumps(value, ensure_ascii=False, sort_keys=True)
    if value != value.strip() or any(ch in value for ch in _NEEDS_QUOTING):
        return json.dumps(value, ensure_ascii=False)
    return value


def format_to_toon(name: str, rows: Sequence[Dict[str, Any]], fields: List[str]) -> str:
    """
    Encode records as a TOON block.

    Args:
        name: Collection name used in the header
        rows: Records to encode
        fields: Columns to emit, in order

    Returns:
        The encoded block, or an empty string when there are no rows
    """
    if not rows or not fields:
        return ""

    lines = [f"{name}[{len(rows)}]{{{','.join(fields)}}}:"]
    for row in rows:
        lines.append("  " + ",".join(encode_value(row.get(field)) for field in fields))
    return "\n".join(lines)
