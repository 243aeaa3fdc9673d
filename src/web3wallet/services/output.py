"""
Output - Render command results as a text table or a JSON envelope.

JSON:
    {"success": true, "data": ...}
    {"success": false, "error": {"kind": ..., "code": ..., "message": ...}}
"""

import json
import shutil
from typing import Any, Optional, Sequence

from ..errors import WalletError
from ..networks import format_address

OUTPUT_TABLE = "table"
OUTPUT_JSON = "json"
OUTPUT_FORMATS = (OUTPUT_TABLE, OUTPUT_JSON)

# Below this terminal width, list output shortens addresses
NARROW_TERMINAL = 100


def _to_data(result: Any) -> Any:
    if hasattr(result, "to_dict"):
        return result.to_dict()
    if isinstance(result, (list, tuple)):
        return [_to_data(item) for item in result]
    return result


def _format_value(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, dict):
        return ", ".join(f"{k}={_format_value(v)}" for k, v in value.items())
    return str(value)


def format_key_values(data: dict) -> str:
    """Two-column table for a single result."""
    if not data:
        return ""
    width = max(len(key) for key in data)
    return "\n".join(f"{key.ljust(width)}  {_format_value(value)}" for key, value in data.items())


def format_rows(rows: Sequence[dict], columns: Optional[Sequence[str]] = None) -> str:
    """Column table for a list of results."""
    if not rows:
        return "(none)"
    columns = list(columns or rows[0].keys())
    cells = [[_format_value(row.get(col)) for col in columns] for row in rows]
    widths = [max(len(col), *(len(r[i]) for r in cells)) for i, col in enumerate(columns)]

    lines = ["  ".join(col.upper().ljust(w) for col, w in zip(columns, widths))]
    lines.append("  ".join("-" * w for w in widths))
    for row in cells:
        lines.append("  ".join(cell.ljust(w) for cell, w in zip(row, widths)))
    return "\n".join(line.rstrip() for line in lines)


def render(result: Any, fmt: str = OUTPUT_TABLE, columns: Optional[Sequence[str]] = None,
           shorten_addresses: bool = False) -> str:
    """
    Render a successful result.

    Args:
        result: result object (with to_dict), list of them, or plain data
        fmt: "table" or "json"
        columns: column order for list tables
        shorten_addresses: allow 0x1234...abcd in list tables on narrow terminals
    """
    data = _to_data(result)
    if fmt == OUTPUT_JSON:
        return json.dumps({"success": True, "data": data}, indent=2)

    if isinstance(data, list):
        if shorten_addresses and shutil.get_terminal_size().columns < NARROW_TERMINAL:
            data = [
                {**row, "address": format_address(row["address"])} if "address" in row else row
                for row in data
            ]
        return format_rows(data, columns)
    if isinstance(data, dict):
        return format_key_values(data)
    return _format_value(data)


def render_error(error: WalletError, fmt: str = OUTPUT_TABLE) -> str:
    """Render a wallet error (never includes secret material)."""
    if fmt == OUTPUT_JSON:
        return json.dumps({"success": False, "error": error.to_dict()}, indent=2)
    return f"Error [{error.code}]: {error.message}"
