"""
Utility functions for Primer Analytics Hub.
Lenient value coercion, batching, and atomic file writes.

Usage:
    from scripts.lib.utils import safe_number, safe_float, batched, atomic_write_json
"""
import json
import os
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from scripts.lib.logger import setup_logger

logger = setup_logger(__name__)

TRUE_STRINGS = ("TRUE", "YES", "Y")
FALSE_STRINGS = ("FALSE", "NO", "N")


def safe_float(val: Any) -> Optional[float]:
    """Convert a value to float, returning None on failure."""
    if val is None or val == "":
        return None
    if isinstance(val, bool):
        return float(val)
    try:
        return float(str(val).replace(",", "").strip())
    except (ValueError, TypeError):
        return None


def safe_int(val: Any) -> Optional[int]:
    """Convert a value to int, returning None on failure."""
    number = safe_float(val)
    if number is None or number != number:
        return None
    try:
        return int(number)
    except (ValueError, OverflowError):
        return None


def safe_number(val: Any) -> float:
    """Numeric parse that never raises: unparseable or non-finite input becomes 0."""
    number = safe_float(val)
    if number is None or number != number or number in (float("inf"), float("-inf")):
        return 0
    if number.is_integer():
        return int(number)
    return number


def parse_bool(val: Any) -> Any:
    """
    Parse spreadsheet boolean spellings (TRUE/Yes/Y, FALSE/No/N).

    Values that are not a recognised spelling are returned unchanged so a
    free-text cell is never silently turned into False.
    """
    if isinstance(val, bool):
        return val
    if isinstance(val, str):
        upper = val.strip().upper()
        if upper in TRUE_STRINGS:
            return True
        if upper in FALSE_STRINGS:
            return False
    return val


def batched(items: List, size: int) -> Iterator[List]:
    """Yield successive batches from a list."""
    if size < 1:
        raise ValueError("batch size must be >= 1")
    for i in range(0, len(items), size):
        yield items[i : i + size]


def atomic_write_json(data: Any, file_path: str | Path, indent: int = 2) -> bool:
    """
    Write JSON data to file atomically using temp file + rename.

    Args:
        data: Object to serialize as JSON.
        file_path: Target file path.
        indent: JSON indentation level.

    Returns:
        True if successful, False otherwise.
    """
    file_path = Path(file_path)
    temp_path = file_path.with_suffix(file_path.suffix + ".tmp")

    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=indent, default=str)

        os.replace(temp_path, file_path)
        logger.debug("Atomically wrote JSON to %s", file_path)
        return True

    except (OSError, TypeError, ValueError) as e:
        logger.error("Failed to write JSON to %s: %s", file_path, e)
        if temp_path.exists():
            temp_path.unlink()
        return False


def first_present(row: Dict, *keys: str) -> Any:
    """Return the first non-empty value among *keys* in *row*, or None."""
    for key in keys:
        value = row.get(key)
        if value not in (None, ""):
            return value
    return None
