"""Utilities for parsing line-delimited JSON streams from agent CLIs."""

import json
import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)


def split_json_objects(line: str) -> list[str]:
    """
    Split a line that may hold several concatenated JSON objects.

    Some CLIs flush multiple events without a newline between them,
    e.g. ``{"a":1}{"b":2}``. Braces inside string literals are ignored.
    A trailing fragment that never closes is dropped.

    Args:
        line: Raw output line

    Returns:
        List of JSON object strings, in order of appearance
    """
    objects = []
    current: list[str] = []
    depth = 0
    in_string = False
    escape_next = False

    for ch in line:
        if depth == 0 and ch != "{":
            # Text between objects is not part of any object
            continue

        current.append(ch)
        if escape_next:
            escape_next = False
            continue

        if ch == "\\" and in_string:
            escape_next = True
        elif ch == '"':
            in_string = not in_string
        elif ch == "{" and not in_string:
            depth += 1
        elif ch == "}" and not in_string:
            depth -= 1
            if depth == 0:
                objects.append("".join(current).strip())
                current = []

    return objects


def decode_stream_line(line: str) -> Optional[list[dict[str, Any]]]:
    """
    Decode one stdout line into JSON objects.

    Args:
        line: Raw line (trailing newline allowed)

    Returns:
        List of decoded objects, or None when the line is not JSON.
        An empty line decodes to an empty list.
    """
    stripped = line.strip()
    if not stripped:
        return []

    try:
        data = json.loads(stripped)
    except (json.JSONDecodeError, ValueError):
        data = None

    if isinstance(data, dict):
        return [data]
    if data is not None:
        # Valid JSON but not an event object (number, list, string)
        return None

    chunks = split_json_objects(stripped)
    if not chunks:
        return None

    decoded = []
    for chunk in chunks:
        try:
            obj = json.loads(chunk)
        except (json.JSONDecodeError, ValueError) as e:
            logger.debug(f"Failed to parse JSON chunk: {e}")
            return None
        if isinstance(obj, dict):
            decoded.append(obj)
    return decoded or None
