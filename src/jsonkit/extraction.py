"""Content-derived metadata ("extData") for JSON files.

Each extraction rule maps a name to a JSONPath expression. Running the rules
against a parsed document yields, per rule, the matched values with
duplicates removed in first-seen order. A rule that matches nothing still
appears with an empty list.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path
from typing import Any

from jsonpath_ng.exceptions import JsonPathLexerError, JsonPathParserError
from jsonpath_ng.ext import parse as parse_jsonpath

from jsonkit.errors import MalformedContent
from jsonkit.logging import get_logger

log = get_logger("extraction")

ExtData = dict[str, list[Any]]


@lru_cache(maxsize=256)
def _compile(expression: str) -> Any:
    return parse_jsonpath(expression)


def _identity(value: Any) -> Any:
    """Hashable stand-in for a JSON value, used for deduplication."""
    if isinstance(value, (dict, list)):
        return ("json", json.dumps(value, sort_keys=True, separators=(",", ":")))
    if isinstance(value, bool):
        return ("bool", value)
    # 1 and 1.0 are the same JSON number; True == 1 in Python but not in JSON
    if isinstance(value, (int, float)):
        return ("number", value)
    return (type(value).__name__, value)


def dedupe(values: list[Any]) -> list[Any]:
    """Remove duplicates, keeping the first occurrence of each value."""
    seen: set[Any] = set()
    result: list[Any] = []
    for value in values:
        ident = _identity(value)
        if ident in seen:
            continue
        seen.add(ident)
        result.append(value)
    return result


def query(expression: str, content: Any) -> list[Any]:
    """Evaluate one JSONPath expression; any failure yields an empty list."""
    try:
        compiled = _compile(expression)
    except (JsonPathLexerError, JsonPathParserError, ValueError) as e:
        log.warning("Invalid extraction query %r: %s", expression, e)
        return []
    try:
        matches = compiled.find(content)
    except Exception as e:  # evaluator errors on unexpected shapes
        log.debug("Query %r failed: %s", expression, e)
        return []
    return [match.value for match in matches]


def extract(rules: Mapping[str, str] | None, content: Any) -> ExtData:
    """Run every rule against parsed content.

    Args:
        rules: Rule name -> JSONPath expression. Empty or None means none.
        content: Parsed JSON value.

    Returns:
        Rule name -> deduplicated list of matches. Empty dict if no rules.
    """
    if not rules:
        return {}
    return {name: dedupe(query(expression, content)) for name, expression in rules.items()}


def read_json(path: str | Path) -> Any:
    """Read and parse a JSON file.

    Raises:
        OSError: If the file cannot be read.
        MalformedContent: If the content is not valid JSON.
    """
    with open(path, "rb") as f:
        source = f.read()
    try:
        return json.loads(source.decode("utf-8"))
    except ValueError as e:
        raise MalformedContent(str(path), str(e)) from e


def load_ext_data(rules: Mapping[str, str] | None, path: str | Path) -> ExtData | None:
    """Read a file and extract its extData.

    Returns:
        None when no rules are configured or the file cannot be read or
        parsed; otherwise the extraction result.
    """
    if not rules:
        return None
    try:
        content = read_json(path)
    except MalformedContent as e:
        log.warning("%s", e)
        return None
    except OSError as e:
        log.warning("Cannot read %s: %s", path, e)
        return None
    return extract(rules, content)
