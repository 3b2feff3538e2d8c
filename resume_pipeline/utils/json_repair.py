"""
Helpers for turning loosely formatted model output into a JSON object.

Model responses often wrap JSON in code fences or prose, use typographic
quotes, leave trailing commas, or get cut off mid-object. ``parse_model_json``
tries the raw object first and then applies increasingly invasive repairs.
"""

import json
import re
from itertools import combinations
from typing import Any, Callable, Dict, List, Optional, Tuple

_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_SMART_QUOTES = {
    "“": '"',
    "”": '"',
    "„": '"',
    "‟": '"',
    "″": '"',
    "‘": "'",
    "’": "'",
    "‚": "'",
    "‛": "'",
}
_CLOSERS = {"{": "}", "[": "]"}


class JSONRepairError(ValueError):
    pass


def locate_json_object(text: str) -> str:
    """
    Return the substring from the first ``{`` to its matching ``}``.

    Braces inside string literals are ignored. When the object never closes
    (truncated output) everything from the first ``{`` is returned.
    """
    start = text.find("{")
    if start == -1:
        raise JSONRepairError("No JSON object found in response")

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]

    return text[start:].rstrip()


def strip_trailing_commas(candidate: str) -> str:
    return _TRAILING_COMMA_RE.sub(r"\1", candidate)


def normalize_smart_quotes(candidate: str) -> str:
    for smart, plain in _SMART_QUOTES.items():
        candidate = candidate.replace(smart, plain)
    return candidate


def close_unbalanced(candidate: str) -> str:
    """Append the closers for any brackets still open at the end of the text"""
    stack: List[str] = []
    in_string = False
    escaped = False
    for char in candidate:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in _CLOSERS:
            stack.append(_CLOSERS[char])
        elif char in "}]" and stack and stack[-1] == char:
            stack.pop()

    repaired = candidate
    if in_string:
        repaired += '"'
    repaired = strip_trailing_commas(repaired.rstrip().rstrip(",") + "".join(reversed(stack)))
    return repaired


REPAIRS: List[Tuple[str, Callable[[str], str]]] = [
    ("trailing_commas", strip_trailing_commas),
    ("smart_quotes", normalize_smart_quotes),
    ("close_unbalanced", close_unbalanced),
]


def repair_plans() -> List[List[Tuple[str, Callable[[str], str]]]]:
    """Every combination of REPAIRS in their fixed order, fewest repairs first"""
    plans = []
    for size in range(len(REPAIRS) + 1):
        plans.extend(list(plan) for plan in combinations(REPAIRS, size))
    return plans


def parse_model_json(text: str) -> Tuple[Dict[str, Any], List[str]]:
    """
    Parse the first JSON object in ``text``.

    Each combination of repairs is applied to the located object from
    scratch, so a repair that does not help (smart quotes inside string
    values, say) never spoils one that does. Returns the parsed object and
    the names of the repairs that were applied. Raises ``JSONRepairError``
    when no object can be recovered.
    """
    if not text or not text.strip():
        raise JSONRepairError("Empty response")

    located = locate_json_object(text)

    tried = set()
    last_error: Optional[Exception] = None
    for plan in repair_plans():
        candidate = located
        applied: List[str] = []
        for name, repair in plan:
            repaired = repair(candidate)
            if repaired != candidate:
                candidate = repaired
                applied.append(name)
        if candidate in tried:
            continue
        tried.add(candidate)

        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError as e:
            last_error = e
            continue
        if not isinstance(parsed, dict):
            raise JSONRepairError("Response JSON is not an object")
        return parsed, applied

    raise JSONRepairError(f"Could not parse JSON after repairs: {last_error}")
