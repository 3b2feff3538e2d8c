"""
Schema compatibility layer.

Documents written by older versions of the service (and, occasionally, fresh
model output) use a legacy shape:

* ``summary`` is a single string instead of a list of points
* ``technologies`` is a fixed-field object (``languages``, ``backend``,
  ``databases.sql`` ...) instead of a list of ``{category, items}``

The shape is resolved once here; everything past this module works with
``StructuredDocument`` only. ``normalize`` is pure and idempotent.
"""

import re
from enum import Enum
from typing import Any, Dict, List, Optional

from ..core.constants import LEGACY_TECHNOLOGY_CATEGORIES
from ..schemas.document import StructuredDocument
from ..utils.exceptions import ValidationError

_BLANK_LINE_RE = re.compile(r"\n\s*\n")
_BULLET_RE = re.compile(r"^\s*(?:[-*•·▪◦‣–—]|\d+[.)])\s+")
_INLINE_BULLET_RE = re.compile(r"\s*[•▪◦‣]\s*")


class DocumentShape(str, Enum):
    CURRENT = "current"
    LEGACY = "legacy"


def detect_shape(raw: Dict[str, Any]) -> DocumentShape:
    if isinstance(raw.get("summary"), str) or isinstance(raw.get("technologies"), dict):
        return DocumentShape.LEGACY
    return DocumentShape.CURRENT


def normalize(doc: Any) -> StructuredDocument:
    """Return the current-shape document for any accepted input shape"""
    if isinstance(doc, StructuredDocument):
        raw = doc.to_payload()
    elif isinstance(doc, dict):
        raw = doc
    else:
        raise ValidationError("document", "Document must be a JSON object")

    personal = _mapping(raw.get("personalInfo"))
    social = _mapping(personal.get("socialMedia"))

    current = {
        "personalInfo": {
            "firstName": _text(personal.get("firstName")),
            "lastName": _text(personal.get("lastName")),
            "email": _text(personal.get("email")),
            "phone": _text(personal.get("phone")),
            "website": _text(personal.get("website")),
            "location": _location(personal.get("location")),
            "socialMedia": {
                "linkedin": _text(social.get("linkedin")),
                "github": _text(social.get("github")),
            },
        },
        "summaryPoints": _summary_points(raw),
        "education": [_education(e) for e in _records(raw.get("education"))],
        "experience": [_experience(e) for e in _records(raw.get("experience"))],
        "internships": [_experience(e) for e in _records(raw.get("internships"))],
        "projects": [_project(p) for p in _records(raw.get("projects"))],
        "technologies": _technologies(raw.get("technologies")),
    }
    return StructuredDocument.model_validate(current)


def split_points(text: str) -> List[str]:
    """Split free text on blank lines and bullet markers into points"""
    text = text.strip()
    if not text:
        return []

    points: List[str] = []
    for block in _BLANK_LINE_RE.split(text):
        lines = [line for line in block.splitlines() if line.strip()]
        if any(_BULLET_RE.match(line) for line in lines):
            current: Optional[str] = None
            for line in lines:
                if _BULLET_RE.match(line):
                    if current:
                        points.append(current)
                    current = _BULLET_RE.sub("", line, count=1).strip()
                else:
                    current = f"{current} {line.strip()}" if current else line.strip()
            if current:
                points.append(current)
        else:
            joined = " ".join(line.strip() for line in lines)
            points.append(joined)

    pieces = [piece for point in points for piece in _INLINE_BULLET_RE.split(point)]
    return [piece.strip() for piece in pieces if piece.strip()]


def _summary_points(raw: Dict[str, Any]) -> List[str]:
    value = raw.get("summaryPoints")
    if value is None:
        value = raw.get("summary")

    if isinstance(value, str):
        return split_points(value)
    return _text_list(value)


def _technologies(value: Any) -> List[Dict[str, Any]]:
    if isinstance(value, dict):
        return _legacy_technologies(value)

    categories = []
    for entry in _records(value):
        category = _text(entry.get("category"))
        items = _text_list(entry.get("items"))
        if category or items:
            categories.append({"category": category, "items": items})
    return categories


def _legacy_technologies(value: Dict[str, Any]) -> List[Dict[str, Any]]:
    categories = []
    for path, name in LEGACY_TECHNOLOGY_CATEGORIES:
        node: Any = value
        for part in path.split("."):
            node = node.get(part) if isinstance(node, dict) else None
        items = _text_list(node)
        # empty legacy fields are dropped, never emitted as empty categories
        if items:
            categories.append({"category": name, "items": items})
    return categories


def _education(entry: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "institution": _text(entry.get("institution")),
        "degree": _text(entry.get("degree")),
        "major": _text(entry.get("major")),
        "duration": _duration(entry.get("duration")),
        "coursework": _text_list(entry.get("coursework")),
    }


def _experience(entry: Dict[str, Any]) -> Dict[str, Any]:
    responsibilities = entry.get("responsibilities")
    if isinstance(responsibilities, str):
        responsibilities = split_points(responsibilities)
    return {
        "position": _text(entry.get("position")),
        "company": _text(entry.get("company")),
        "location": _location(entry.get("location")),
        "duration": _duration(entry.get("duration")),
        "responsibilities": _text_list(responsibilities),
    }


def _project(entry: Dict[str, Any]) -> Dict[str, Any]:
    description = entry.get("description")
    if isinstance(description, str):
        description = split_points(description)
    return {
        "name": _text(entry.get("name")),
        "description": _text_list(description),
        "toolsUsed": _text_list(entry.get("toolsUsed")),
    }


def _location(value: Any) -> Dict[str, Any]:
    if isinstance(value, str):
        return {"city": value.strip(), "state": "", "country": "", "remote": False}
    location = _mapping(value)
    return {
        "city": _text(location.get("city")),
        "state": _text(location.get("state")),
        "country": _text(location.get("country")),
        "remote": location.get("remote") is True,
    }


def _duration(value: Any) -> Dict[str, Any]:
    duration = _mapping(value)
    return {"start": _date_part(duration.get("start")), "end": _date_part(duration.get("end"))}


def _date_part(value: Any) -> Dict[str, Any]:
    part = _mapping(value)
    return {
        "month": _text(part.get("month")),
        "year": _int_or_none(part.get("year")),
        "day": _int_or_none(part.get("day")),
    }


def _mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _records(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list, bool)):
        return ""
    return str(value).strip()


def _text_list(value: Any) -> List[str]:
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [text for text in (_text(item) for item in value) if text]


def _int_or_none(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None
