import pytest

from resume_pipeline.schemas.document import StructuredDocument
from resume_pipeline.services.compatibility import (
    DocumentShape,
    detect_shape,
    normalize,
    split_points,
)
from resume_pipeline.utils.exceptions import ValidationError


def test_legacy_document_is_normalized():
    legacy = {
        "summary": "Built X.\n\nShipped Y.",
        "technologies": {"languages": ["Go"], "frontend": []},
    }
    assert detect_shape(legacy) == DocumentShape.LEGACY

    payload = normalize(legacy).to_payload()
    assert payload["summaryPoints"] == ["Built X.", "Shipped Y."]
    assert payload["technologies"] == [
        {"category": "Programming Languages", "items": ["Go"]}
    ]


def test_legacy_nested_databases_map_to_categories():
    legacy = {
        "technologies": {
            "databases": {"sql": ["PostgreSQL"], "nosql": ["Redis", ""]},
            "cloudAndDevOps": ["AWS"],
        }
    }
    payload = normalize(legacy).to_payload()
    assert payload["technologies"] == [
        {"category": "SQL Databases", "items": ["PostgreSQL"]},
        {"category": "NoSQL Databases", "items": ["Redis"]},
        {"category": "Cloud & DevOps", "items": ["AWS"]},
    ]


def test_normalize_is_idempotent():
    legacy = {
        "personalInfo": {"firstName": " Ann ", "email": "a@x.com", "location": "Berlin"},
        "summary": "- Led teams\n- Shipped products",
        "experience": [{"company": "Acme", "responsibilities": "• Built X • Ran Y"}],
        "technologies": {"backend": ["Django"]},
    }
    once = normalize(legacy)
    twice = normalize(once)
    assert once == twice
    assert once.experience[0].responsibilities == ["Built X", "Ran Y"]
    assert normalize(once.to_payload()) == once
    assert detect_shape(once.to_payload()) == DocumentShape.CURRENT


def test_current_shape_is_cleaned_not_restructured():
    doc = {
        "personalInfo": {"firstName": "Ann", "email": "a@x.com"},
        "summaryPoints": ["  First  ", "", None],
        "projects": [{"name": "Tool", "description": "One.\n\nTwo.", "toolsUsed": ["Go"]}],
        "technologies": [{"category": "", "items": []}, {"category": "Cloud", "items": ["GCP"]}],
        "education": ["not a record"],
    }
    result = normalize(doc)
    assert result.summary_points == ["First"]
    assert result.projects[0].description == ["One.", "Two."]
    assert [t.category for t in result.technologies] == ["Cloud"]
    assert result.education == []


def test_string_location_becomes_city():
    result = normalize({"personalInfo": {"location": "Lisbon"}})
    assert result.personal_info.location.city == "Lisbon"
    assert result.personal_info.location.remote is False


def test_date_parts_are_coerced():
    doc = {
        "experience": [
            {"duration": {"start": {"month": "May", "year": "2020"}, "end": {"year": 2022.0}}}
        ]
    }
    duration = normalize(doc).experience[0].duration
    assert duration.start.year == 2020
    assert duration.end.year == 2022
    assert duration.end.month == ""


def test_rejects_non_mapping():
    with pytest.raises(ValidationError):
        normalize(["not", "a", "document"])


@pytest.mark.parametrize(
    "text,expected",
    [
        ("One.\n\nTwo.", ["One.", "Two."]),
        ("- a\n- b\n  continued", ["a", "b continued"]),
        ("1. first\n2) second", ["first", "second"]),
        ("alpha • beta • gamma", ["alpha", "beta", "gamma"]),
        ("   ", []),
    ],
)
def test_split_points(text, expected):
    assert split_points(text) == expected


def test_structured_document_round_trips_aliases():
    doc = StructuredDocument.model_validate({"personalInfo": {"firstName": "Ann"}})
    assert doc.personal_info.first_name == "Ann"
    assert doc.to_payload()["personalInfo"]["firstName"] == "Ann"
