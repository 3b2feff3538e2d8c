"""
Structured extraction adapter.

Turns raw document text into a ``StructuredDocument`` through the external
model. The model response is never trusted to be valid JSON: the first
object is located by brace scanning and repaired before parsing. Structural
layout hints come from a second, optional call whose failure only degrades
to default metadata.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..core.config import Settings, get_settings
from ..core.constants import (
    METADATA_SYSTEM_PROMPT,
    OPERATION_DOCUMENT_PARSING,
    OPERATION_SCHEMA_METADATA,
    PARSE_SYSTEM_PROMPT,
    default_schema_metadata,
)
from ..core.logger import logger
from ..schemas.document import StructuredDocument
from ..utils.exceptions import (
    InsufficientInputError,
    UnrecoverableResponseError,
    ValidationError,
)
from ..utils.json_repair import JSONRepairError, parse_model_json
from .compatibility import normalize
from .metering_service import MeteringService
from .model_client import ModelClient, ModelResponse

DOCUMENT_SHAPE_HINT = """{
  "personalInfo": {"firstName": "", "lastName": "", "email": "", "phone": "", "website": "",
                   "location": {"city": "", "state": "", "country": "", "remote": false},
                   "socialMedia": {"linkedin": "", "github": ""}},
  "summaryPoints": [""],
  "education": [{"institution": "", "degree": "", "major": "", "coursework": [""],
                 "duration": {"start": {"month": "", "year": null, "day": null},
                              "end": {"month": "", "year": null, "day": null}}}],
  "experience": [{"position": "", "company": "", "location": {...}, "duration": {...},
                  "responsibilities": [""]}],
  "internships": [{"position": "", "company": "", "location": {...}, "duration": {...},
                   "responsibilities": [""]}],
  "projects": [{"name": "", "description": [""], "toolsUsed": [""]}],
  "technologies": [{"category": "", "items": [""]}]
}"""

METADATA_SHAPE_HINT = """{
  "sectionOrder": ["summary", "experience", "education", "projects", "technologies"],
  "sectionTitles": {"summary": "", "experience": "", "education": "", "projects": "", "technologies": ""},
  "layout": {"style": "", "headerStyle": ""},
  "formatting": {"bulletStyle": ""},
  "visualElements": {"useSectionLines": true, "contactLayout": ""}
}"""


def build_parsing_prompt(raw_text: str) -> str:
    return (
        "Extract the resume below into JSON with exactly this structure. Use empty "
        "strings or empty lists for anything that is not present. Keep list items "
        "in the order they appear.\n\n"
        f"{DOCUMENT_SHAPE_HINT}\n\nRESUME:\n{raw_text}"
    )


def build_metadata_prompt(raw_text: str) -> str:
    return (
        "Describe the layout of the resume below as JSON with this structure.\n\n"
        f"{METADATA_SHAPE_HINT}\n\nRESUME:\n{raw_text}"
    )


@dataclass
class SchemaMetadataResult:
    metadata: Dict[str, Any]
    warnings: List[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)


class ExtractionService:
    def __init__(
        self,
        model_client: ModelClient,
        metering: Optional[MeteringService] = None,
        settings: Optional[Settings] = None,
    ):
        self.model_client = model_client
        self.metering = metering
        self.settings = settings or get_settings()

    def ensure_sufficient_input(self, raw_text: str) -> str:
        text = (raw_text or "").strip()
        if len(text) < self.settings.MIN_INPUT_CHARS:
            raise InsufficientInputError(len(text), self.settings.MIN_INPUT_CHARS)
        return text

    def extract(self, raw_text: str, owner_id: str) -> StructuredDocument:
        """Raw text -> validated current-shape document"""
        text = self.ensure_sufficient_input(raw_text)

        messages = [
            {"role": "system", "content": PARSE_SYSTEM_PROMPT},
            {"role": "user", "content": build_parsing_prompt(text)},
        ]
        response = self.model_client.call_model(
            messages,
            temperature=self.settings.MODEL_TEMPERATURE,
            max_tokens=self.settings.PARSE_MAX_TOKENS,
        )
        self._meter(owner_id, OPERATION_DOCUMENT_PARSING, response, len(text))

        try:
            parsed, repairs = parse_model_json(response.content)
        except JSONRepairError as e:
            logger.error(
                f"Unrecoverable model response for owner {owner_id}: {str(e)} "
                f"(response length {len(response.content or '')})"
            )
            raise UnrecoverableResponseError(str(e), raw_response=response.content) from e

        if repairs:
            logger.info(f"Model response repaired with: {', '.join(repairs)}")

        document = normalize(parsed)
        validate_document(document)
        logger.info(
            f"Extracted document for owner {owner_id}: "
            f"{len(document.experience)} experience, {len(document.education)} education, "
            f"{len(document.projects)} projects"
        )
        return document

    def extract_schema_metadata(self, raw_text: str, owner_id: str) -> SchemaMetadataResult:
        """Optional layout hints; any failure falls back to the defaults"""
        try:
            text = self.ensure_sufficient_input(raw_text)
            messages = [
                {"role": "system", "content": METADATA_SYSTEM_PROMPT},
                {"role": "user", "content": build_metadata_prompt(text)},
            ]
            response = self.model_client.call_model(
                messages,
                temperature=self.settings.MODEL_TEMPERATURE,
                max_tokens=self.settings.METADATA_MAX_TOKENS,
            )
            self._meter(owner_id, OPERATION_SCHEMA_METADATA, response, len(text))
            metadata, _ = parse_model_json(response.content)
            return SchemaMetadataResult(metadata=metadata)
        except Exception as e:
            logger.warning(
                f"Schema metadata extraction failed for owner {owner_id}, using defaults: {str(e)}"
            )
            return SchemaMetadataResult(
                metadata=default_schema_metadata(),
                warnings=[f"Layout hints unavailable, default layout used ({type(e).__name__})"],
            )

    def _meter(self, owner_id: str, operation: str, response: ModelResponse, input_length: int):
        if not self.metering or not response.total_tokens:
            return
        try:
            self.metering.record_usage(
                owner_id,
                operation,
                response.total_tokens,
                {
                    "input_length": input_length,
                    "response_length": len(response.content or ""),
                },
            )
        except Exception as e:
            logger.warning(f"Failed to record token usage for {operation}: {str(e)}")


def validate_document(document: StructuredDocument) -> StructuredDocument:
    missing = document.missing_required_field()
    if missing:
        raise ValidationError(missing)
    return document
