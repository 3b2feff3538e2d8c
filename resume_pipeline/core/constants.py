# Extraction prompts
PARSE_SYSTEM_PROMPT = (
    "You are an expert resume parser. Extract information from resumes and return "
    "ONLY valid JSON format. Do not include any explanation or additional text outside the JSON."
)
METADATA_SYSTEM_PROMPT = (
    "You are an expert at analyzing resume layouts and structure. Extract structural "
    "information from resumes and return ONLY valid JSON format. Do not include any "
    "explanation or additional text outside the JSON."
)

# Token metering operation types
OPERATION_DOCUMENT_PARSING = "document_parsing"
OPERATION_SCHEMA_METADATA = "schema_metadata_extraction"

# Retries (model transport only)
RETRY_BACKOFF_FACTOR = 1.0
RETRY_STATUS_CODES = (429, 500, 502, 503, 504)

# Database
DOCUMENTS_TABLE = "documents"
TWO_TIER_COLUMNS = ("payload_key", "display_name", "byte_size")
ARTIFACT_ERROR_MAX_LENGTH = 2000

# Blob keys
SOURCE_KEY_TEMPLATE = "{owner_id}/sources/{file_id}_{filename}"
PAYLOAD_KEY_TEMPLATE = "{owner_id}/json/{file_id}_parsed.json"
ARTIFACT_KEY_TEMPLATE = "{owner_id}/artifacts/{record_id}-{attempt}.pdf"

# Client facing messages for artifact transitions
ARTIFACT_MESSAGES = {
    "pending": "PDF generation queued",
    "generating": "PDF generation started",
    "ready": "PDF generated successfully and ready for download",
    "failed": "PDF generation failed",
    "timeout": "PDF generation timed out",
}

# Legacy fixed-field technologies object -> dynamic categories
LEGACY_TECHNOLOGY_CATEGORIES = [
    ("languages", "Programming Languages"),
    ("backend", "Backend Technologies"),
    ("frontend", "Frontend Technologies"),
    ("databases.sql", "SQL Databases"),
    ("databases.nosql", "NoSQL Databases"),
    ("cloudAndDevOps", "Cloud & DevOps"),
    ("cicdAndAutomation", "CI/CD & Automation"),
    ("testingAndDebugging", "Testing & Debugging"),
]

DEFAULT_SECTION_ORDER = ["summary", "experience", "education", "projects", "technologies"]


def default_schema_metadata() -> dict:
    """Layout hints used whenever structural extraction is unavailable"""
    return {
        "sectionOrder": list(DEFAULT_SECTION_ORDER),
        "sectionTitles": {
            "summary": "Summary",
            "experience": "Experience",
            "education": "Education",
            "projects": "Projects",
            "technologies": "Technologies",
        },
        "layout": {
            "style": "single-column",
            "headerStyle": "centered",
            "margins": {"top": "2cm", "bottom": "2cm", "left": "2cm", "right": "2cm"},
        },
        "formatting": {
            "fonts": {"main": "Charter", "heading": "Charter-Bold"},
            "fontSize": {"name": "25pt", "section": "14pt", "body": "10pt"},
            "spacing": {"sectionGap": "0.3cm", "itemGap": "0.2cm"},
            "bulletStyle": "bullet",
        },
        "visualElements": {
            "useSectionLines": True,
            "useHeaderLine": False,
            "contactLayout": "horizontal",
        },
    }
