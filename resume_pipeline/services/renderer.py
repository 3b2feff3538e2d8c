"""
Default artifact renderer: structured document -> PDF bytes (reportlab).
"""

from io import BytesIO
from typing import Any, Dict, List, Optional
from xml.sax.saxutils import escape

from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import ListFlowable, ListItem, Paragraph, SimpleDocTemplate, Spacer

from ..core.constants import DEFAULT_SECTION_ORDER
from ..schemas.document import Duration, ExperienceEntry, StructuredDocument


def _format_duration(duration: Duration) -> str:
    def part(p):
        return " ".join(str(x) for x in (p.month, p.year) if x)

    start, end = part(duration.start), part(duration.end)
    if start and end:
        return f"{start} - {end}"
    return start or end


class PdfRenderer:
    def __init__(self, pagesize=letter):
        self.pagesize = pagesize
        styles = getSampleStyleSheet()
        self.styles = {
            "name": ParagraphStyle("Name", parent=styles["Title"], fontSize=22, spaceAfter=4),
            "contact": ParagraphStyle("Contact", parent=styles["Normal"], alignment=1, fontSize=9),
            "section": ParagraphStyle("Section", parent=styles["Heading2"], fontSize=13, spaceBefore=10),
            "entry": ParagraphStyle("Entry", parent=styles["Heading4"], fontSize=10, spaceAfter=2),
            "body": ParagraphStyle("Body", parent=styles["Normal"], fontSize=9.5, leading=12),
        }

    def __call__(self, document: StructuredDocument, schema_metadata: Optional[Dict[str, Any]] = None) -> bytes:
        return self.render(document, schema_metadata)

    def render(self, document: StructuredDocument, schema_metadata: Optional[Dict[str, Any]] = None) -> bytes:
        metadata = schema_metadata or {}
        order = metadata.get("sectionOrder") or DEFAULT_SECTION_ORDER
        titles = metadata.get("sectionTitles") or {}

        story: List[Any] = self._header(document)
        builders = {
            "summary": self._summary,
            "experience": lambda d: self._experience(d.experience),
            "internships": lambda d: self._experience(d.internships),
            "education": self._education,
            "projects": self._projects,
            "technologies": self._technologies,
        }
        # sections not named in the layout hints still render, after the ordered ones
        sections = [s for s in order if s in builders]
        sections += [s for s in builders if s not in sections]

        for section in sections:
            body = builders[section](document)
            if not body:
                continue
            title = titles.get(section) or section.capitalize()
            story.append(Paragraph(escape(title), self.styles["section"]))
            story.extend(body)

        buffer = BytesIO()
        pdf = SimpleDocTemplate(
            buffer,
            pagesize=self.pagesize,
            leftMargin=0.75 * inch,
            rightMargin=0.75 * inch,
            topMargin=0.75 * inch,
            bottomMargin=0.75 * inch,
            title=f"{document.personal_info.first_name} {document.personal_info.last_name}".strip(),
        )
        pdf.build(story)
        return buffer.getvalue()

    def _header(self, document: StructuredDocument) -> List[Any]:
        info = document.personal_info
        name = f"{info.first_name} {info.last_name}".strip()
        location = ", ".join(x for x in (info.location.city, info.location.state, info.location.country) if x)
        contact = [info.email, info.phone, location, info.website,
                   info.social_media.linkedin, info.social_media.github]
        return [
            Paragraph(escape(name), self.styles["name"]),
            Paragraph(escape(" | ".join(c for c in contact if c)), self.styles["contact"]),
            Spacer(1, 0.15 * inch),
        ]

    def _bullets(self, points: List[str]) -> List[Any]:
        if not points:
            return []
        items = [ListItem(Paragraph(escape(p), self.styles["body"])) for p in points]
        return [ListFlowable(items, bulletType="bullet", leftIndent=12)]

    def _summary(self, document: StructuredDocument) -> List[Any]:
        return self._bullets(document.summary_points)

    def _experience(self, entries: List[ExperienceEntry]) -> List[Any]:
        body: List[Any] = []
        for entry in entries:
            heading = " - ".join(x for x in (entry.position, entry.company) if x)
            dates = _format_duration(entry.duration)
            if dates:
                heading = f"{heading} ({dates})" if heading else dates
            body.append(Paragraph(escape(heading), self.styles["entry"]))
            body.extend(self._bullets(entry.responsibilities))
        return body

    def _education(self, document: StructuredDocument) -> List[Any]:
        body: List[Any] = []
        for entry in document.education:
            degree = " in ".join(x for x in (entry.degree, entry.major) if x)
            heading = ", ".join(x for x in (degree, entry.institution) if x)
            dates = _format_duration(entry.duration)
            if dates:
                heading = f"{heading} ({dates})"
            body.append(Paragraph(escape(heading), self.styles["entry"]))
            if entry.coursework:
                body.append(Paragraph(escape("Coursework: " + ", ".join(entry.coursework)), self.styles["body"]))
        return body

    def _projects(self, document: StructuredDocument) -> List[Any]:
        body: List[Any] = []
        for project in document.projects:
            heading = project.name
            if project.tools_used:
                heading = f"{heading} ({', '.join(project.tools_used)})"
            body.append(Paragraph(escape(heading), self.styles["entry"]))
            body.extend(self._bullets(project.description))
        return body

    def _technologies(self, document: StructuredDocument) -> List[Any]:
        return [
            Paragraph(f"<b>{escape(t.category)}:</b> {escape(', '.join(t.items))}", self.styles["body"])
            for t in document.technologies
            if t.items
        ]


render_document_pdf = PdfRenderer()
