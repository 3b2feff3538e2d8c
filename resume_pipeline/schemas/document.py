"""
Structured document schema.

Wire format is camelCase (``personalInfo``, ``summaryPoints`` ...); Python code
uses snake_case attributes. Every field has a default so that partially
filled model output can be loaded and then checked explicitly with
``missing_required_field``.
"""

from typing import List, Optional
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


class DatePart(CamelModel):
    month: str = ""
    year: Optional[int] = None
    day: Optional[int] = None


class Duration(CamelModel):
    start: DatePart = Field(default_factory=DatePart)
    end: DatePart = Field(default_factory=DatePart)


class Location(CamelModel):
    city: str = ""
    state: str = ""
    country: str = ""
    remote: bool = False


class SocialMedia(CamelModel):
    linkedin: str = ""
    github: str = ""


class PersonalInfo(CamelModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    website: str = ""
    location: Location = Field(default_factory=Location)
    social_media: SocialMedia = Field(default_factory=SocialMedia)


class EducationEntry(CamelModel):
    institution: str = ""
    degree: str = ""
    major: str = ""
    duration: Duration = Field(default_factory=Duration)
    coursework: List[str] = Field(default_factory=list)


class ExperienceEntry(CamelModel):
    position: str = ""
    company: str = ""
    location: Location = Field(default_factory=Location)
    duration: Duration = Field(default_factory=Duration)
    responsibilities: List[str] = Field(default_factory=list)


class ProjectEntry(CamelModel):
    name: str = ""
    description: List[str] = Field(default_factory=list)
    tools_used: List[str] = Field(default_factory=list)


class TechnologyCategory(CamelModel):
    category: str = ""
    items: List[str] = Field(default_factory=list)


class StructuredDocument(CamelModel):
    personal_info: PersonalInfo = Field(default_factory=PersonalInfo)
    summary_points: List[str] = Field(default_factory=list)
    education: List[EducationEntry] = Field(default_factory=list)
    experience: List[ExperienceEntry] = Field(default_factory=list)
    internships: List[ExperienceEntry] = Field(default_factory=list)
    projects: List[ProjectEntry] = Field(default_factory=list)
    technologies: List[TechnologyCategory] = Field(default_factory=list)

    def to_payload(self) -> dict:
        """camelCase dict, the shape stored in blobs and returned to clients"""
        return self.model_dump(by_alias=True)

    def missing_required_field(self) -> Optional[str]:
        if not self.personal_info.first_name.strip():
            return "personalInfo.firstName"
        if not self.personal_info.email.strip():
            return "personalInfo.email"
        return None

