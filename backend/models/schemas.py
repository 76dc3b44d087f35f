from __future__ import annotations

from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


class OpportunityCategory(str, Enum):
    ENVIRONMENT = "Environment"
    EDUCATION = "Education"
    HEALTHCARE = "Healthcare"
    COMMUNITY_DEVELOPMENT = "Community Development"
    ANIMAL_WELFARE = "Animal Welfare"


class ApplicationStatus(str, Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class CamelModel(BaseModel):
    """Base model that speaks camelCase on the wire and snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class Opportunity(CamelModel):
    id: str
    title: str
    ngo: str
    description: str
    long_description: str
    location: str
    date: str
    time_commitment: str
    category: OpportunityCategory
    image_url: str = ""
    image_hint: str = ""

    @classmethod
    def from_row(cls, row) -> "Opportunity":
        return cls(
            id=row["id"],
            title=row["title"],
            ngo=row["ngo"],
            description=row["description"],
            long_description=row["long_description"],
            location=row["location"],
            date=row["date"],
            time_commitment=row["time_commitment"],
            category=row["category"],
            image_url=row["image_url"] or "",
            image_hint=row["image_hint"] or "",
        )


class OpportunityCreate(CamelModel):
    """Fields accepted by the posting form."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True
    )

    title: str = Field(min_length=5, description="Title must be at least 5 characters long.")
    ngo: str = Field(min_length=2, description="Organization name is required.")
    description: str = Field(min_length=10, description="A short description is required.")
    long_description: str = Field(
        min_length=50,
        description="A detailed description of at least 50 characters is required.",
    )
    location: str = Field(min_length=2, description="Location is required.")
    date: str = Field(min_length=1, description="Date is required.")
    time_commitment: str = Field(min_length=2, description="Time commitment is required.")
    category: OpportunityCategory


class Application(CamelModel):
    id: str
    volunteer_name: str
    volunteer_email: str
    status: ApplicationStatus = ApplicationStatus.PENDING
    applied_date: str
    # Snapshot of the opportunity at apply time; never re-synced.
    opportunity_id: str
    opportunity_title: str
    opportunity_ngo: str

    @classmethod
    def from_row(cls, row) -> "Application":
        return cls(
            id=row["id"],
            volunteer_name=row["volunteer_name"],
            volunteer_email=row["volunteer_email"],
            status=row["status"],
            applied_date=row["applied_date"],
            opportunity_id=row["opportunity_id"],
            opportunity_title=row["opportunity_title"],
            opportunity_ngo=row["opportunity_ngo"],
        )


class ApplicationCreate(CamelModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True
    )

    volunteer_name: str = Field(min_length=2, description="Your name is required.")
    volunteer_email: EmailStr


class StatusUpdate(CamelModel):
    status: ApplicationStatus

    @field_validator("status")
    @classmethod
    def _only_terminal_targets(cls, value: ApplicationStatus) -> ApplicationStatus:
        if value == ApplicationStatus.PENDING:
            raise ValueError("status must be Approved or Rejected")
        return value


class OpportunityGroup(CamelModel):
    opportunity_id: str
    title: str
    ngo: str
    applications: List[Application] = Field(default_factory=list)
    approved_count: int = 0


class DescriptionRequest(CamelModel):
    keywords: str = ""


class DescriptionResult(CamelModel):
    short_description: str = Field(min_length=1)
    long_description: str = Field(min_length=1)

    @field_validator("short_description", "long_description")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value
