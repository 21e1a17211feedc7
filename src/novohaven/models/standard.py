"""Company standard model - reusable brand/platform/image guidance."""

from datetime import datetime
from typing import Any

from sqlalchemy import Column
from sqlmodel import Field, SQLModel

from src.novohaven.models.base import JSONType, utc_now


class CompanyStandard(SQLModel, table=True):
    """A saved block of guidance injectable into prompts by name.

    ``content`` is a structured object (tone/style/guidelines, platform
    requirements, image style) or raw text.
    """

    __tablename__ = "company_standards"

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(index=True)
    standard_type: str = Field(max_length=20)  # voice, platform, image
    name: str = Field(max_length=200)
    content: dict[str, Any] | str = Field(sa_column=Column(JSONType, nullable=False))
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
