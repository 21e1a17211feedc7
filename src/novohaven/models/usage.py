"""External API usage records, one row per billable call batch."""

from datetime import datetime
from typing import Any

from sqlalchemy import Column, Index
from sqlmodel import Field, SQLModel

from src.novohaven.models.base import JSONType, utc_now


class ApiUsage(SQLModel, table=True):
    __tablename__ = "api_usage"
    __table_args__ = (Index("ix_api_usage_user_service", "user_id", "service"),)

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(index=True)
    service: str = Field(max_length=50)
    endpoint: str = Field(max_length=100)
    request_count: int = Field(default=1)
    records_fetched: int = Field(default=0)
    usage_metadata: dict[str, Any] | None = Field(
        default=None, sa_column=Column("metadata", JSONType, nullable=True)
    )
    created_at: datetime = Field(default_factory=utc_now)
