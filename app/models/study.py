"""Research study records: metadata, attached documents, Q&A pairs."""
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from app.core.clock import utcnow

PATENT_STATUSES = ("Patented", "Unpatented", "Patent Pending")


class Study(SQLModel, table=True):
    __tablename__ = "studies"
    id: int | None = Field(default=None, primary_key=True)
    researcher_id: str = Field(index=True)
    title: str = Field(index=True)
    abstract: str
    brief_description: str
    genres: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    # [{display_name, file_location, uploaded_at}]
    documents: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    patent_status: str | None = None  # one of PATENT_STATUSES or None
    # [{question, answer}]
    questions: list[dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    additional_info: dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))
    approved: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def touch(self) -> None:
        self.updated_at = utcnow()
