from typing import Any

from pydantic import BaseModel, Field


class AnalysisAccepted(BaseModel):
    model_config = {"populate_by_name": True}

    message: str = "File received. Analysis has started."
    analysis_id: str = Field(alias="analysisId")


class AnalysisQuestion(BaseModel):
    question: str
    answer: str


class AnalysisResult(BaseModel):
    title: str = ""
    abstract: str = ""
    brief_description: str = ""
    genres: list[str] = Field(default_factory=list)
    questions: list[AnalysisQuestion] = Field(default_factory=list)


class AnalysisStatus(BaseModel):
    model_config = {"populate_by_name": True}

    status: str
    original_name: str = Field(alias="originalName")
    data: AnalysisResult | None = None
    error: str | None = None

    @classmethod
    def from_view(cls, view: dict[str, Any]) -> "AnalysisStatus":
        return cls.model_validate(view)
