from typing import Any

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    model_config = {"populate_by_name": True}

    prompt: str | None = None
    study_id: int | str | None = Field(None, alias="studyId")
    chat_history: list[Any] = Field(default_factory=list, alias="chatHistory")


class ApproveRequest(BaseModel):
    approved: bool = True
