from datetime import datetime

from sqlmodel import Field, SQLModel

from app.core.clock import utcnow


class User(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True)
    hashed_password: str
    display_name: str = ""
    role: str = "student"  # "researcher" | "student" | ...
    phone: str | None = None
    photo_url: str | None = None
    auth_provider: str = "password"
    created_at: datetime | None = Field(default_factory=utcnow)
    last_login_at: datetime | None = None

    @property
    def uid(self) -> str:
        """Identity string stored on studies as researcher_id."""
        return str(self.id or 0)
