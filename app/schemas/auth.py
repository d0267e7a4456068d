from pydantic import BaseModel, Field


class SignupRequest(BaseModel):
    """Missing fields are reported by the endpoint as 400, so everything is optional here."""
    model_config = {"populate_by_name": True}

    display_name: str | None = Field(None, alias="displayName")
    email: str | None = None
    password: str | None = None
    role: str | None = None
    phone: str | None = None


class SignupResponse(BaseModel):
    message: str = "User created successfully"
    uid: str
    email: str


class LoginRequest(BaseModel):
    email: str
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    uid: str


class UserProfile(BaseModel):
    model_config = {"populate_by_name": True}

    uid: str
    email: str
    display_name: str = Field(alias="displayName")
    role: str
    contact_info: dict = Field(default_factory=dict, alias="contactInfo")
    photo_url: str | None = Field(None, alias="photoURL")
    auth_provider: str = Field("password", alias="authProvider")
    created_at: str | None = Field(None, alias="createdAt")
    last_login_at: str | None = Field(None, alias="lastLoginAt")
