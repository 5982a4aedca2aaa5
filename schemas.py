"""
Schemas for the Blog API

Pydantic models validating request bodies and the site settings document.
Stored records (users in "user", posts in "blogpost", comments in "comment",
settings in "sitesettings") are plain MongoDB documents written by the services.
"""
from typing import Any, Optional, Literal, Type, TypeVar
from pydantic import BaseModel, ConfigDict, Field, EmailStr, field_validator
from pydantic import ValidationError as SchemaError

from exceptions import ValidationError

Model = TypeVar("Model", bound=BaseModel)

Role = Literal["user", "admin"]


# Site settings (singleton)
class SocialLinks(BaseModel):
    model_config = ConfigDict(extra="forbid")

    twitter: str = ""
    facebook: str = ""
    instagram: str = ""


class SiteSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    site_name: str = Field("My Blog", min_length=1)
    site_description: str = "A modern blog powered by FastAPI and MongoDB"
    contact_email: str = "contact@example.com"
    enable_registration: bool = True
    maintenance_mode: bool = False
    footer_text: str = "© My Blog. All rights reserved."
    social_links: SocialLinks = Field(default_factory=SocialLinks)


class SocialLinksPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    twitter: Optional[str] = None
    facebook: Optional[str] = None
    instagram: Optional[str] = None


class SiteSettingsPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    site_name: Optional[str] = Field(None, min_length=1)
    site_description: Optional[str] = None
    contact_email: Optional[str] = None
    enable_registration: Optional[bool] = None
    maintenance_mode: Optional[bool] = None
    footer_text: Optional[str] = None
    social_links: Optional[SocialLinksPatch] = None


# Request payloads
class RegisterPayload(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginPayload(BaseModel):
    email: EmailStr
    password: str


class CreateUserPayload(RegisterPayload):
    role: Role = "user"


class UpdateRolePayload(BaseModel):
    role: str


class CreatePostPayload(BaseModel):
    title: str
    content: str
    category: str
    image: Optional[str] = None


class StatusPayload(BaseModel):
    status: str


class CommentPayload(BaseModel):
    content: str

    @field_validator("content")
    @classmethod
    def strip_content(cls, v: str) -> str:
        return v.strip()


def parse_payload(model: Type[Model], data: Any) -> Model:
    """Validate a body read by hand (form or JSON), reporting the first problem as a ValidationError."""
    try:
        return model.model_validate(data)
    except SchemaError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ()))
        raise ValidationError(f"{field}: {first['msg']}" if field else first["msg"])
