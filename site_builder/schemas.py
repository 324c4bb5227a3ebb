from enum import Enum
from typing import Optional, List, Literal
from pydantic import BaseModel, Field, field_validator


SUPPORTED_IMAGE_TYPES = ("image/png", "image/jpeg")


class Attachment(BaseModel):
    media_type: str = Field(..., description="MIME type of the reference image")
    data: str = Field(..., description="Base64-encoded image bytes, without a data URL prefix")

    @field_validator("media_type")
    @classmethod
    def check_media_type(cls, value: str) -> str:
        if value not in SUPPORTED_IMAGE_TYPES:
            raise ValueError("Please select a PNG or JPEG image.")
        return value

    def data_url(self) -> str:
        return f"data:{self.media_type};base64,{self.data}"


class Turn(BaseModel):
    role: Literal["user", "assistant"]
    text: str


class GenerateRequest(BaseModel):
    prompt: str = Field(..., description="What to build or change")
    current_document: Optional[str] = Field(None, description="HTML to use as the base for the update")
    history: List[Turn] = Field(default_factory=list, description="Earlier turns of the conversation")
    attachment: Optional[Attachment] = None


class StartSessionRequest(BaseModel):
    draft: Optional[str] = Field(None, description="Initial composer text")


class DraftRequest(BaseModel):
    text: str = Field("", description="Current composer text")


class SubmitRequest(BaseModel):
    prompt: Optional[str] = Field(None, description="Prompt to submit; the session draft is used when omitted")


class AttachmentSummary(BaseModel):
    media_type: str
    size: int = Field(..., description="Length of the base64 payload")
    filename: Optional[str] = None


class SessionSnapshot(BaseModel):
    session_id: str
    created_at: str
    document: str
    transcript: List[Turn]
    busy: bool
    has_started: bool
    draft: str
    attachment: Optional[AttachmentSummary] = None


class ViewMode(str, Enum):
    PREVIEW = "preview"
    CODE = "code"


class Viewport(str, Enum):
    DESKTOP = "desktop"
    MOBILE = "mobile"

    @property
    def width(self) -> str:
        return "100%" if self is Viewport.DESKTOP else "375px"
