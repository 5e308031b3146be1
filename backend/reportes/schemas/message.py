"""
Pydantic schemas for chat messages.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator


class MessageCreateRequest(BaseModel):
    """A chat message needs text, an image, or both."""
    text: Optional[str] = Field(default=None, max_length=4000)
    image_url: Optional[str] = None

    @model_validator(mode="after")
    def require_content(self) -> "MessageCreateRequest":
        if not (self.text and self.text.strip()) and not self.image_url:
            raise ValueError("El mensaje debe tener texto o imagen")
        return self


class MessageResponse(BaseModel):
    id: str
    reporte_id: str
    sender: str
    sender_user_id: Optional[str] = None
    text: Optional[str] = None
    image_url: Optional[str] = None
    ai_resolution_detected: bool = False
    ai_confidence: Optional[float] = None
    created_at: str

    class Config:
        from_attributes = True


class MessageListResponse(BaseModel):
    messages: List[MessageResponse]


class MessageCreateResponse(BaseModel):
    """
    Stored message plus side effects.

    Attributes:
        message: The stored message
        resolution: Analyser verdict for driver messages on submitted reportes
        status: Reporte status after the message
        notification: Push fan-out summary for driver messages
    """
    message: MessageResponse
    resolution: Optional[Dict[str, Any]] = None
    status: str
    notification: Optional[Dict[str, Any]] = None


class ChatImageUploadResponse(BaseModel):
    success: bool = True
    url: str
