"""
Pydantic schemas for web push endpoints.

Field aliases keep the camelCase names browser clients send.
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class VapidPublicKeyResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    public_key: str = Field(..., alias="publicKey")


class PushKeys(BaseModel):
    p256dh: str = Field(..., min_length=1)
    auth: str = Field(..., min_length=1)


class PushSubscribeRequest(BaseModel):
    """PushSubscription.toJSON() as produced by the browser."""
    endpoint: str = Field(..., min_length=1)
    keys: PushKeys


class PushSubscribeResponse(BaseModel):
    success: bool = True
    id: str


class PushSendRequest(BaseModel):
    """Notify comerciales about a chat message."""
    model_config = ConfigDict(populate_by_name=True)

    report_id: str = Field(..., alias="reportId", min_length=1)
    message_text: str = Field(..., alias="messageText", min_length=1)
    sender: str


class ChatNotificationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    report_id: str = Field(..., alias="reportId", min_length=1)
    action: Literal["chat_started"] = "chat_started"


class PushResultResponse(BaseModel):
    """Fan-out summary; only the fields relevant to the outcome are set."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    skipped: Optional[bool] = None
    no_subscribers: Optional[bool] = Field(default=None, alias="noSubscribers")
    no_subscriptions: Optional[bool] = Field(default=None, alias="noSubscriptions")
    sent: Optional[int] = None
    failed: Optional[int] = None
    total: Optional[int] = None
    time_remaining: Optional[str] = Field(default=None, alias="timeRemaining")
