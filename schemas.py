"""
Schemas for the StaticPlay chat backend

Records are stored with snake_case attributes and exchanged on the wire in
camelCase (the mobile client's field names). Request bodies get one model per
endpoint so that field presence and type are checked before a store is called.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Room(CamelModel):
    """
    Public, pre-configured conversation channel
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Stable room slug")
    name: str = Field(..., description="Display name")
    description: str = Field("", description="Short blurb shown in the room list")
    is_adult: bool = Field(False, description="Adult classification flag")


class Message(CamelModel):
    """
    Message within a room or DM thread. Immutable once appended.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique, creation-ordered message id")
    room_id: str = Field(..., description="Room id or DM thread id")
    sender: str = Field(..., description="Free-text display label")
    sent_at: datetime = Field(..., description="UTC append time")
    text: str = Field("", description="Message text, possibly empty")
    image_data_url: str = Field("", description="Inline image payload, possibly empty")


class DmThread(CamelModel):
    """
    A DM thread as seen by one of its participants
    """
    id: str
    other_alias: str = Field(..., description="The counterpart's alias relative to the caller")
    participants: List[str] = Field(..., min_length=2, max_length=2)
    updated_at: datetime


class ThemePreference(CamelModel):
    model_config = ConfigDict(frozen=True)

    message_box_color: str = Field(..., description="Hex color like #101a2c")
    message_text_color: str = Field(..., description="Hex color like #e9f1ff")


class Profile(CamelModel):
    user_id: str
    is18_verified: bool = Field(False, alias="is18Verified")


# Request bodies

class SendMessage(CamelModel):
    sender: str = "User"
    text: str = ""
    image_data_url: Optional[str] = None


class SaveTheme(CamelModel):
    message_box_color: str
    message_text_color: str


class OpenDmThread(CamelModel):
    self_alias: str = ""
    other_alias: str = ""


# Response envelopes

class HealthResponse(CamelModel):
    ok: bool
    service: str
    timestamp: datetime


class VerificationResponse(CamelModel):
    is18_verified: bool = Field(..., alias="is18Verified")
    provider: str


class RoomsResponse(CamelModel):
    rooms: List[Room]


class MessagesResponse(CamelModel):
    messages: List[Message]


class MessageResponse(CamelModel):
    message: Message


class ThemeResponse(CamelModel):
    theme: ThemePreference


class ThreadResponse(CamelModel):
    thread: DmThread


class ThreadsResponse(CamelModel):
    threads: List[DmThread]
