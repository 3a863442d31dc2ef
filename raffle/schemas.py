from pydantic import AliasChoices, BaseModel, Field, field_serializer
from typing import List, Optional
from datetime import datetime

from .logger import mask_phone
from .timeutil import iso_utc_z


class SmsEvent(BaseModel):
    origin: str = Field(validation_alias=AliasChoices("from", "origin"))
    payload: Optional[str] = Field(default=None, validation_alias=AliasChoices("message", "payload"))
    arrival_time: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("timestamp", "arrivalTime", "arrival_time")
    )


class IngestOut(BaseModel):
    accepted: bool
    noop: bool = False
    reason: Optional[str] = None
    in_window: Optional[bool] = None


class ParticipantOut(BaseModel):
    id: int
    phone: str
    code: Optional[str] = None
    received_at: datetime
    is_winner: bool
    channel_joined: bool

    class Config:
        from_attributes = True

    @field_serializer("received_at")
    def _received_at(self, dt: datetime):
        return iso_utc_z(dt)


class WinnerPublicOut(BaseModel):
    phone: str
    code: Optional[str] = None

    @classmethod
    def from_participant(cls, participant):
        return cls(phone=mask_phone(participant.phone), code=participant.code)


class DrawIn(BaseModel):
    count: Optional[int] = Field(default=None, ge=1)


class DrawOut(BaseModel):
    winners: List[ParticipantOut]
    used_fallback: bool
    pool_size: int


class SyncOut(BaseModel):
    added: int
    duplicates: int
    rejected: int


class ChannelStatusOut(BaseModel):
    connected: bool
    channel_id: str
    last_checked_at: Optional[datetime] = None

    @field_serializer("last_checked_at")
    def _last_checked_at(self, dt: Optional[datetime]):
        return iso_utc_z(dt)
