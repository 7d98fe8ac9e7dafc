"""Data contracts for the signaling WebSocket."""
from __future__ import annotations

import enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class DeviceType(str, enum.Enum):
    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"


class ClientEnvelope(BaseModel):
    """A single frame sent by a browser over the signaling socket."""

    event: str = Field(..., min_length=1)
    data: Any = None
    ack: int | str | None = Field(default=None, description="Acknowledgement id echoed back to the client")


class PresenceAnnouncement(BaseModel):
    """Presence data a client announces to its scope.

    Unknown keys are kept and forwarded to peers unchanged.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    display_name: str | None = Field(
        default=None,
        validation_alias=AliasChoices("displayName", "display_name", "name"),
    )
    device_type: DeviceType = Field(
        default=DeviceType.DESKTOP,
        validation_alias=AliasChoices("deviceType", "device_type", "type"),
    )

    @field_validator("display_name", mode="before")
    @classmethod
    def _strip_name(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip() or None
        return value

    @field_validator("device_type", mode="before")
    @classmethod
    def _normalise_device(cls, value: object) -> object:
        """Fall back to desktop for device types we do not know about."""

        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in {item.value for item in DeviceType}:
                return lowered
        return DeviceType.DESKTOP

    def extra_fields(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


class RoomNameRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    room_name: str = Field(default="", alias="roomName")

    @field_validator("room_name", mode="before")
    @classmethod
    def _coerce_name(cls, value: object) -> object:
        if value is None:
            return ""
        if isinstance(value, str):
            return value.strip()
        return value


class PasscodeRequest(BaseModel):
    passcode: str = Field(..., min_length=1)

    @field_validator("passcode", mode="before")
    @classmethod
    def _normalise_passcode(cls, value: object) -> object:
        if isinstance(value, (str, int)):
            return str(value).strip().upper()
        return value


class RoomTextRequest(BaseModel):
    text: str
    sender: Any = None


class RoomCreatedAck(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    room_name: str = Field(..., serialization_alias="roomName")
    passcode: str


class RoomJoinAck(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    room_name: str | None = Field(default=None, serialization_alias="roomName")
    error: str | None = None
