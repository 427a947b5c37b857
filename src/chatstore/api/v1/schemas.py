# Schemas for request and response bodies used in the API.

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


# --------- Status ---------
class StatusResponse(BaseModel):
    dbSize: int  # bytes of both persisted documents
    records: dict[str, int]  # live items per group
    updated: str  # ISO-8601 time of the snapshot


class HealthResponse(BaseModel):
    open: bool
    dirty: bool
    items: int
    flushes: int
    failed_flushes: int
    last_flush_at: datetime | None = None
    last_error: str | None = None
    last_error_recoverable: bool | None = None


# --------- Chats ---------
class ChatPayload(BaseModel):
    """A chat record; fields beyond id/title/userId pass through untouched."""

    model_config = ConfigDict(extra="allow")

    id: str
    title: str | None = None
    userId: str | None = None
    sharePath: str | None = None


class ChatListResponse(BaseModel):
    chats: list[dict[str, Any]]


class SaveChatResponse(BaseModel):
    saved: bool


class ClearChatsResponse(BaseModel):
    deleted: int


class MissingKeysResponse(BaseModel):
    missing: list[str]
