"""Pydantic response models for the diffwatch API."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error envelope returned by every failing endpoint."""

    error: str
    detail: str = ""


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str


class ReadinessResponse(BaseModel):
    ready: bool
    pending: list[str] = Field(default_factory=list)


class ControllerStatus(BaseModel):
    """Runtime state of one resource controller."""

    kind: str
    api_version: str
    synced: bool
    running: bool
    queue_depth: int


class StatusResponse(BaseModel):
    version: str
    started_at: str
    namespaces: list[str]
    diff_ignore: list[str]
    max_retries: int
    notification_channels: list[str] = Field(default_factory=list)
    controllers: list[ControllerStatus] = Field(default_factory=list)
