"""Pydantic models for the webhook server."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class DeliveryAck(BaseModel):
    status: Literal["accepted"] = "accepted"
    outcome: str


class Health(BaseModel):
    status: Literal["ok"] = "ok"
    version: str
    tracked_repositories: int
