"""Pydantic model for the outbound webhook envelope."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class WebhookEnvelope(BaseModel):
    model_config = ConfigDict(extra="forbid")

    schema_version: str = "1.0"
    event_type: str
    event_id: str
    occurred_at: datetime
    source_system: str
    letter_id: str | None = None
    signature: str | None = None
    payload: dict[str, Any]
