# ============================================================================
# QUEUE MESSAGE MODELS
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Core model - Queue envelopes
# PURPOSE: Dispatch envelope, scheduling request, and received message handle
# CREATED: 15 OCT 2026
# EXPORTS: WorkItemEnvelope, ReceivedMessage, encode_scheduling_request,
#          decode_scheduling_request
# DEPENDENCIES: pydantic
# ============================================================================
"""
Queue Message Models

Two kinds of message bodies travel through the queues:

    Scheduling request (scheduler-request queue):
        the bare serviceID string, e.g. "ghcr.io/acme/subsetter:1.2.0"

    Dispatch envelope (per-service queue):
        {"workItem": {...}, "maxCmrGranules": 2000}

Usage:
    body = WorkItemEnvelope(work_item=item).to_body()
    envelope = WorkItemEnvelope.from_body(body)
"""

import json
from dataclasses import dataclass
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.models.work_item import WorkItem


class WorkItemEnvelope(BaseModel):
    """Dispatch envelope placed on a service queue."""
    model_config = ConfigDict(populate_by_name=True)

    work_item: WorkItem = Field(..., alias="workItem")
    max_cmr_granules: Optional[int] = Field(default=None, ge=0, alias="maxCmrGranules")

    def to_body(self) -> str:
        """Serialize with wire (camelCase) names."""
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def from_body(cls, body: str) -> "WorkItemEnvelope":
        """
        Parse a dispatch envelope.

        Raises:
            pydantic.ValidationError: If the body is not a valid envelope
        """
        return cls.model_validate_json(body)


def encode_scheduling_request(service_id: str) -> str:
    """Scheduling requests are the bare service identifier."""
    return service_id


def decode_scheduling_request(body: str) -> str:
    """
    Accept both the bare form and a JSON-quoted string.

    Raises:
        ValueError: If a quoted body is not a valid JSON string
    """
    text = body.strip()
    if text.startswith('"'):
        return str(json.loads(text))
    return text


@dataclass(frozen=True)
class ReceivedMessage:
    """
    A message taken from a WorkQueue.

    receipt is opaque and only meaningful to the queue that produced it.
    """
    body: str
    receipt: Any


__all__ = [
    "WorkItemEnvelope",
    "ReceivedMessage",
    "encode_scheduling_request",
    "decode_scheduling_request",
]
