# ============================================================================
# MODELS MODULE
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Model exports
# PURPOSE: Central export point for all Pydantic models
# CREATED: 14 OCT 2026
# ============================================================================
"""
Models Module - Central Export Point

Models define SQL metadata via __sql_* ClassVar attributes for DDL generation.

Single Source of Truth Pattern:
    - Pydantic models define structure
    - PydanticToSQL reads __sql_* metadata
    - PostgreSQL schema generated from models
"""

from core.models.job import Job
from core.models.work_item import WorkItem
from core.models.batch import Batch
from core.models.user_work import UserWork
from core.models.queue_message import (
    WorkItemEnvelope,
    ReceivedMessage,
    encode_scheduling_request,
    decode_scheduling_request,
)

__all__ = [
    "Job",
    "WorkItem",
    "Batch",
    "UserWork",
    "WorkItemEnvelope",
    "ReceivedMessage",
    "encode_scheduling_request",
    "decode_scheduling_request",
]
