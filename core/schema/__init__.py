# ============================================================================
# SCHEMA MODULE
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Core - Schema generation from Pydantic models
# PURPOSE: Generate PostgreSQL DDL from Pydantic models (single source of truth)
# CREATED: 15 OCT 2026
# ============================================================================

from core.schema.ddl_utils import IndexBuilder, TriggerBuilder, SchemaUtils
from core.schema.sql_generator import PydanticToSQL
from core.schema.deploy import deploy_schema

__all__ = [
    "PydanticToSQL",
    "deploy_schema",
    "IndexBuilder",
    "TriggerBuilder",
    "SchemaUtils",
]
