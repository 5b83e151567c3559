# ============================================================================
# SCHEMA DEPLOYMENT
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Core - Applies the generated DDL
# PURPOSE: Create (or recreate) the workapp schema from the Pydantic models
# CREATED: 16 OCT 2026
# ============================================================================
"""
Schema Deployment

Opens a synchronous psycopg connection and runs every statement from
PydanticToSQL.generate_all() in one transaction.
"""

import logging
from typing import Optional

import psycopg

from core.schema.sql_generator import PydanticToSQL

logger = logging.getLogger(__name__)


def deploy_schema(
    connection_string: Optional[str] = None,
    dry_run: bool = False,
    destructive: bool = False,
) -> int:
    """
    Deploy the schema.

    Args:
        connection_string: PostgreSQL connection (defaults to env)
        dry_run: Log the DDL instead of executing it
        destructive: Drop the schema first

    Returns:
        Number of DDL statements
    """
    from repositories.database import get_connection_string

    generator = PydanticToSQL(destructive=destructive)
    conninfo = connection_string or get_connection_string()

    with psycopg.connect(conninfo) as conn:
        count = generator.execute(conn, dry_run=dry_run)
        if not dry_run:
            conn.commit()

    logger.info(f"Schema deployment {'previewed' if dry_run else 'completed'}: {count} statements")
    return count


__all__ = ["deploy_schema"]
