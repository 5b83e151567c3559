# ============================================================================
# PYDANTIC TO SQL GENERATOR
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# STATUS: Core - DDL generation from Pydantic models
# PURPOSE: Generate PostgreSQL CREATE statements from Pydantic models
# CREATED: 15 OCT 2026
# EXPORTS: PydanticToSQL
# DEPENDENCIES: pydantic, psycopg
# ============================================================================
"""
Pydantic to PostgreSQL Schema Generator.

Generates PostgreSQL DDL statements from Pydantic models.
Pydantic models are the SINGLE SOURCE OF TRUTH for schema.

Model Metadata Convention:
    Models define SQL metadata via ClassVar attributes:
    - __sql_table__: Table name
    - __sql_schema__: Schema name
    - __sql_primary_key__: Primary key column(s) - string or list
    - __sql_foreign_keys__: Dict of {column: "schema.table(column)"}
    - __sql_indexes__: List of (name, columns[, partial_where]) tuples
    - __sql_serial_columns__: Columns that should be SERIAL

    Fields declared with Field(exclude=True) are in-memory only and get
    no column.

Usage:
    generator = PydanticToSQL(schema_name="workapp")
    statements = generator.generate_all()
    for stmt in statements:
        cursor.execute(stmt)
"""

import logging
import re
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Type, Union, get_args, get_origin

from annotated_types import MaxLen
from pydantic import BaseModel
from pydantic.fields import FieldInfo
from psycopg import sql

from core.schema.ddl_utils import IndexBuilder, TriggerBuilder, SchemaUtils

logger = logging.getLogger(__name__)


class PydanticToSQL:
    """
    Convert Pydantic models to PostgreSQL DDL statements.

    Analyzes Pydantic models with __sql_* metadata and generates
    corresponding PostgreSQL CREATE TABLE statements.
    """

    TYPE_MAP = {
        str: "VARCHAR",
        int: "INTEGER",
        float: "DOUBLE PRECISION",
        bool: "BOOLEAN",
        datetime: "TIMESTAMPTZ",
        dict: "JSONB",
        Dict: "JSONB",
        list: "JSONB",
        List: "JSONB",
    }

    def __init__(self, schema_name: str = "workapp", destructive: bool = False):
        """
        Initialize the generator.

        Args:
            schema_name: Default PostgreSQL schema name
            destructive: If True, DROP the schema before creating it.
        """
        self.schema_name = schema_name
        self.destructive = destructive
        self.enums: Dict[str, Type[Enum]] = {}

    # =========================================================================
    # METADATA EXTRACTION
    # =========================================================================

    @staticmethod
    def get_model_metadata(model: Type[BaseModel]) -> Dict[str, Any]:
        """
        Extract SQL DDL metadata from a Pydantic model.

        Looks for __sql_* attributes (which Python mangles to _ClassName__sql_*).
        """
        def get_attr(name: str, default=None):
            mangled = f"_{model.__name__}__{name}"
            return getattr(model, mangled, getattr(model, f"__{name}", default))

        metadata = {
            "table": get_attr("sql_table__"),
            "schema": get_attr("sql_schema__", "workapp"),
            "primary_key": get_attr("sql_primary_key__", []),
            "foreign_keys": get_attr("sql_foreign_keys__", {}),
            "indexes": get_attr("sql_indexes__", []),
            "serial_columns": get_attr("sql_serial_columns__", []),
        }

        if isinstance(metadata["primary_key"], str):
            metadata["primary_key"] = [metadata["primary_key"]]

        return metadata

    # =========================================================================
    # TYPE CONVERSION
    # =========================================================================

    @staticmethod
    def _unwrap_optional(field_type: Any) -> tuple:
        """Return (inner_type, is_optional)."""
        if get_origin(field_type) is Union:
            args = [a for a in get_args(field_type) if a is not type(None)]
            if len(args) == 1:
                return args[0], True
        return field_type, False

    def python_type_to_sql(self, field_type: Type, field_info: FieldInfo) -> str:
        """
        Convert Python type to PostgreSQL type.

        Args:
            field_type: Python type from Pydantic model
            field_info: Pydantic field information

        Returns:
            PostgreSQL type string
        """
        actual_type, _ = self._unwrap_optional(field_type)

        if get_origin(actual_type) in (dict, Dict, list, List):
            return "JSONB"

        if actual_type is str:
            for constraint in field_info.metadata or []:
                if isinstance(constraint, MaxLen):
                    return f"VARCHAR({constraint.max_length})"
            return "VARCHAR"

        if isinstance(actual_type, type) and issubclass(actual_type, Enum):
            enum_name = re.sub(r'(?<!^)(?=[A-Z])', '_', actual_type.__name__).lower()
            self.enums[enum_name] = actual_type
            return enum_name

        return self.TYPE_MAP.get(actual_type, "JSONB")

    # =========================================================================
    # ENUM GENERATION
    # =========================================================================

    def generate_enum(self, enum_name: str, enum_class: Type[Enum], schema: str) -> sql.Composed:
        """Generate a CREATE TYPE ... AS ENUM that is skipped if the type exists."""
        values_str = ", ".join(f"'{member.value}'" for member in enum_class)
        do_block = f"""
DO $$
BEGIN
    IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = '{enum_name}' AND typnamespace = (SELECT oid FROM pg_namespace WHERE nspname = '{schema}')) THEN
        CREATE TYPE "{schema}"."{enum_name}" AS ENUM ({values_str});
    END IF;
END$$
"""
        return sql.SQL(do_block)

    # =========================================================================
    # TABLE GENERATION
    # =========================================================================

    def _column_default(self, field_name: str, field_info: FieldInfo, sql_type_str: str, schema_name: str) -> List[sql.Composable]:
        default = field_info.default

        if field_info.default_factory is not None:
            if sql_type_str == "TIMESTAMPTZ":
                return [sql.SQL(" DEFAULT NOW()")]
            if sql_type_str == "JSONB":
                empty = field_info.default_factory()
                return [sql.SQL(" DEFAULT "), sql.Literal("[]" if isinstance(empty, list) else "{}")]
            return []

        if default is None or default is ...:
            return []
        if isinstance(default, Enum):
            return [
                sql.SQL(" DEFAULT "),
                sql.Literal(default.value),
                sql.SQL("::"),
                sql.Identifier(schema_name),
                sql.SQL("."),
                sql.Identifier(sql_type_str),
            ]
        if isinstance(default, bool):
            return [sql.SQL(" DEFAULT true" if default else " DEFAULT false")]
        if isinstance(default, (str, int, float)):
            return [sql.SQL(" DEFAULT "), sql.Literal(default)]
        return []

    def generate_table(self, model: Type[BaseModel]) -> sql.Composed:
        """
        Generate CREATE TABLE DDL from a Pydantic model.

        Args:
            model: Pydantic model with __sql_* metadata

        Returns:
            sql.Composed CREATE TABLE statement
        """
        meta = self.get_model_metadata(model)
        table_name = meta["table"]
        schema_name = meta["schema"]
        primary_key = meta["primary_key"]
        serial_columns = meta["serial_columns"]

        if not table_name:
            raise ValueError(f"Model {model.__name__} missing __sql_table__ attribute")

        logger.debug(f"Generating table {schema_name}.{table_name} from {model.__name__}")

        columns = []
        constraints = []

        for field_name, field_info in model.model_fields.items():
            if field_info.exclude:
                continue

            sql_type_str = self.python_type_to_sql(field_info.annotation, field_info)
            _, is_optional = self._unwrap_optional(field_info.annotation)

            if field_name in serial_columns:
                sql_type_str = "SERIAL"

            column_parts: List[sql.Composable] = [sql.Identifier(field_name), sql.SQL(" ")]

            if sql_type_str in self.enums:
                column_parts.extend([
                    sql.Identifier(schema_name),
                    sql.SQL("."),
                    sql.Identifier(sql_type_str),
                ])
            else:
                column_parts.append(sql.SQL(sql_type_str))

            if not is_optional and field_name not in primary_key and sql_type_str != "SERIAL":
                column_parts.append(sql.SQL(" NOT NULL"))

            if sql_type_str != "SERIAL":
                column_parts.extend(self._column_default(field_name, field_info, sql_type_str, schema_name))

            columns.append(sql.Composed(column_parts))

        if primary_key:
            constraints.append(
                sql.SQL("PRIMARY KEY ({})").format(
                    sql.SQL(", ").join(sql.Identifier(col) for col in primary_key)
                )
            )

        for fk_column, fk_reference in meta["foreign_keys"].items():
            match = re.match(r"(\w+)\.(\w+)\((\w+)\)", fk_reference)
            if match:
                ref_schema, ref_table, ref_column = match.groups()
                constraints.append(
                    sql.SQL("FOREIGN KEY ({}) REFERENCES {}.{} ({}) ON DELETE CASCADE").format(
                        sql.Identifier(fk_column),
                        sql.Identifier(ref_schema),
                        sql.Identifier(ref_table),
                        sql.Identifier(ref_column),
                    )
                )

        return sql.SQL("CREATE TABLE IF NOT EXISTS {}.{} ({})").format(
            sql.Identifier(schema_name),
            sql.Identifier(table_name),
            sql.SQL(", ").join(columns + constraints),
        )

    # =========================================================================
    # INDEX GENERATION
    # =========================================================================

    def generate_indexes(self, model: Type[BaseModel]) -> List[sql.Composed]:
        """Generate CREATE INDEX statements from a model's __sql_indexes__."""
        meta = self.get_model_metadata(model)
        result = []

        for idx_def in meta["indexes"]:
            name = idx_def[0]
            columns = idx_def[1] if len(idx_def) > 1 else []
            partial_where = idx_def[2] if len(idx_def) > 2 else None
            if not name or not columns:
                continue
            result.append(IndexBuilder.btree(
                meta["schema"], meta["table"], columns,
                name=name,
                partial_where=partial_where,
            ))

        return result

    # =========================================================================
    # COMPLETE SCHEMA GENERATION
    # =========================================================================

    def generate_all(self) -> List[sql.Composed]:
        """
        Generate complete DDL for the work item schema.

        Returns:
            List of sql.Composed statements ready for execution
        """
        from core.contracts import JobStatus, WorkItemStatus
        from core.models import Job, WorkItem, Batch, UserWork

        models = [Job, WorkItem, Batch, UserWork]
        statements: List[sql.Composed] = []

        if self.destructive:
            statements.append(SchemaUtils.drop_schema(self.schema_name))

        statements.append(SchemaUtils.create_schema(self.schema_name))
        statements.append(SchemaUtils.set_search_path(self.schema_name))

        statements.append(self.generate_enum("job_status", JobStatus, self.schema_name))
        statements.append(self.generate_enum("work_item_status", WorkItemStatus, self.schema_name))

        # Parents before children for foreign keys
        for model in models:
            statements.append(self.generate_table(model))
        for model in models:
            statements.extend(self.generate_indexes(model))

        statements.append(TriggerBuilder.updated_at_function(self.schema_name))
        for model in models:
            table = self.get_model_metadata(model)["table"]
            statements.extend(TriggerBuilder.updated_at_trigger(self.schema_name, table))

        logger.info(f"Generated {len(statements)} DDL statements for schema {self.schema_name}")
        return statements

    def execute(self, conn, dry_run: bool = False) -> int:
        """
        Execute all DDL statements.

        Args:
            conn: psycopg (sync) connection
            dry_run: If True, log statements but don't execute

        Returns:
            Number of statements executed
        """
        statements = self.generate_all()

        if dry_run:
            for stmt in statements:
                logger.info(f"[DRY RUN] {stmt.as_string(conn)}")
            return len(statements)

        with conn.cursor() as cur:
            for stmt in statements:
                cur.execute(stmt)

        logger.info(f"Executed {len(statements)} DDL statements")
        return len(statements)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = ['PydanticToSQL']
