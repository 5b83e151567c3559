#!/usr/bin/env python
# ============================================================================
# SCHEMA DEPLOYMENT SCRIPT
# ============================================================================
# EPOCH: 1 - WORK ITEM SCHEDULING
# PURPOSE: Deploy workapp schema to PostgreSQL using PydanticToSQL
# USAGE:
#   python scripts/deploy_schema.py --dry-run       # Preview SQL
#   python scripts/deploy_schema.py                 # Execute deployment
#   python scripts/deploy_schema.py --destructive   # Drop and recreate
# ============================================================================

import argparse
import logging
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.schema.deploy import deploy_schema


def main():
    parser = argparse.ArgumentParser(
        description="Deploy workapp schema to PostgreSQL",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/deploy_schema.py --dry-run     # Preview DDL without executing
  python scripts/deploy_schema.py               # Deploy schema

Environment Variables:
  DATABASE_URL          Full PostgreSQL connection string
  POSTGRES_HOST         Database host (default: localhost)
  POSTGRES_DB           Database name (default: postgres)
  POSTGRES_USER         Database user (default: postgres)
  POSTGRES_PASSWORD     Database password
  POSTGRES_PORT         Database port (default: 5432)
  POSTGRES_SSLMODE      SSL mode (default: prefer)
        """
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print DDL without executing"
    )
    parser.add_argument(
        "--destructive",
        action="store_true",
        help="Drop the schema before creating it (deletes all data)"
    )
    parser.add_argument(
        "--connection",
        type=str,
        help="PostgreSQL connection string (overrides environment)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    print("=" * 70)
    print("WORK ITEM SCHEDULER - Schema Deployment")
    print("=" * 70)
    print(f"Mode: {'DRY RUN' if args.dry_run else 'EXECUTE'}"
          f"{' (destructive)' if args.destructive else ''}\n")

    try:
        count = deploy_schema(
            connection_string=args.connection,
            dry_run=args.dry_run,
            destructive=args.destructive,
        )
    except Exception as e:
        print(f"\nDeployment failed: {e}")
        sys.exit(1)

    print(f"\n{count} statements {'previewed' if args.dry_run else 'executed'}")
    print("=" * 70)


if __name__ == "__main__":
    main()
