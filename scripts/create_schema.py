#!/usr/bin/env python3
"""
Create the Snowflake tables the API stores its documents in.

Every table has an `id` primary key, a VARIANT `document` holding the
full record, and the scalar columns the repositories filter and sort on.
Statements use CREATE TABLE IF NOT EXISTS, so re-running is safe.

Usage:
    python scripts/create_schema.py
    python scripts/create_schema.py --dry-run

Requires:
    - .env file with Snowflake credentials (see src/config/settings.py)
"""

import sys
from pathlib import Path

# Add project root to path so we can import our modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

TABLES = {
    "accounts": """
        CREATE TABLE IF NOT EXISTS accounts (
            id VARCHAR(36) PRIMARY KEY,
            email VARCHAR(320) NOT NULL UNIQUE,
            role VARCHAR(20) NOT NULL,
            name VARCHAR(100) NOT NULL,
            state VARCHAR(100),
            city VARCHAR(100),
            specialization VARCHAR(500),
            is_active BOOLEAN DEFAULT TRUE,
            is_verified BOOLEAN DEFAULT FALSE,
            points INTEGER DEFAULT 0,
            created_at TIMESTAMP_TZ NOT NULL,
            document VARIANT NOT NULL
        )
    """,
    "videos": """
        CREATE TABLE IF NOT EXISTS videos (
            id VARCHAR(36) PRIMARY KEY,
            uploaded_by VARCHAR(36) NOT NULL,
            status VARCHAR(20) NOT NULL,
            visibility VARCHAR(30) NOT NULL,
            sport VARCHAR(100),
            category VARCHAR(30),
            video_type VARCHAR(30),
            latitude FLOAT NOT NULL,
            longitude FLOAT NOT NULL,
            created_at TIMESTAMP_TZ NOT NULL,
            document VARIANT NOT NULL
        )
    """,
    "assessments": """
        CREATE TABLE IF NOT EXISTS assessments (
            id VARCHAR(36) PRIMARY KEY,
            athlete_id VARCHAR(36) NOT NULL,
            assessment_type VARCHAR(30) NOT NULL,
            verification_status VARCHAR(20) NOT NULL,
            sport VARCHAR(100),
            category VARCHAR(100),
            normalized_score FLOAT,
            latitude FLOAT NOT NULL,
            longitude FLOAT NOT NULL,
            test_date TIMESTAMP_TZ NOT NULL,
            created_at TIMESTAMP_TZ NOT NULL,
            document VARIANT NOT NULL
        )
    """,
    "gesture_analyses": """
        CREATE TABLE IF NOT EXISTS gesture_analyses (
            id VARCHAR(36) PRIMARY KEY,
            athlete_id VARCHAR(36) NOT NULL,
            video_id VARCHAR(36),
            sport VARCHAR(30) NOT NULL,
            category VARCHAR(30) NOT NULL,
            status VARCHAR(20) NOT NULL,
            created_at TIMESTAMP_TZ NOT NULL,
            document VARIANT NOT NULL
        )
    """,
    "otps": """
        CREATE TABLE IF NOT EXISTS otps (
            id VARCHAR(400) PRIMARY KEY,
            email VARCHAR(320) NOT NULL,
            purpose VARCHAR(30) NOT NULL,
            expires_at TIMESTAMP_TZ NOT NULL,
            document VARIANT NOT NULL
        )
    """,
}


def create_schema(dry_run: bool = False) -> bool:
    from src.config.settings import get_settings
    from src.infrastructure.snowflake.client import (
        SnowflakeConnectionError,
        get_snowflake_connection,
    )
    from src.infrastructure.snowflake.repositories import SnowflakeConfig

    if dry_run:
        print("\n=== DRY RUN - No tables will be created ===\n")
        for name, ddl in TABLES.items():
            print(f"-- {name}")
            print(ddl.strip())
            print()
        print(f"Total: {len(TABLES)} tables")
        return True

    settings = get_settings()
    missing = [f for f in settings.validate_required_fields() if f.startswith("SNOWFLAKE")]
    if missing:
        print(f"ERROR: Missing Snowflake configuration: {', '.join(missing)}")
        return False

    config = SnowflakeConfig(
        account=settings.snowflake_account,
        user=settings.snowflake_user,
        password=settings.snowflake_password or None,
        private_key_path=settings.snowflake_private_key_path,
        private_key_base64=settings.snowflake_private_key_base64,
        database=settings.snowflake_database,
        schema=settings.snowflake_schema,
        warehouse=settings.snowflake_warehouse,
        role=settings.snowflake_role,
    )

    created = 0
    errors = 0

    try:
        print(f"Connecting to Snowflake account: {config.account}")
        with get_snowflake_connection(config) as conn:
            cursor = conn.cursor()
            print(f"Using database {config.database}, schema {config.schema}")

            for name, ddl in TABLES.items():
                try:
                    cursor.execute(ddl)
                    created += 1
                    print(f"[OK] {name}")
                except Exception as e:
                    errors += 1
                    print(f"[ERR] {name}: {e}")

            conn.commit()
            cursor.close()
    except SnowflakeConnectionError as e:
        print(f"ERROR connecting to Snowflake: {e}")
        return False

    print("\n=== Schema Complete ===")
    print(f"Tables ready: {created}")
    print(f"Errors: {errors}")

    return errors == 0


def main():
    import argparse

    parser = argparse.ArgumentParser(description='Create SportsTalent tables in Snowflake')
    parser.add_argument('--dry-run', action='store_true', help='Print the DDL without running it')
    args = parser.parse_args()

    success = create_schema(dry_run=args.dry_run)

    sys.exit(0 if success else 1)


if __name__ == '__main__':
    main()
