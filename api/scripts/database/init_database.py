#!/usr/bin/env python3
"""
Initialize the PostgreSQL prompt store for Promptana
Applies api/database/schema.sql (tables, indexes, search vector trigger)
"""

import sys
from pathlib import Path
from urllib.parse import urlparse, parse_qs

import psycopg2
from dotenv import load_dotenv

from promptana.config import database_config

load_dotenv()

SCHEMA_PATH = Path(__file__).resolve().parents[2] / "database" / "schema.sql"


def connect(database_url: str):
    """Connect with sslmode defaulted to 'disable' for localhost, 'require' otherwise"""
    parsed = urlparse(database_url)
    hostname = parsed.hostname or 'localhost'
    default_sslmode = 'disable' if hostname in ('localhost', '127.0.0.1', '::1') else 'require'
    sslmode = parse_qs(parsed.query).get('sslmode', [default_sslmode])[0]
    return psycopg2.connect(database_url.split('?')[0], sslmode=sslmode)


def apply_schema(conn, schema_path: Path = SCHEMA_PATH):
    """Execute the schema file in one transaction"""
    schema_sql = schema_path.read_text(encoding='utf-8')
    with conn.cursor() as cursor:
        cursor.execute(schema_sql)
    conn.commit()


def init_database() -> bool:
    """Initialize PostgreSQL database with schema"""
    try:
        database_url = database_config.get_database_url()
    except ValueError:
        print("❌ ERROR: DATABASE_URL not found in environment")
        print("Please add DATABASE_URL to .env file")
        return False

    if not SCHEMA_PATH.exists():
        print(f"❌ Schema file not found: {SCHEMA_PATH}")
        return False

    print("🐘 Connecting to PostgreSQL...")
    try:
        conn = connect(database_url)
    except psycopg2.Error as e:
        print(f"❌ Error: {e}")
        return False

    try:
        print(f"📄 Applying schema from {SCHEMA_PATH}...")
        apply_schema(conn)

        with conn.cursor() as cursor:
            cursor.execute("""
                SELECT table_name
                FROM information_schema.tables
                WHERE table_schema = 'public'
                ORDER BY table_name
            """)
            tables = cursor.fetchall()

        print(f"\n📊 {len(tables)} tables present:")
        for table in tables:
            print(f"   ✓ {table[0]}")
        print("\n✅ Database initialization complete!")
        return True
    except psycopg2.Error as e:
        conn.rollback()
        print(f"❌ Error: {e}")
        return False
    finally:
        conn.close()


if __name__ == "__main__":
    sys.exit(0 if init_database() else 1)
