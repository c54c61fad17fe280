#!/usr/bin/env python3
"""
Verify the database has everything prompt search reads:
tables, the search_vector column, its GIN index and the maintaining triggers
"""

import sys

import psycopg2
from psycopg2.extras import RealDictCursor
from dotenv import load_dotenv

from promptana.config import database_config

load_dotenv()

EXPECTED_COLUMNS = {
    'prompts': ['id', 'user_id', 'catalog_id', 'title', 'current_version_id', 'search_vector', 'updated_at'],
    'prompt_versions': ['id', 'prompt_id', 'user_id', 'content'],
    'catalogs': ['id', 'user_id', 'name'],
    'tags': ['id', 'user_id', 'name'],
    'prompt_tags': ['prompt_id', 'tag_id', 'user_id', 'created_at'],
}
EXPECTED_INDEXES = ['prompts_search_vector_idx', 'prompts_user_updated_idx', 'prompt_tags_tag_idx']
EXPECTED_TRIGGERS = ['prompts_search_vector_update', 'set_prompts_updated_at', 'prompt_tags_ownership_check']


def get_table_columns(cursor, table_name):
    """Column names of a public table (empty when the table is missing)"""
    cursor.execute("""
        SELECT column_name
        FROM information_schema.columns
        WHERE table_schema = 'public'
        AND table_name = %s
        ORDER BY ordinal_position
    """, (table_name,))
    return [row['column_name'] for row in cursor.fetchall()]


def find_missing(cursor):
    """Return a list of human-readable problems; empty when the schema is complete"""
    problems = []

    for table, columns in EXPECTED_COLUMNS.items():
        existing = get_table_columns(cursor, table)
        if not existing:
            problems.append(f"table {table} is missing")
            continue
        for column in columns:
            if column not in existing:
                problems.append(f"column {table}.{column} is missing")

    cursor.execute("SELECT indexname FROM pg_indexes WHERE schemaname = 'public'")
    indexes = {row['indexname'] for row in cursor.fetchall()}
    problems.extend(f"index {name} is missing" for name in EXPECTED_INDEXES if name not in indexes)

    cursor.execute("SELECT tgname FROM pg_trigger WHERE NOT tgisinternal")
    triggers = {row['tgname'] for row in cursor.fetchall()}
    problems.extend(f"trigger {name} is missing" for name in EXPECTED_TRIGGERS if name not in triggers)

    return problems


def verify_schema() -> bool:
    """Verify database schema matches expected structure"""
    print("🔍 VERIFYING SEARCH SCHEMA")
    print("=" * 60)

    try:
        conn = psycopg2.connect(database_config.get_database_url())
    except (ValueError, psycopg2.Error) as e:
        print(f"❌ Could not connect: {e}")
        return False

    try:
        with conn.cursor(cursor_factory=RealDictCursor) as cursor:
            problems = find_missing(cursor)
    except psycopg2.Error as e:
        print(f"❌ Verification failed: {e}")
        return False
    finally:
        conn.close()

    print("=" * 60)
    if problems:
        for problem in problems:
            print(f"   ❌ {problem}")
        print("❌ SCHEMA INCOMPLETE - run api/scripts/database/init_database.py")
        return False

    print("✅ SCHEMA VERIFICATION COMPLETE")
    return True


if __name__ == "__main__":
    sys.exit(0 if verify_schema() else 1)
