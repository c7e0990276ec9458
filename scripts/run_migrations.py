#!/usr/bin/env python3
"""
Apply the AgriCure schema migrations.

Runs every database/migrations/NNN_name.sql file not yet recorded in the
_migrations table, in version order, each in its own transaction. With
--check, only lists what is pending and exits 1 if anything is.
"""

import argparse
import os
import re
import sys
from pathlib import Path
from typing import List, NamedTuple, Set

import psycopg2

MIGRATIONS_DIR = Path(__file__).parent.parent / "database" / "migrations"
MIGRATION_PATTERN = re.compile(r"^(\d+)_(.+)\.sql$")


class Migration(NamedTuple):
    version: str
    name: str
    path: Path

    @property
    def label(self) -> str:
        return f"{self.version}_{self.name}"


def find_migrations(directory: Path = MIGRATIONS_DIR) -> List[Migration]:
    """Migration files sorted by version; other files are ignored."""
    if not directory.exists():
        print(f"Migrations directory not found: {directory}", file=sys.stderr)
        return []

    migrations = []
    for path in directory.glob("*.sql"):
        match = MIGRATION_PATTERN.match(path.name)
        if match:
            migrations.append(Migration(match.group(1), match.group(2), path))

    return sorted(migrations, key=lambda m: int(m.version))


def applied_versions(conn) -> Set[str]:
    with conn.cursor() as cur:
        cur.execute("""
            CREATE TABLE IF NOT EXISTS public._migrations (
                version TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                applied_at TIMESTAMPTZ DEFAULT NOW()
            );
        """)
        cur.execute("SELECT version FROM public._migrations;")
        versions = {row[0] for row in cur.fetchall()}
    conn.commit()
    return versions


def apply(conn, migration: Migration) -> None:
    """Run one migration and record it, or roll both back."""
    try:
        with conn.cursor() as cur:
            cur.execute(migration.path.read_text(encoding="utf-8"))
            cur.execute(
                "INSERT INTO public._migrations (version, name) VALUES (%s, %s);",
                (migration.version, migration.name),
            )
        conn.commit()
    except Exception:
        conn.rollback()
        raise


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--check", action="store_true", help="list pending migrations without applying them")
    args = parser.parse_args(argv)

    database_url = os.environ.get("DATABASE_URL")
    if not database_url:
        print("Error: DATABASE_URL environment variable not set", file=sys.stderr)
        return 1

    try:
        conn = psycopg2.connect(database_url)
    except psycopg2.Error as e:
        print(f"Error connecting to database: {e}", file=sys.stderr)
        return 1

    try:
        done = applied_versions(conn)
        pending = [m for m in find_migrations() if m.version not in done]

        if not pending:
            print("Database schema is up to date")
            return 0

        if args.check:
            for migration in pending:
                print(f"pending: {migration.label}")
            return 1

        for migration in pending:
            print(f"Applying {migration.label}...")
            try:
                apply(conn, migration)
            except psycopg2.Error as e:
                print(f"Failed {migration.label}: {e}", file=sys.stderr)
                return 1

        print(f"Applied {len(pending)} migration(s)")
        return 0
    finally:
        conn.close()


if __name__ == "__main__":
    sys.exit(main())
