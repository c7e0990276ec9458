import re
from pathlib import Path

MIGRATIONS = Path(__file__).parent.parent / "database" / "migrations"


def statements(name, keyword):
    sql = (MIGRATIONS / name).read_text()
    return [line for line in sql.splitlines() if line.strip().upper().startswith(keyword)]


def test_profile_upsert_is_callable_by_service_role_only():
    grants = statements("004_upsert_user_profile.sql", "GRANT")
    revokes = statements("004_upsert_user_profile.sql", "REVOKE")

    assert len(grants) == 1
    assert re.search(r"TO\s+service_role\s*;", grants[0])
    assert "authenticated" not in grants[0]
    assert "anon" not in grants[0]
    assert all(role in revokes[0] for role in ("PUBLIC", "anon", "authenticated"))
