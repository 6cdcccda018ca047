"""Simple migration runner applying the SQL files in migrations/ to DATABASE_URL."""
import logging
import sys
from pathlib import Path

from sqlalchemy import text

BASE = Path(__file__).parent
if str(BASE) not in sys.path:
    sys.path.insert(0, str(BASE))

from radio_catalog.config import settings  # noqa: E402
from radio_catalog.database import engine  # noqa: E402

MIGRATIONS = sorted((BASE / "migrations").glob("*.sql"))
logger = logging.getLogger("radio_catalog.migrations")


def _statements(sql: str):
    """Split a migration file into statements.

    `--` comments are stripped from every line before splitting on `;`, so a
    semicolon inside a comment never ends a statement.
    """
    code = "\n".join(ln.split("--", 1)[0].rstrip() for ln in sql.splitlines())
    for chunk in code.split(";"):
        lines = [ln for ln in chunk.splitlines() if ln.strip()]
        if lines:
            yield "\n".join(lines)


def run():
    """Execute SQL migration files against the configured database.

    Every `migrations/*.sql` file is applied in lexical order inside one
    transaction; the statements are idempotent (`IF NOT EXISTS`).
    """
    logger.info("Using database: %s", settings.DATABASE_URL)
    with engine.begin() as conn:
        for m in MIGRATIONS:
            logger.info("Applying: %s", m.name)
            for stmt in _statements(m.read_text(encoding="utf-8")):
                conn.execute(text(stmt))
    logger.info("Migrations applied.")


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    run()
