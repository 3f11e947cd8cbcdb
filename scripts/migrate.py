"""Apply, roll back or create schema migrations.

Usage:
    python scripts/migrate.py                   # upgrade to head
    python scripts/migrate.py downgrade <rev>   # roll back to <rev>
    python scripts/migrate.py create <message>  # autogenerate a revision
"""

import sys
from pathlib import Path

from alembic import command
from alembic.config import Config

ALEMBIC_INI = Path(__file__).resolve().parent.parent / "alembic.ini"


def _config() -> Config:
    cfg = Config(str(ALEMBIC_INI))
    cfg.set_main_option("script_location", str(ALEMBIC_INI.parent / "alembic"))
    return cfg


def _run(description: str, action) -> None:
    try:
        print(f"{description}...")
        action()
        print("✓ Done")
    except Exception as e:
        print(f"✗ {description} failed: {e}", file=sys.stderr)
        sys.exit(1)


def run_migrations() -> None:
    """Upgrade the database to the latest revision."""
    _run("Running database migrations", lambda: command.upgrade(_config(), "head"))


def rollback(revision: str) -> None:
    """Downgrade the database to ``revision``."""
    _run(f"Rolling back to {revision}", lambda: command.downgrade(_config(), revision))


def create_migration(message: str) -> None:
    """Autogenerate a new revision from the table metadata."""
    _run(
        f"Creating migration: {message}",
        lambda: command.revision(_config(), message=message, autogenerate=True),
    )


if __name__ == "__main__":
    args = sys.argv[1:]
    if not args:
        run_migrations()
    elif args[0] == "create" and len(args) > 1:
        create_migration(" ".join(args[1:]))
    elif args[0] == "downgrade" and len(args) == 2:
        rollback(args[1])
    else:
        print(__doc__)
        sys.exit(2)
