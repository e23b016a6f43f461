#!/usr/bin/env python
"""
Database migration helper for the session ledger schema.

Usage:
    python run_migrations.py create "migration message"  # Autogenerate a migration
    python run_migrations.py upgrade [revision]           # Apply migrations (default: head)
    python run_migrations.py downgrade [revision]         # Roll back (default: one step)
    python run_migrations.py stamp [revision]             # Mark a revision as applied
    python run_migrations.py current                      # Show current revision
    python run_migrations.py history                      # Show migration history
"""
from alembic.config import Config
from alembic import command
import os
import sys

from app.config.config import settings


alembic_cfg = Config(os.path.join(os.path.dirname(__file__), "alembic.ini"))


def _run(description: str, func, *args, **kwargs):
    try:
        func(alembic_cfg, *args, **kwargs)
    except Exception as e:
        print(f"Error while {description}: {str(e)}")
        sys.exit(1)


def create_migration(message: str):
    _run("creating migration", command.revision, message=message, autogenerate=True)
    print(f"Migration '{message}' created")
    print("   Run 'python run_migrations.py upgrade' to apply it")


def upgrade_migrations(revision: str = "head"):
    print(f"Upgrading {settings.ENVIRONMENT} database to: {revision}")
    _run("upgrading database", command.upgrade, revision)
    print("Database upgraded successfully")


def downgrade_migrations(revision: str = "-1"):
    print(f"Downgrading {settings.ENVIRONMENT} database to: {revision}")
    _run("downgrading database", command.downgrade, revision)
    print("Database downgraded successfully")


def stamp_revision(revision: str = "head"):
    _run("stamping revision", command.stamp, revision)
    print(f"Database stamped at: {revision}")


def main():
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    action = sys.argv[1].lower()
    argument = sys.argv[2] if len(sys.argv) > 2 else None

    if action == "create":
        if not argument:
            print("Error: Migration message required")
            print("   Usage: python run_migrations.py create 'migration message'")
            sys.exit(1)
        create_migration(argument)

    elif action == "upgrade":
        upgrade_migrations(argument or "head")

    elif action == "downgrade":
        downgrade_migrations(argument or "-1")

    elif action == "stamp":
        stamp_revision(argument or "head")

    elif action == "current":
        _run("showing current revision", command.current)

    elif action == "history":
        _run("showing history", command.history)

    else:
        print(f"Unknown action: {action}")
        print(__doc__)
        sys.exit(1)


if __name__ == "__main__":
    main()
