"""
Flask-Migrate / Alembic entry point.

Usage:
    flask db upgrade
    flask generate-recurring-tasks [--tenant-id N]
"""

from backoffice import create_app

app = create_app()
