"""
Accounting Back Office
Flask Application Factory.

Usage:
    from backoffice import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import importlib
import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from backoffice.config import config
from backoffice.models import db
from backoffice.middleware.logging_config import configure_logging
from backoffice.middleware.rate_limiter import init_rate_limits
from backoffice.middleware.tenant_context import init_tenant_context
from backoffice.middleware.timing import init_request_timing

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # no global limit, applied per blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),
)


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    config_cls = config[config_name]
    # ProductionConfig validates required env vars in __init__
    app.config.from_object(config_cls() if config_name == "production" else config_cls)

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request timing + tenant context ──────────────────────────────────
    init_request_timing(app)
    init_tenant_context(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from backoffice.models import tenant as _tenant_models          # noqa: F401
    from backoffice.models import task as _task_models              # noqa: F401
    from backoffice.models import scheduling as _scheduling_models  # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ────────────────────────
    if config_name != "production":
        os.makedirs(app.instance_path, exist_ok=True)
        with app.app_context():
            try:
                db.create_all()
                app.logger.info("db.create_all() completed successfully")
            except Exception as e:
                app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from backoffice.blueprints.health_bp import health_bp
    from backoffice.blueprints.recurring_task_bp import recurring_task_bp
    from backoffice.blueprints.scheduler_bp import scheduler_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(recurring_task_bp)
    app.register_blueprint(scheduler_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("generate-recurring-tasks")
    @click.option("--tenant-id", type=int, default=None,
                  help="Only generate for this tenant.")
    def generate_recurring_tasks_cmd(tenant_id):
        """Generate due recurring task instances (one tenant or all)."""
        from backoffice.services.recurring_task_service import RecurringTaskGenerator
        from backoffice.services.scheduled_jobs import GENERATION_JOB
        from backoffice.services.scheduler_service import single_flight

        generator = RecurringTaskGenerator()
        with single_flight(GENERATION_JOB) as acquired:
            if not acquired:
                raise click.ClickException("Recurring task generation is already running")
            if tenant_id is not None:
                summary = generator.generate_recurring_tasks_for_tenant(tenant_id)
            else:
                summary = generator.generate_upcoming_recurring_tasks()
        click.echo(summary.to_dict())

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error"}, 500

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    # ── Scheduler initialization (import jobs to register them) ──────────
    importlib.import_module("backoffice.services.scheduled_jobs")  # registers @register_job handlers
    from backoffice.services.scheduler_service import SchedulerService as _SchedulerSvc
    _SchedulerSvc.init_app(app)

    return app
