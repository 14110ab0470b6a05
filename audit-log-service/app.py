# app.py
import sys
import threading

import click
from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException

import config
from cors_policy import CorsPolicy
from db import get_db
from db_helpers import insert_audit_record, top_domains, utcnow
from errors import ValidationError, StoreUnavailableError, SchemaMismatchError
from ingestion import parse_event, truncate_user_agent
from log_config import configure_logging, get_logger
from retention import RetentionWorker, run_sweep_once
from schema import ensure_schema, schema_report, is_current

configure_logging()
logger = get_logger("app")


# -----------------------
# Flask app setup
# -----------------------
app = Flask(__name__)
app.config["SCHEMA_READY"] = False
_schema_lock = threading.Lock()
CorsPolicy.from_config().apply(app)

if config.EMAIL_COLLECTION != "off":
    logger.warning(
        "email_collection_enabled",
        mode=config.EMAIL_COLLECTION,
        detail="the top-level `email` field of ingested events is persisted; disclose this to users",
    )


def require_schema():
    """Bring the store up to date once per process; a mismatch blocks every request that touches it."""
    if app.config["SCHEMA_READY"]:
        return
    # one thread per process migrates; a race with another process ends in a 503
    # that clears on the next request once the winner has created the table
    with _schema_lock:
        if app.config["SCHEMA_READY"]:
            return
        applied = ensure_schema()
        if applied:
            logger.info("schema_upgraded", applied=applied)
        app.config["SCHEMA_READY"] = True


def parse_limit(raw):
    if raw is None:
        return config.STATS_LIMIT
    try:
        limit = int(raw)
    except ValueError:
        raise ValidationError("invalid limit", field="limit")
    if limit < 1 or limit > config.STATS_LIMIT:
        raise ValidationError("invalid limit", field="limit")
    return limit


# -----------------------
# Error handlers
# -----------------------
@app.errorhandler(ValidationError)
def handle_validation_error(e):
    return jsonify({"error": e.message}), 400


@app.errorhandler(HTTPException)
def handle_http_error(e):
    return jsonify({"error": e.name.lower()}), e.code


@app.errorhandler(StoreUnavailableError)
def handle_store_unavailable(e):
    logger.error("store_unavailable", path=request.path, error=str(e), exc_info=True)
    return jsonify({"error": "storage unavailable"}), 500


@app.errorhandler(SchemaMismatchError)
def handle_schema_mismatch(e):
    logger.critical("schema_mismatch_blocking_requests", path=request.path, error=str(e))
    return jsonify({"error": "storage unavailable"}), 503


# -----------------------
# Endpoint: ingest one audit event
# -----------------------
@app.route("/log", methods=["POST"])
def log_event():
    received_at = utcnow()
    data = request.get_json(force=True, silent=True)
    fields = parse_event(data, email_mode=config.EMAIL_COLLECTION)

    require_schema()
    db = next(get_db())
    try:
        insert_audit_record(
            db,
            timestamp=received_at,
            client_origin=request.remote_addr,
            user_agent=truncate_user_agent(request.headers.get("User-Agent")),
            **fields,
        )
    finally:
        db.close()

    return jsonify({"success": True}), 200


# -----------------------
# Endpoint: top domains by event count
# -----------------------
@app.route("/stats", methods=["GET"])
def stats():
    limit = parse_limit(request.args.get("limit"))

    require_schema()
    db = next(get_db())
    try:
        rows = top_domains(db, limit)
    finally:
        db.close()

    return jsonify([{"domain": domain, "count": count} for domain, count in rows])


# -----------------------
# Health endpoint
# -----------------------
@app.route("/health", methods=["GET"])
def health():
    try:
        report = schema_report()
    except StoreUnavailableError as e:
        logger.warning("health_store_unavailable", error=str(e))
        return jsonify({"ok": False, "schema_current": False}), 503

    current = is_current(report)
    body = {"ok": current, "schema_current": current}
    if not current:
        body["missing_columns"] = report["missing_columns"]
        body["missing_indexes"] = report["missing_indexes"]
    return jsonify(body), 200 if current else 503


# -----------------------
# Operator commands
# -----------------------
@app.cli.command("init-db")
def init_db_command():
    """Create the audit_log table or bring it up to date."""
    try:
        applied = ensure_schema()
    except (SchemaMismatchError, StoreUnavailableError) as e:
        raise click.ClickException(str(e))
    if applied:
        click.echo("applied: " + ", ".join(applied))
    else:
        click.echo("schema already current")


@app.cli.command("sweep")
@click.option("--days", type=int, default=None, help="Retention horizon in days (default RETENTION_HORIZON_DAYS).")
def sweep_command(days):
    """Delete audit records older than the retention horizon."""
    horizon_days = days if days is not None else config.RETENTION_HORIZON_DAYS
    if horizon_days < 0:
        raise click.BadParameter("must be >= 0", param_hint="--days")
    deleted = run_sweep_once(horizon_days)
    if deleted is None:
        raise click.ClickException("retention sweep failed, see logs")
    click.echo(f"deleted {deleted} records older than {horizon_days} days")


# -----------------------
# Startup
# -----------------------
def startup():
    try:
        require_schema()
    except (SchemaMismatchError, StoreUnavailableError) as e:
        logger.critical("startup_failed", error=str(e))
        sys.exit(1)
    logger.info("schema_ready")


# -----------------------
# Entry point
# -----------------------
if __name__ == "__main__":
    startup()

    if config.ENABLE_RETENTION_WORKER:
        RetentionWorker().start()

    app.run(host="0.0.0.0", port=config.PORT)
