"""Flask JSON API around ledger sessions.

Each ledger is addressed by its session key. Sessions are loaded once per
process and kept in ``app.extensions`` so the debounced saver outlives a single
request. Identity and access control belong to whatever sits in front of this
app.
"""

from __future__ import annotations

import atexit
import datetime as dt
import io
import threading
import weakref
from pathlib import Path
from typing import Any, Dict, Optional

from flask import Flask, Response, current_app, jsonify, request
from werkzeug.exceptions import BadRequest, HTTPException

from .config import PROJECT_ROOT, AppConfig
from .db import SqlStorage, init_db
from .errors import (
    CategoryInUse,
    CategoryNotFound,
    EntryNotFound,
    LedgerError,
    NameCollision,
    TemplateNotFound,
)
from .logging_setup import configure_logging, get_logger
from .normalizer import entry_to_dict, template_to_dict
from .reports import build_annual_report, export_month_csv
from .session import LedgerSession

logger = get_logger("finance_ledger.webapp")

_SESSIONS_KEY = "finance_ledger_sessions"

# Apps flushed at interpreter exit, held weakly.
_LIVE_APPS: "weakref.WeakSet[Flask]" = weakref.WeakSet()
_shutdown_hook_installed = False

_ERROR_STATUS = (
    (NameCollision, 409),
    (CategoryInUse, 409),
    (CategoryNotFound, 404),
    (EntryNotFound, 404),
    (TemplateNotFound, 404),
)


def _status_for(exc: LedgerError) -> int:
    for kind, status in _ERROR_STATUS:
        if isinstance(exc, kind):
            return status
    return 400


def _payload() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise BadRequest("Expected a JSON object")
    return data


def _category_to_dict(cat) -> Dict[str, Any]:
    return {"name": cat.name, "budget": float(cat.budget)}


def get_session(key: str) -> LedgerSession:
    registry = current_app.extensions[_SESSIONS_KEY]
    with registry["lock"]:
        session = registry["sessions"].get(key)
        if session is None:
            session = LedgerSession(
                key,
                registry["storage"],
                current_app.config["LEDGER_CONFIG"],
                year=current_app.config.get("LEDGER_YEAR"),
            )
            registry["sessions"][key] = session
            logger.info("Opened ledger session %s", key)
        return session


def close_sessions(app: Flask) -> None:
    """Flush every pending save; call on shutdown."""
    registry = app.extensions.get(_SESSIONS_KEY) or {}
    for session in list((registry.get("sessions") or {}).values()):
        session.close()


def _close_live_apps() -> None:
    for app in list(_LIVE_APPS):
        close_sessions(app)


def _flush_at_exit(app: Flask) -> None:
    global _shutdown_hook_installed
    _LIVE_APPS.add(app)
    if not _shutdown_hook_installed:
        atexit.register(_close_live_apps)
        _shutdown_hook_installed = True


def create_app(config_path: Optional[str] = None, test_config: Optional[Dict[str, Any]] = None) -> Flask:
    configure_logging()
    cfg = AppConfig.load(_resolve_config_path(config_path))

    app = Flask(__name__)
    app.config["SQLALCHEMY_DATABASE_URI"] = cfg.database_url
    app.config["LEDGER_CONFIG"] = cfg
    app.config["LEDGER_YEAR"] = dt.date.today().year
    if test_config:
        app.config.update(test_config)
        if "LEDGER_SAVE_DELAY" in test_config:
            cfg.save_delay = float(test_config["LEDGER_SAVE_DELAY"])

    init_db(app)
    app.extensions[_SESSIONS_KEY] = {
        "lock": threading.Lock(),
        "sessions": {},
        "storage": SqlStorage(app),
    }
    _flush_at_exit(app)

    @app.errorhandler(LedgerError)
    def handle_ledger_error(exc: LedgerError):
        return jsonify({"error": type(exc).__name__, "message": exc.message}), _status_for(exc)

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"error": exc.name, "message": exc.description}), exc.code

    # -- months --------------------------------------------------------------
    @app.route("/api/ledgers/<key>/months/<int:month>")
    def show_month(key: str, month: int):
        session = get_session(key)
        result = session.show_month(month)
        snapshot = session.snapshot(month)
        snapshot["materialized"] = [entry_to_dict(e) for e in result.created]
        snapshot["skipped"] = [
            {"template_id": s.template_id, "reason": type(s.reason).__name__, "message": s.reason.message}
            for s in result.skipped
        ]
        return jsonify(snapshot)

    @app.route("/api/ledgers/<key>/months/<int:month>/export.csv")
    def export_month(key: str, month: int):
        session = get_session(key)
        buffer = io.StringIO()
        export_month_csv(session.snapshot(month), buffer)
        return Response(
            buffer.getvalue(),
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename=ledger-month-{month + 1:02d}.csv"},
        )

    @app.route("/api/ledgers/<key>/annual")
    def annual(key: str):
        session = get_session(key)
        with session.lock:
            return jsonify(build_annual_report(session.ledger))

    # -- income --------------------------------------------------------------
    @app.route("/api/ledgers/<key>/months/<int:month>/income/<side>", methods=["POST"])
    def add_income(key: str, month: int, side: str):
        data = _payload()
        with get_session(key).editing() as store:
            entry = store.add_income(month, side, data.get("description", ""), data.get("amount", 0))
        return jsonify(entry_to_dict(entry)), 201

    @app.route("/api/ledgers/<key>/months/<int:month>/income/<side>/<int:entry_id>", methods=["PATCH", "DELETE"])
    def income_entry(key: str, month: int, side: str, entry_id: int):
        with get_session(key).editing() as store:
            if request.method == "DELETE":
                store.remove_income(month, side, entry_id)
                return "", 204
            entry = store.update_income(month, side, entry_id, _payload())
        return jsonify(entry_to_dict(entry))

    # -- expenses ------------------------------------------------------------
    @app.route("/api/ledgers/<key>/months/<int:month>/days/<int:day>/expenses/<side>", methods=["POST"])
    def add_expense(key: str, month: int, day: int, side: str):
        data = _payload()
        with get_session(key).editing() as store:
            entry = store.add_expense(
                month,
                day,
                side,
                description=data.get("description", ""),
                amount=data.get("amount", 0),
                category=data.get("category"),
                payment_method=data.get("payment_method") or "",
                card=data.get("card"),
            )
        return jsonify(entry_to_dict(entry)), 201

    @app.route(
        "/api/ledgers/<key>/months/<int:month>/days/<int:day>/expenses/<side>/<int:entry_id>",
        methods=["PATCH", "DELETE"],
    )
    def expense_entry(key: str, month: int, day: int, side: str, entry_id: int):
        with get_session(key).editing() as store:
            if request.method == "DELETE":
                store.remove_expense(month, day, side, entry_id)
                return "", 204
            entry = store.update_expense(month, day, side, entry_id, _payload())
        return jsonify(entry_to_dict(entry))

    # -- recurring templates -------------------------------------------------
    @app.route("/api/ledgers/<key>/templates", methods=["GET", "POST"])
    def templates(key: str):
        session = get_session(key)
        if request.method == "GET":
            with session.lock:
                return jsonify([template_to_dict(t) for t in session.ledger.templates])
        data = _payload()
        with session.editing() as store:
            template = store.add_template(
                data.get("description", ""),
                data.get("amount"),
                data.get("day_of_month", 1),
                data.get("kind"),
                category=data.get("category"),
                payment_method=data.get("payment_method"),
                card=data.get("card"),
            )
        return jsonify(template_to_dict(template)), 201

    @app.route("/api/ledgers/<key>/templates/<int:template_id>", methods=["DELETE"])
    def delete_template(key: str, template_id: int):
        session = get_session(key)
        scope = request.args.get("scope", "all")
        if scope == "all":
            from_month = 0
        elif scope == "forward":
            from_month = request.args.get("from_month", type=int)
            if from_month is None:
                from_month = session.active_month or 0
        else:
            raise BadRequest("scope must be 'all' or 'forward'")
        with session.editing() as store:
            store.remove_template(template_id, from_month)
        return "", 204

    # -- categories ----------------------------------------------------------
    @app.route("/api/ledgers/<key>/categories", methods=["GET", "POST"])
    def categories(key: str):
        session = get_session(key)
        if request.method == "GET":
            with session.lock:
                return jsonify([_category_to_dict(c) for c in session.ledger.categories])
        data = _payload()
        with session.editing() as store:
            cat = store.add_category(data.get("name", ""), data.get("budget", 0))
        return jsonify(_category_to_dict(cat)), 201

    @app.route("/api/ledgers/<key>/categories/<name>", methods=["PATCH", "DELETE"])
    def category(key: str, name: str):
        data = {} if request.method == "DELETE" else _payload()
        if request.method == "PATCH" and "name" not in data and "budget" not in data:
            raise BadRequest("Nothing to update")
        with get_session(key).editing() as store:
            if request.method == "DELETE":
                store.remove_category(name)
                return "", 204
            if "name" in data:
                cat = store.rename_category(name, data["name"])
                name = cat.name
            if "budget" in data:
                cat = store.set_budget(name, data["budget"])
        return jsonify(_category_to_dict(cat))

    # -- cards ---------------------------------------------------------------
    @app.route("/api/ledgers/<key>/cards", methods=["GET", "POST"])
    def cards(key: str):
        session = get_session(key)
        if request.method == "GET":
            with session.lock:
                return jsonify(list(session.ledger.cards))
        data = _payload()
        with session.editing() as store:
            name = store.add_card(data.get("name", ""))
        return jsonify({"name": name}), 201

    @app.route("/api/ledgers/<key>/cards/<name>", methods=["DELETE"])
    def delete_card(key: str, name: str):
        with get_session(key).editing() as store:
            store.remove_card(name)
        return "", 204

    # -- persistence ---------------------------------------------------------
    @app.route("/api/ledgers/<key>/flush", methods=["POST"])
    def flush(key: str):
        ok = get_session(key).save()
        return jsonify({"saved": ok}), (200 if ok else 503)

    return app


def _resolve_config_path(config_path: Optional[str]) -> Optional[Path]:
    if not config_path:
        return None
    path = Path(config_path)
    if path.is_absolute():
        return path
    return PROJECT_ROOT / path


if __name__ == "__main__":
    create_app().run(debug=True)
