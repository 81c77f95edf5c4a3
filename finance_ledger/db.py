"""SQLAlchemy persistence for ledger documents served by the web application."""

from __future__ import annotations

import datetime as dt
from contextlib import nullcontext
from typing import Any, Dict, Optional

from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.exc import SQLAlchemyError

from .logging_setup import get_logger

logger = get_logger("finance_ledger.db")

db = SQLAlchemy()


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class LedgerDocument(db.Model):
    __tablename__ = "ledger_documents"

    id = db.Column(db.Integer, primary_key=True)
    session_key = db.Column(db.String(128), unique=True, nullable=False, index=True)
    payload = db.Column(db.JSON, nullable=False)
    created_at = db.Column(db.DateTime, default=_utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)


class SqlStorage:
    """Storage collaborator backed by the ``ledger_documents`` table.

    When built with an ``app`` each call pushes that app's context, so saves
    issued from the debounce timer thread work outside a request.
    """

    def __init__(self, app: Optional[Flask] = None) -> None:
        self.app = app

    def _context(self):
        return self.app.app_context() if self.app is not None else nullcontext()

    def load(self, session_key: str) -> Optional[Dict[str, Any]]:
        with self._context():
            return self._load(session_key)

    def save(self, session_key: str, document: Dict[str, Any]) -> bool:
        with self._context():
            return self._save(session_key, document)

    def _load(self, session_key: str) -> Optional[Dict[str, Any]]:
        try:
            row = db.session.execute(
                db.select(LedgerDocument).filter_by(session_key=session_key)
            ).scalar_one_or_none()
        except SQLAlchemyError:
            logger.exception("Failed to load ledger %s", session_key)
            db.session.rollback()
            return None
        if row is None or not isinstance(row.payload, dict):
            return None
        return row.payload

    def _save(self, session_key: str, document: Dict[str, Any]) -> bool:
        try:
            row = db.session.execute(
                db.select(LedgerDocument).filter_by(session_key=session_key)
            ).scalar_one_or_none()
            if row is None:
                db.session.add(LedgerDocument(session_key=session_key, payload=document))
            else:
                row.payload = document
            db.session.commit()
        except SQLAlchemyError:
            logger.exception("Failed to save ledger %s", session_key)
            db.session.rollback()
            return False
        return True


def init_db(app: Flask) -> None:
    db.init_app(app)
    with app.app_context():
        db.create_all()
