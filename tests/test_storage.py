import json

from flask import Flask

from finance_ledger.db import LedgerDocument, SqlStorage, db, init_db
from finance_ledger.normalizer import normalize, to_document
from finance_ledger.storage import JsonFileStorage


def test_json_storage_missing_file(tmp_path):
    assert JsonFileStorage(tmp_path).load("alice") is None


def test_json_storage_round_trip(tmp_path):
    storage = JsonFileStorage(tmp_path / "ledgers")
    document = to_document(normalize(None))
    assert storage.save("alice", document) is True
    assert storage.load("alice") == json.loads(json.dumps(document))
    assert not list((tmp_path / "ledgers").glob("*.tmp"))


def test_json_storage_sanitizes_keys(tmp_path):
    storage = JsonFileStorage(tmp_path)
    assert storage.path_for("../etc/passwd").parent == tmp_path
    assert storage.path_for("").name == "default.json"


def test_json_storage_ignores_corrupt_documents(tmp_path):
    storage = JsonFileStorage(tmp_path)
    storage.path_for("bad").write_text("{not json", encoding="utf-8")
    storage.path_for("list").write_text("[1, 2]", encoding="utf-8")
    assert storage.load("bad") is None
    assert storage.load("list") is None


def test_json_storage_reports_unserializable_document(tmp_path):
    storage = JsonFileStorage(tmp_path)
    assert storage.save("alice", {"when": object()}) is False


def _app(tmp_path):
    app = Flask(__name__)
    app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{tmp_path / 'ledger.db'}"
    init_db(app)
    return app


def test_sql_storage_round_trip(tmp_path):
    app = _app(tmp_path)
    storage = SqlStorage(app)
    assert storage.load("alice") is None

    assert storage.save("alice", {"creditCards": ["Visa"]}) is True
    assert storage.save("alice", {"creditCards": ["Visa", "Master"]}) is True
    assert storage.load("alice") == {"creditCards": ["Visa", "Master"]}

    with app.app_context():
        assert db.session.execute(db.select(db.func.count(LedgerDocument.id))).scalar_one() == 1


def test_sql_storage_keeps_keys_apart(tmp_path):
    storage = SqlStorage(_app(tmp_path))
    storage.save("alice", {"profile": {"name": "Alice"}})
    storage.save("bob", {"profile": {"name": "Bob"}})
    assert storage.load("bob") == {"profile": {"name": "Bob"}}


def test_sql_storage_inside_existing_context(tmp_path):
    app = _app(tmp_path)
    storage = SqlStorage()
    with app.app_context():
        assert storage.save("alice", {"categories": []}) is True
        assert storage.load("alice") == {"categories": []}
