import pytest
from fastapi.testclient import TestClient

import app
import db
from helpers import FakeDisplay, FakeLoop, FakeMediaElement
from player.engine import PlaybackEngine
from player.store import PlaybackStore


@pytest.fixture()
def media_root(tmp_path):
    """Isolate filesystem-coupled globals per test."""
    original_root = app.STATE.get("root")
    original_db_path = app.STATE.get("db_path")
    original_config = app.STATE.get("config")
    original_config_path = app.STATE.get("config_path")
    try:
        original_db_file = db.path()
    except RuntimeError:
        original_db_file = None
    root = tmp_path / "media"
    root.mkdir()
    app.STATE["root"] = root
    app.STATE["db_path"] = tmp_path / ".state" / "library.db"
    app.STATE["db_ready"] = False
    app.STATE["config"] = {}
    app.STATE["config_path"] = None
    try:
        yield root
    finally:
        if original_db_file is not None:
            db.configure(original_db_file)
        app.STATE["root"] = original_root
        app.STATE["db_path"] = original_db_path
        app.STATE["db_ready"] = False
        app.STATE["config"] = original_config
        app.STATE["config_path"] = original_config_path


@pytest.fixture()
def client(media_root):
    with TestClient(app.app) as test_client:
        yield test_client


@pytest.fixture()
def loop():
    return FakeLoop()


@pytest.fixture()
def element():
    return FakeMediaElement()


@pytest.fixture()
def display():
    return FakeDisplay()


@pytest.fixture()
def store(tmp_path):
    return PlaybackStore(tmp_path / "client" / "playback.json")


@pytest.fixture()
def engine(element, loop, store, display):
    eng = PlaybackEngine(element, loop, store=store, display=display)
    yield eng
    eng.teardown()
