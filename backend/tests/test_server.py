"""
Démarrage / arrêt de l'app: index MongoDB, scheduler de l'outbox.
"""

import asyncio
from unittest.mock import MagicMock

import pytest
from pymongo.errors import PyMongoError

import config
import scheduler_service
import server
from services.demandes import DEMANDE_COLLECTIONS


def _db_op(coro):
    """Run async DB operation in a fresh event loop."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


class _RecordingScheduler:
    events = []

    def __init__(self, db, mailer):
        self.db = db

    def start(self):
        self.events.append("start")

    def stop(self):
        self.events.append("stop")


@pytest.fixture
def wired(db, monkeypatch):
    _RecordingScheduler.events = []
    monkeypatch.setattr(config, "db", db)
    monkeypatch.setattr(config, "client", MagicMock())
    monkeypatch.setattr(scheduler_service, "TaskScheduler", _RecordingScheduler)
    monkeypatch.setattr(server, "scheduler", None)
    return db


class TestLifecycle:

    def test_startup_then_shutdown(self, wired):
        _db_op(server.startup())
        assert _RecordingScheduler.events == ["start"]
        assert server.scheduler.db is wired

        _db_op(server.shutdown())
        assert _RecordingScheduler.events == ["start", "stop"]
        config.client.close.assert_called_once()

    def test_request_numero_unique_in_every_collection(self, wired):
        _db_op(server.startup())

        for _, name in DEMANDE_COLLECTIONS:
            _db_op(wired[name].insert_one({"id": f"{name}-1", "numero": "DDV2500001"}))
            with pytest.raises(PyMongoError):
                _db_op(wired[name].insert_one({"id": f"{name}-2", "numero": "DDV2500001"}))

    def test_devis_numero_unique(self, wired):
        _db_op(server.startup())
        _db_op(wired.devis.insert_one({"id": "d1", "numero": "DV2025-000001"}))
        with pytest.raises(PyMongoError):
            _db_op(wired.devis.insert_one({"id": "d2", "numero": "DV2025-000001"}))
