"""
Commandes client: confirmation idempotente d'une demande par son propriétaire.
"""

import asyncio

import pytest

from services.errors import NotFoundError, ValidationError
from services.orders import OrderService


def _db_op(coro):
    """Run async DB operation in a fresh event loop."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@pytest.fixture
def service(db, registry, outbox):
    _db_op(db.devis_torsion.insert_one({"id": "t1", "numero": "DDV2500030", "user_id": "u1"}))
    return OrderService(db, registry, outbox)


class TestPlaceOrder:

    def test_place_is_idempotent(self, db, service):
        async def run():
            first = await service.place("u1", "t1", "DV2025-000004")
            second = await service.place("u1", "t1", "DV2025-000004", note="urgent")
            return first, second

        first, second = _db_op(run())
        assert first["id"] == second["id"]
        assert second["note"] == "urgent"
        assert second["demande_numero"] == "DDV2500030"
        assert second["demande_type"] == "torsion"
        assert _db_op(db.client_orders.count_documents({})) == 1

    def test_other_client_refused(self, db, service):
        with pytest.raises(NotFoundError):
            _db_op(service.place("u2", "t1"))
        assert _db_op(db.client_orders.count_documents({})) == 0

    def test_missing_demande_id(self, service):
        with pytest.raises(ValidationError):
            _db_op(service.place("u1", ""))

    def test_enqueues_confirmation(self, db, service):
        order = _db_op(service.place("u1", "t1"))
        task = _db_op(db.outbox.find_one({"kind": "order_confirmed"}, {"_id": 0}))
        assert task["payload"] == {"order_id": order["id"]}


class TestStatusMap:

    def test_status_map(self, service):
        async def run():
            await service.place("u1", "t1")
            return await service.status_map("u1", ["t1", " x2 ", ""])

        assert _db_op(run()) == {"t1": True, "x2": False}
