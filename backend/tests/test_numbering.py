"""
Numérotation: compteurs atomiques par (famille, année) et formats lisibles.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from services.errors import StorageUnavailable, ValidationError
from services.numbering import (
    SequenceAllocator, NumberingService,
    FAMILY_DEMANDE, FAMILY_DEVIS, FAMILY_RECLAMATION,
    format_demande_number, format_devis_number, format_reclamation_number,
    is_demande_number, counter_key,
)


def _db_op(coro):
    """Run async DB operation in a fresh event loop."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


# ═══════════════════════════════════════════════════════════════
# 1. FORMATS
# ═══════════════════════════════════════════════════════════════

class TestFormats:

    def test_demande_number_padding(self):
        assert format_demande_number(2025, 7) == "DDV2500007"

    def test_demande_number_overflow_keeps_all_digits(self):
        assert format_demande_number(2025, 100000) == "DDV25100000"

    def test_devis_number(self):
        assert format_devis_number(2025, 123) == "DV2025-000123"

    def test_reclamation_number(self):
        assert format_reclamation_number(2026, 42) == "R2600042"

    def test_counter_key(self):
        assert counter_key(FAMILY_DEMANDE, 2025) == "devis:2025"

    def test_is_demande_number(self):
        assert is_demande_number("ddv2500010")
        assert not is_demande_number("a1b2")
        assert not is_demande_number(None)


# ═══════════════════════════════════════════════════════════════
# 2. ALLOCATION
# ═══════════════════════════════════════════════════════════════

class TestAllocation:

    def test_first_allocation_is_one(self, db):
        allocator = SequenceAllocator(db)
        assert _db_op(allocator.allocate(2025, FAMILY_DEMANDE)) == 1

    def test_sequential_allocations(self, db):
        allocator = SequenceAllocator(db)

        async def run():
            return [await allocator.allocate(2025, FAMILY_DEMANDE) for _ in range(100)]

        assert _db_op(run()) == list(range(1, 101))

    def test_concurrent_allocations_are_distinct(self, db):
        allocator = SequenceAllocator(db)

        async def run():
            return await asyncio.gather(*(allocator.allocate(2025, FAMILY_DEVIS) for _ in range(50)))

        values = _db_op(run())
        assert sorted(values) == list(range(1, 51))

    def test_families_and_years_are_independent(self, db):
        allocator = SequenceAllocator(db)

        async def run():
            await allocator.allocate(2025, FAMILY_DEMANDE)
            await allocator.allocate(2025, FAMILY_DEMANDE)
            return (
                await allocator.allocate(2025, FAMILY_DEVIS),
                await allocator.allocate(2026, FAMILY_DEMANDE),
                await allocator.allocate(2025, FAMILY_RECLAMATION),
            )

        assert _db_op(run()) == (1, 1, 1)

    def test_storage_error_maps_to_unavailable(self):
        fake_db = MagicMock()
        fake_db.counters.find_one_and_update = AsyncMock(
            side_effect=ServerSelectionTimeoutError("no primary")
        )
        allocator = SequenceAllocator(fake_db)
        with pytest.raises(StorageUnavailable):
            _db_op(allocator.allocate(2025, FAMILY_DEMANDE))


# ═══════════════════════════════════════════════════════════════
# 3. SERVICE
# ═══════════════════════════════════════════════════════════════

class TestNumberingService:

    def test_allocate_and_format(self, numbering):
        async def run():
            return [await numbering.allocate_and_format(FAMILY_DEMANDE, 2025) for _ in range(2)]

        assert _db_op(run()) == ["DDV2500001", "DDV2500002"]

    def test_unknown_family(self, numbering):
        with pytest.raises(ValidationError):
            _db_op(numbering.allocate_and_format("facture", 2025))

    def test_preview_does_not_allocate(self, numbering):
        async def run():
            first = await numbering.preview_next_quotation_number(2025)
            second = await numbering.preview_next_quotation_number(2025)
            allocated = await numbering.allocate_and_format(FAMILY_DEVIS, 2025)
            after = await numbering.preview_next_quotation_number(2025)
            return first, second, allocated, after

        first, second, allocated, after = _db_op(run())
        assert first == second == "DV2025-000001"
        assert allocated == "DV2025-000001"
        assert after == "DV2025-000002"
