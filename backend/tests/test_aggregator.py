"""
Demandes sans devis: exclusion par id ou par numéro, dédoublonnage, tri, limite.
"""

import asyncio

from services.aggregator import RequestAggregator, clamp_limit, numero_sort_key


def _db_op(coro):
    """Run async DB operation in a fresh event loop."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _seed(db, collection, *docs):
    async def run():
        for doc in docs:
            await db[collection].insert_one(dict(doc))
    _db_op(run())


class TestHelpers:

    def test_clamp_limit(self):
        assert clamp_limit(None) == 500
        assert clamp_limit(0) == 1
        assert clamp_limit(-10) == 1
        assert clamp_limit(999999) == 5000
        assert clamp_limit(20) == 20

    def test_sort_key_ignores_case_and_accents(self):
        values = ["ddv2500003", "DDV2500001", "Ddv2500002"]
        assert sorted(values, key=numero_sort_key) == ["DDV2500001", "Ddv2500002", "ddv2500003"]


class TestListUnconverted:

    def test_excludes_request_linked_by_numero(self, db, registry, quotations):
        _seed(db, "devis_compression", {"id": "c1", "numero": "DDV2500001", "user_id": "u1"})
        _seed(db, "devis_traction", {"id": "t1", "numero": "DDV2500002", "user_id": "u1"})
        _seed(db, "devis_autre", {"id": "a1", "numero": "DDV2500003", "user_id": "u1"})
        _seed(db, "devis", {
            "id": "q1", "numero": "DV2025-000001",
            "demande_id": "zz", "demande_numero": "",
            "demandes": [{"id": "zz", "numero": "DDV2500002", "type": "traction"}],
        })

        data = _db_op(RequestAggregator(registry, quotations).list_unconverted())
        assert data == [
            {"id": "c1", "numero": "DDV2500001", "type": "compression"},
            {"id": "a1", "numero": "DDV2500003", "type": "autre"},
        ]

    def test_excludes_request_linked_by_id(self, db, registry, quotations):
        _seed(db, "devis_grille", {"id": "g1", "numero": "DDV2500004", "user_id": "u1"})
        _seed(db, "devis", {"id": "q1", "numero": "DV2025-000001", "demande_id": "g1", "demandes": []})

        assert _db_op(RequestAggregator(registry, quotations).list_unconverted()) == []

    def test_duplicate_numero_keeps_first_collection(self, db, registry, quotations):
        _seed(db, "devis_autre", {"id": "a1", "numero": "DDV2500005"})
        _seed(db, "devis_torsion", {"id": "t1", "numero": "DDV2500005"})

        data = _db_op(RequestAggregator(registry, quotations).list_unconverted())
        assert data == [{"id": "a1", "numero": "DDV2500005", "type": "autre"}]

    def test_blank_numero_is_excluded(self, db, registry, quotations):
        _seed(db, "devis_fil_dresse", {"id": "f1", "numero": "   "}, {"id": "f2"})
        assert _db_op(RequestAggregator(registry, quotations).list_unconverted()) == []

    def test_filter_is_case_insensitive_substring(self, db, registry, quotations):
        _seed(db, "devis_compression",
              {"id": "c1", "numero": "DDV2500010"},
              {"id": "c2", "numero": "DDV2500020"})

        data = _db_op(RequestAggregator(registry, quotations).list_unconverted(q="ddv250001"))
        assert [d["numero"] for d in data] == ["DDV2500010"]

    def test_filter_special_characters_are_literal(self, db, registry, quotations):
        _seed(db, "devis_compression", {"id": "c1", "numero": "DDV2500010"})
        assert _db_op(RequestAggregator(registry, quotations).list_unconverted(q=".*")) == []

    def test_sorted_and_limited(self, db, registry, quotations):
        _seed(db, "devis_torsion", {"id": "t3", "numero": "DDV2500003"})
        _seed(db, "devis_compression", {"id": "c1", "numero": "DDV2500001"})
        _seed(db, "devis_grille", {"id": "g2", "numero": "DDV2500002"})

        aggregator = RequestAggregator(registry, quotations)
        data = _db_op(aggregator.list_unconverted(limit=2))
        assert [d["numero"] for d in data] == ["DDV2500001", "DDV2500002"]

        data = _db_op(aggregator.list_unconverted(limit=0))
        assert [d["numero"] for d in data] == ["DDV2500001"]

    def test_type_is_collection_type(self, db, registry, quotations):
        _seed(db, "devis_fil_dresse", {"id": "f1", "numero": "DDV2500007"})
        data = _db_op(RequestAggregator(registry, quotations).list_unconverted())
        assert data[0]["type"] == "fil"

    def test_numero_match_ignores_case(self, db, registry, quotations):
        _seed(db, "devis_traction", {"id": "t1", "numero": "ddv2500002"})
        _seed(db, "devis_compression", {"id": "c1", "numero": "DDV2500008"})
        _seed(db, "devis", {
            "id": "q1", "numero": "DV2025-000001", "demande_id": "zz",
            "demandes": [{"id": "zz", "numero": "DDV2500002", "type": "traction"}],
        })

        data = _db_op(RequestAggregator(registry, quotations).list_unconverted())
        assert [d["id"] for d in data] == ["c1"]

        _, done_numeros = _db_op(quotations.converted_keys([], ["ddv2500002"]))
        assert done_numeros == {"DDV2500002"}
