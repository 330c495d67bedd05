"""
Construction des lignes: demande d'origine de chaque ligne, résolution article,
refus si demandes de clients différents.
"""

import asyncio

import pytest

from config import to_num
from models.devis import LineDescriptor
from services.directory import ArticleResolver
from services.errors import ValidationError, NotFoundError, ConflictError
from services.line_builder import LineBuilder, resolve_line_origin

ID_10 = "0f8fad5b-d9cb-469f-a165-70867728950e"
ID_11 = "7c9e6679-7425-40de-944b-e07fc1f90ae7"
ID_OTHER = "16fd2706-8baf-433b-82eb-8c7fada847da"


def _db_op(coro):
    """Run async DB operation in a fresh event loop."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@pytest.fixture
def builder(db, registry):
    async def seed():
        await db.devis_compression.insert_one({"id": ID_10, "numero": "DDV2500010", "user_id": "u1"})
        await db.devis_traction.insert_one({"id": ID_11, "numero": "DDV2500011", "user_id": "u1"})
        await db.devis_autre.insert_one({"id": ID_OTHER, "numero": "DDV2500012", "user_id": "u2"})
        await db.articles.insert_one({"id": "a1", "reference": "RC-01", "designation": "Ressort", "prix_ht": 12.5})
        await db.articles.insert_one({"id": "a2", "reference": "FD-02", "name": "Fil dressé", "price_ht": "7"})
    _db_op(seed())
    return LineBuilder(registry, ArticleResolver(db))


class TestResolveLineOrigin:
    numero_by_id = {ID_10: "DDV2500010", ID_11: "DDV2500011"}

    def test_identity_found(self):
        line = LineDescriptor(demande_id=ID_11, demande_numero="DDV2500010")
        assert resolve_line_origin(line, self.numero_by_id, "DDV2500010") == "DDV2500011"

    def test_numero_in_demande_id(self):
        line = LineDescriptor(demande_id="ddv2500011")
        assert resolve_line_origin(line, self.numero_by_id, "DDV2500010") == "DDV2500011"

    def test_explicit_numero(self):
        line = LineDescriptor(demande_numero=" ddv2500011 ")
        assert resolve_line_origin(line, self.numero_by_id, "DDV2500010") == "DDV2500011"

    def test_unknown_identity_falls_through_to_numero(self):
        line = LineDescriptor(demande_id=ID_OTHER, demande_numero="DDV2500011")
        assert resolve_line_origin(line, self.numero_by_id, "DDV2500010") == "DDV2500011"

    def test_fallback_first_request(self):
        line = LineDescriptor(article_id="a1")
        assert resolve_line_origin(line, self.numero_by_id, "DDV2500010") == "DDV2500010"


class TestBuild:

    def test_lines_keep_their_own_origin(self, builder):
        built = _db_op(builder.build([ID_10, ID_11], [
            LineDescriptor(demande_id=ID_10, article_id="a1", qty=3),
            LineDescriptor(demande_numero="ddv2500011", article_id="a2", qty=1),
            LineDescriptor(article_id="a1", qty=2),
        ]))

        assert [i["demande_numero"] for i in built.items] == ["DDV2500010", "DDV2500011", "DDV2500010"]
        assert built.items[0]["puht"] == 12.5
        assert built.items[0]["total_ht"] == 37.5
        assert built.items[1]["designation"] == "Fil dressé"
        assert built.items[1]["puht"] == 7.0
        assert built.owner_id == "u1"
        assert [d["numero"] for _, d in built.demandes] == ["DDV2500010", "DDV2500011"]
        assert [t for t, _ in built.demandes] == ["compression", "traction"]

    def test_default_tva_and_decimal_comma(self, builder):
        built = _db_op(builder.build([ID_10], [
            LineDescriptor(article_id="a1", qty="1,5", remise_pct="10"),
        ]))
        item = built.items[0]
        assert item["quantite"] == 1.5
        assert item["remise_pct"] == 10.0
        assert item["tva_pct"] == 19.0

    def test_zero_quantity_defaults_to_one(self, builder):
        built = _db_op(builder.build([ID_10], [LineDescriptor(article_id="a1", qty=0)]))
        assert built.items[0]["quantite"] == 1.0

    def test_percentages_clamped(self, builder):
        built = _db_op(builder.build([ID_10], [
            LineDescriptor(article_id="a1", remise_pct=120, tva_pct=-1),
        ]))
        assert built.items[0]["remise_pct"] == 100.0
        assert built.items[0]["tva_pct"] == 0.0

    def test_invalid_quantity(self, builder):
        with pytest.raises(ValidationError):
            _db_op(builder.build([ID_10], [LineDescriptor(article_id="a1", qty="abc")]))

    def test_negative_quantity(self, builder):
        with pytest.raises(ValidationError):
            _db_op(builder.build([ID_10], [LineDescriptor(article_id="a1", qty=-2)]))

    def test_clients_must_match(self, builder):
        with pytest.raises(ConflictError):
            _db_op(builder.build([ID_10, ID_OTHER], [LineDescriptor(article_id="a1")]))

    def test_missing_request(self, builder):
        with pytest.raises(NotFoundError) as exc:
            _db_op(builder.build([ID_10, "nope"], [LineDescriptor(article_id="a1")]))
        assert "nope" in exc.value.message

    def test_missing_article(self, builder):
        with pytest.raises(NotFoundError):
            _db_op(builder.build([ID_10], [LineDescriptor(article_id="zz")]))

    def test_line_without_article(self, builder):
        with pytest.raises(ValidationError):
            _db_op(builder.build([ID_10], [LineDescriptor(demande_id=ID_10)]))

    def test_empty_inputs(self, builder):
        with pytest.raises(ValidationError):
            _db_op(builder.build([], [LineDescriptor(article_id="a1")]))
        with pytest.raises(ValidationError):
            _db_op(builder.build([ID_10], []))

    def test_non_finite_quantity_rejected(self, builder):
        for value in ("nan", "inf", "-inf", "1e400", float("nan")):
            with pytest.raises(ValidationError):
                _db_op(builder.build([ID_10], [LineDescriptor(article_id="a1", qty=value)]))

    def test_non_finite_percentage_rejected(self, builder):
        with pytest.raises(ValidationError):
            _db_op(builder.build([ID_10], [LineDescriptor(article_id="a1", remise_pct="nan")]))
        with pytest.raises(ValidationError):
            _db_op(builder.build([ID_10], [LineDescriptor(article_id="a1", tva_pct="inf")]))

    def test_repeated_request_id_loaded_once(self, builder):
        built = _db_op(builder.build([ID_10, ID_11, ID_10], [LineDescriptor(article_id="a1")]))
        assert [d["id"] for _, d in built.demandes] == [ID_10, ID_11]


class TestToNum:

    def test_decimal_comma_and_blank(self):
        assert to_num("12,5") == 12.5
        assert to_num(" ") == 0.0
        assert to_num(None) == 0.0

    def test_non_finite(self):
        for value in ("nan", "inf", "1e400", float("inf")):
            with pytest.raises(ValueError):
                to_num(value)
