"""
Catalog tests.

Verifies:
- Listing search, sorting and stock status buckets
- Code suggestion and duplicate code rejection
- Stock edits and deletions gated by the caller's capabilities
- Units sold over the last seven days
"""

from datetime import timedelta
from decimal import Decimal
from types import SimpleNamespace

import pytest

from kiosco.errors import DuplicateCode, NotFoundError, PermissionDeniedError
from kiosco.extensions import db
from kiosco.models import Product
from kiosco.pos.cart import Cart
from kiosco.pos.payments import PaymentSplitter
from kiosco.services import products_service, settlement_service
from kiosco.time_utils import utcnow


@pytest.mark.parametrize(
    "stock,min_stock,expected",
    [
        (0, 5, "none"),
        (3, 5, "low"),
        (5, 5, "low"),
        (10, 5, "medium"),
        (11, 5, "high"),
        (1, 0, "high"),
    ],
)
def test_stock_status(stock, min_stock, expected):
    assert products_service.stock_status(SimpleNamespace(stock=stock, min_stock=min_stock)) == expected


class TestListProducts:
    @pytest.fixture
    def catalog(self, make_product):
        return [
            make_product("0003", "Pelota", stock=20, min_stock=2, category="Artículos de Deporte"),
            make_product("0001", "agua", stock=0, min_stock=2, category="Bebida"),
            make_product("0002", "Alfajor", stock=3, min_stock=2, category="Comida"),
            make_product("0004", "Barra cereal", stock=2, min_stock=2, category="Comida"),
        ]

    def test_alphabetical_is_case_insensitive(self, catalog):
        result = products_service.list_products()

        assert [p["name"] for p in result["items"]] == ["agua", "Alfajor", "Barra cereal", "Pelota"]
        assert result["count"] == 4

    def test_category_sort_then_name(self, catalog):
        result = products_service.list_products(sort="category")

        assert [p["name"] for p in result["items"]] == ["Pelota", "agua", "Alfajor", "Barra cereal"]

    def test_stock_status_sort(self, catalog):
        result = products_service.list_products(sort="stock-status")

        assert [(p["name"], p["stock_status"]) for p in result["items"]] == [
            ("agua", "none"),
            ("Barra cereal", "low"),
            ("Alfajor", "medium"),
            ("Pelota", "high"),
        ]

    def test_search_matches_name_code_or_category(self, catalog):
        assert [p["name"] for p in products_service.list_products(search="BEBI")["items"]] == ["agua"]
        assert [p["name"] for p in products_service.list_products(search="0003")["items"]] == ["Pelota"]
        assert [p["name"] for p in products_service.list_products(search="alf")["items"]] == ["Alfajor"]

    def test_low_stock_ignores_search(self, catalog):
        result = products_service.list_products(search="pelota")

        assert {p["name"] for p in result["low_stock"]} == {"agua", "Barra cereal"}

    def test_unknown_sort(self, catalog):
        with pytest.raises(ValueError):
            products_service.list_products(sort="price")

    def test_sold_last_7_days(self, shift_ctx, make_product):
        agua = make_product("0001", "Agua", stock=10)

        cart = Cart()
        cart.add_to_cart(agua)
        cart.update_quantity(agua.id, 3)
        recent = settlement_service.settle_sale(cart, PaymentSplitter.from_mapping({"efectivo": "30"}), shift_ctx)

        cart.add_to_cart(db.session.get(Product, agua.id))
        old = settlement_service.settle_sale(cart, PaymentSplitter.from_mapping({"efectivo": "10"}), shift_ctx)
        old.created_at = utcnow() - timedelta(days=8)
        db.session.commit()

        row = products_service.list_products()["items"][0]
        assert recent.id != old.id
        assert row["sold_last_7_days"] == 3


class TestCatalogViews:
    def test_for_sale_excludes_inactive_and_empty(self, make_product):
        make_product("0001", "Agua", stock=5, category="Bebida")
        make_product("0002", "Coca", stock=0, category="Bebida")
        make_product("0003", "Sprite", stock=4, category="Bebida", active=False)
        make_product("0004", "Alfajor", stock=4, category="Comida")

        assert [p.name for p in products_service.list_for_sale()] == ["Agua", "Alfajor"]
        assert [p.name for p in products_service.list_for_sale(category="Bebida")] == ["Agua"]
        assert [p.name for p in products_service.list_for_sale(search="alfa")] == ["Alfajor"]

    def test_low_stock(self, make_product):
        make_product("0001", "Agua", stock=1, min_stock=3)
        make_product("0002", "Coca", stock=10, min_stock=3)

        assert [p.name for p in products_service.list_low_stock()] == ["Agua"]

    def test_categories_predefined_first(self, make_product):
        make_product("0001", "Grip", category="Accesorios")
        make_product("0002", "Agua", category="Bebida")

        assert products_service.list_categories() == ["Bebida", "Comida", "Artículos de Deporte", "Accesorios"]


class TestSuggestCode:
    def test_next_numeric_code_is_zero_padded(self, make_product):
        make_product("0007", "Agua")
        make_product("P-2", "Coca")

        assert products_service.suggest_code() == "0008"

    def test_fallback_without_numeric_codes(self, make_product):
        make_product("AGUA", "Agua")
        make_product("COCA", "Coca")

        assert products_service.suggest_code() == "P-3"

    def test_empty_catalog(self, db_session):
        assert products_service.suggest_code() == "P-1"


class TestWrites:
    def test_create(self, db_session):
        product = products_service.create_product(patch={
            "code": "0001", "name": "Agua", "price": Decimal("12.50"), "stock": 4,
        })

        assert product.id is not None
        assert product.active is True
        assert product.to_dict()["price"] == "12.50"

    def test_duplicate_code_on_create(self, make_product):
        make_product("0001", "Agua")

        with pytest.raises(DuplicateCode):
            products_service.create_product(patch={"code": "0001", "name": "Otra agua"})

    def test_duplicate_code_on_update(self, make_product, admin_auth):
        make_product("0001", "Agua")
        coca = make_product("0002", "Coca")

        with pytest.raises(DuplicateCode):
            products_service.update_product(coca.id, patch={"code": "0001"}, auth=admin_auth)

    def test_keeping_own_code_is_fine(self, make_product, cashier_auth):
        agua = make_product("0001", "Agua")
        updated = products_service.update_product(agua.id, patch={"code": "0001", "name": "Agua 1L"}, auth=cashier_auth)

        assert updated.name == "Agua 1L"

    def test_cashier_cannot_change_stock(self, make_product, cashier_auth):
        agua = make_product("0001", "Agua", stock=4)

        with pytest.raises(PermissionDeniedError):
            products_service.update_product(agua.id, patch={"stock": 10, "name": "Agua fría"}, auth=cashier_auth)

        db.session.expire_all()
        stored = db.session.get(Product, agua.id)
        assert stored.stock == 4
        assert stored.name == "Agua"

    def test_cashier_can_resend_unchanged_stock(self, make_product, cashier_auth):
        agua = make_product("0001", "Agua", stock=4)
        updated = products_service.update_product(agua.id, patch={"stock": 4, "price": Decimal("11")}, auth=cashier_auth)

        assert updated.price == Decimal("11")

    def test_admin_can_change_stock(self, make_product, admin_auth):
        agua = make_product("0001", "Agua", stock=4)
        updated = products_service.update_product(agua.id, patch={"stock": 0}, auth=admin_auth)

        assert updated.stock == 0

    def test_delete_requires_capability(self, make_product, cashier_auth, admin_auth):
        agua = make_product("0001", "Agua")

        with pytest.raises(PermissionDeniedError):
            products_service.delete_product(agua.id, auth=cashier_auth)

        products_service.delete_product(agua.id, auth=admin_auth)
        assert db.session.get(Product, agua.id) is None

    def test_delete_unknown(self, db_session, admin_auth):
        with pytest.raises(NotFoundError):
            products_service.delete_product(12345, auth=admin_auth)
