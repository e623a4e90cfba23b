import pytest

from vyapaar.models import InventoryTransaction
from vyapaar.services.products_service import (
    create_product,
    delete_product,
    ean13_check_digit,
    generate_barcode,
    list_products,
    update_product,
)
from vyapaar.validation import ConflictError, ValidationError

from conftest import make_product


def test_opening_stock_is_logged_as_purchase(db_session, owner):
    p = create_product(owner.id, {"name": "Dal 1kg", "price_cents": 12000, "sku": "DAL-1"}, opening_stock=12)

    assert p.quantity_in_stock == 12
    tx = db_session.query(InventoryTransaction).filter_by(product_id=p.id).one()
    assert tx.type == "purchase"
    assert tx.quantity_delta == 12
    assert tx.note == "Opening stock"


def test_zero_opening_stock_writes_no_transaction(db_session, owner):
    create_product(owner.id, {"name": "Pen"})
    assert db_session.query(InventoryTransaction).count() == 0


def test_negative_opening_stock_is_rejected(db_session, owner):
    with pytest.raises(ValidationError):
        create_product(owner.id, {"name": "Pen"}, opening_stock=-1)


def test_sku_is_unique_per_owner(db_session, owner, other_owner, product):
    with pytest.raises(ConflictError):
        create_product(owner.id, {"name": "Other rice", "sku": "RICE-5"})

    theirs = create_product(other_owner.id, {"name": "Their rice", "sku": "RICE-5"})
    assert theirs.sku == "RICE-5"


def test_update_ignores_stock_and_checks_uniqueness(db_session, owner, product):
    make_product(db_session, owner.id, "Oil 1L", 2, sku="OIL-1")

    updated = update_product(owner.id, product.id, {"price_cents": 11000, "quantity_in_stock": 999})
    assert updated.price_cents == 11000
    assert updated.quantity_in_stock == 3

    with pytest.raises(ConflictError):
        update_product(owner.id, product.id, {"sku": "OIL-1"})


def test_low_stock_and_search(db_session, owner, product):
    make_product(db_session, owner.id, "Oil 1L", 20, min_stock_level=5, category="Grocery")
    make_product(db_session, owner.id, "Soap", 1, min_stock_level=4, category="Personal care")

    assert [p.name for p in list_products(owner.id, low_stock=True)] == ["Soap"]
    assert [p.name for p in list_products(owner.id, search="grocery")] == ["Oil 1L", "Rice 5kg"]
    assert [p.name for p in list_products(owner.id, search="rice-5")] == ["Rice 5kg"]


def test_delete_is_owner_scoped(db_session, owner, other_owner, product):
    assert delete_product(other_owner.id, product.id) is False
    assert delete_product(owner.id, product.id) is True
    assert list_products(owner.id) == []


@pytest.mark.parametrize(
    "body, digit",
    [("400638133393", "1"), ("590123412345", "7"), ("200000000000", "8")],
)
def test_ean13_check_digit(body, digit):
    assert ean13_check_digit(body) == digit


def test_generated_barcode_is_in_store_ean13(db_session, owner):
    code = generate_barcode(owner.id)

    assert len(code) == 13 and code.isdigit()
    assert code.startswith("2")
    assert ean13_check_digit(code[:12]) == code[12]
