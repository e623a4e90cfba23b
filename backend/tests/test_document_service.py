import pytest

from vyapaar.models import Customer, Document, InventoryTransaction, Product
from vyapaar.services.document_service import (
    BILL,
    INVOICE,
    DeleteError,
    build_draft,
    delete_document,
    duplicate_document,
    get_document,
    list_documents,
    save_document,
)
from vyapaar.services.inventory_service import StockError
from vyapaar.services.products_service import delete_product
from vyapaar.services.profile_service import get_profile
from vyapaar.validation import ValidationError

from conftest import make_product


def invoice_payload(customer="Asha Traders", **overrides):
    payload = {
        "customer": {"name": customer, "phone": "98450 11111"},
        "lines": [
            {"name": "Chair", "quantity": 2, "unit_price": "100.00"},
            {"name": "Stool", "quantity": 1, "unit_price": "50"},
        ],
        "discount": {"enabled": True, "rate": "10"},
        "tax": {"enabled": True, "rate": "18"},
    }
    payload.update(overrides)
    return payload


def bill_payload(product, quantity, customer="Walk-in"):
    return {
        "customer": {"name": customer},
        "lines": [
            {"name": product.name, "quantity": quantity, "unit_price": "100", "product_id": product.id},
        ],
        "payment_method": "upi",
    }


def save(owner, document_type, payload):
    draft = build_draft(document_type, payload, profile=get_profile(owner.id))
    return save_document(owner.id, draft)


def test_save_invoice_computes_totals_and_snapshots(db_session, owner):
    doc = save(owner, INVOICE, invoice_payload(grand_total_cents=1))

    assert doc.document_number == "INV-00001"
    assert doc.subtotal_cents == 25000
    assert doc.discount_cents == 2500
    assert doc.taxable_cents == 22500
    assert doc.tax_cents == 4050
    assert doc.grand_total_cents == 26550
    assert doc.discount_rate_bps == 1000
    assert doc.tax_rate_bps == 1800
    assert doc.vendor["name"] == "Sharma Stores"
    assert doc.customer_name == "Asha Traders"
    assert [line.line_total_cents for line in doc.lines] == [20000, 5000]
    assert doc.payment_status is None


def test_numbers_are_sequential_per_owner_and_type(db_session, owner, other_owner, product):
    first = save(owner, INVOICE, invoice_payload())
    second = save(owner, INVOICE, invoice_payload())
    bill = save(owner, BILL, bill_payload(product, 1))
    theirs = save(other_owner, INVOICE, invoice_payload())

    assert first.document_number == "INV-00001"
    assert second.document_number == "INV-00002"
    assert bill.document_number == "BILL-00001"
    assert theirs.document_number == "INV-00001"


def test_incomplete_draft_is_rejected_without_writing(db_session, owner):
    draft = build_draft(INVOICE, {"customer": {"name": "  "}, "lines": []})

    with pytest.raises(ValidationError) as exc:
        save_document(owner.id, draft)

    assert {"vendor.name", "customer.name", "lines"} <= set(exc.value.details)
    assert db_session.query(Document).count() == 0
    assert db_session.query(Customer).count() == 0


@pytest.mark.parametrize(
    "line, key",
    [
        ({"name": "", "quantity": 1, "unit_price": "10"}, "lines[0].name"),
        ({"name": "Chair", "quantity": "abc", "unit_price": "10"}, "lines[0].quantity"),
        ({"name": "Chair", "quantity": "1.5", "unit_price": "10"}, "lines[0].quantity"),
        ({"name": "Chair", "quantity": 1, "unit_price": "ten"}, "lines[0].unit_price"),
    ],
)
def test_bad_line_items_are_reported_by_position(db_session, owner, line, key):
    with pytest.raises(ValidationError) as exc:
        save(owner, INVOICE, invoice_payload(lines=[line]))
    assert key in exc.value.details


def test_out_of_range_rate_is_rejected(db_session, owner):
    with pytest.raises(ValidationError) as exc:
        save(owner, INVOICE, invoice_payload(discount={"enabled": True, "rate": "150"}))
    assert "discount" in exc.value.details


def test_unknown_payment_method_is_rejected(db_session, owner, product):
    payload = bill_payload(product, 1)
    payload["payment_method"] = "cheque"
    with pytest.raises(ValidationError):
        save(owner, BILL, payload)


def test_bill_lines_must_reference_a_product(db_session, owner):
    payload = {"customer": {"name": "Walk-in"}, "lines": [{"name": "Loose item", "quantity": 1, "unit_price": "5"}]}
    with pytest.raises(ValidationError) as exc:
        save(owner, BILL, payload)
    assert "lines[0].product_id" in exc.value.details


def test_bill_for_another_owners_product_is_rejected(db_session, owner, other_owner):
    theirs = make_product(db_session, other_owner.id, "Verma Soap", 10)
    with pytest.raises(ValidationError):
        save(owner, BILL, bill_payload(theirs, 1))
    db_session.refresh(theirs)
    assert theirs.quantity_in_stock == 10


def test_save_bill_deducts_stock_and_logs_sale(db_session, owner, product):
    doc = save(owner, BILL, bill_payload(product, 2))

    db_session.refresh(product)
    assert product.quantity_in_stock == 1
    assert doc.payment_method == "upi"
    assert doc.payment_status == "paid"

    line = doc.lines[0]
    assert line.product_id == product.id
    assert line.category == "Grocery"
    assert line.unit_cost_cents == 5000

    txs = db_session.query(InventoryTransaction).all()
    assert len(txs) == 1
    assert txs[0].type == "sale"
    assert txs[0].quantity_delta == -2
    assert txs[0].quantity_after == 1
    assert txs[0].reference_type == "bill"
    assert txs[0].reference_id == str(doc.id)


def test_bill_exceeding_stock_writes_nothing(db_session, owner, product):
    payload = bill_payload(product, 5)
    draft = build_draft(BILL, payload, profile=get_profile(owner.id))
    before = draft.to_dict()

    with pytest.raises(StockError) as exc:
        save_document(owner.id, draft)

    assert exc.value.items == [
        {"product_id": product.id, "name": "Rice 5kg", "requested_quantity": 5, "in_stock": 3}
    ]
    assert draft.to_dict() == before
    assert db_session.query(Document).count() == 0
    assert db_session.query(InventoryTransaction).count() == 0
    assert db_session.query(Customer).count() == 0
    db_session.refresh(product)
    assert product.quantity_in_stock == 3


def test_stock_check_sums_lines_for_the_same_product(db_session, owner, product):
    payload = bill_payload(product, 2)
    payload["lines"].append({"name": product.name, "quantity": 2, "unit_price": "100", "product_id": product.id})

    with pytest.raises(StockError) as exc:
        save(owner, BILL, payload)

    assert exc.value.items[0]["requested_quantity"] == 4
    db_session.refresh(product)
    assert product.quantity_in_stock == 3


def test_stock_error_lists_every_short_product(db_session, owner, product):
    oil = make_product(db_session, owner.id, "Oil 1L", 1)
    payload = bill_payload(product, 4)
    payload["lines"].append({"name": oil.name, "quantity": 2, "unit_price": "150", "product_id": oil.id})

    with pytest.raises(StockError) as exc:
        save(owner, BILL, payload)

    assert {item["name"] for item in exc.value.items} == {"Rice 5kg", "Oil 1L"}


def test_repeat_customer_keeps_first_contact_details(db_session, owner):
    save(owner, INVOICE, invoice_payload(customer="Asha Traders"))
    payload = invoice_payload(customer="  asha   TRADERS ")
    payload["customer"]["phone"] = "11111 00000"
    second = save(owner, INVOICE, payload)

    customers = db_session.query(Customer).all()
    assert len(customers) == 1
    assert customers[0].phone == "98450 11111"
    assert second.customer_id == customers[0].id
    assert second.customer_phone == "11111 00000"


def test_delete_bill_leaves_stock_unless_restocked(db_session, owner, product):
    kept = save(owner, BILL, bill_payload(product, 1))
    restocked = save(owner, BILL, bill_payload(product, 2))
    db_session.refresh(product)
    assert product.quantity_in_stock == 0

    delete_document(owner.id, kept.id)
    db_session.refresh(product)
    assert product.quantity_in_stock == 0

    delete_document(owner.id, restocked.id, restock=True)
    db_session.refresh(product)
    assert product.quantity_in_stock == 2

    returns = db_session.query(InventoryTransaction).filter_by(type="return").all()
    assert [tx.quantity_delta for tx in returns] == [2]
    assert db_session.query(Document).count() == 0


def test_restock_skips_deleted_products(db_session, owner, product):
    doc = save(owner, BILL, bill_payload(product, 1))
    delete_product(owner.id, product.id)

    delete_document(owner.id, doc.id, restock=True)

    assert db_session.query(Document).count() == 0
    assert db_session.query(InventoryTransaction).filter_by(type="return").count() == 0


def test_delete_is_scoped_to_owner(db_session, owner, other_owner):
    doc = save(owner, INVOICE, invoice_payload())

    with pytest.raises(DeleteError):
        delete_document(other_owner.id, doc.id)
    with pytest.raises(DeleteError):
        delete_document(owner.id, doc.id + 100)

    assert get_document(owner.id, doc.id) is not None


def test_delete_with_wrong_type_is_not_found(db_session, owner):
    doc = save(owner, INVOICE, invoice_payload())
    with pytest.raises(DeleteError):
        delete_document(owner.id, doc.id, document_type=BILL)


def test_duplicate_makes_a_fresh_draft(db_session, owner):
    source = save(owner, INVOICE, invoice_payload())
    draft = duplicate_document(owner.id, source.id)

    assert draft.document_type == INVOICE
    assert draft.customer.name == "Asha Traders"
    assert [line.name for line in draft.lines] == ["Chair", "Stool"]
    assert [line.unit_price for line in draft.lines] == ["100.00", "50.00"]
    assert not {line.id for line in draft.lines} & {line.line_key for line in source.lines}
    assert draft.discount == {"enabled": True, "rate": "10"}

    copy = save_document(owner.id, draft)
    assert copy.document_number == "INV-00002"
    assert copy.grand_total_cents == source.grand_total_cents


def test_duplicate_of_missing_document_is_none(db_session, owner, other_owner):
    source = save(owner, INVOICE, invoice_payload())
    assert duplicate_document(other_owner.id, source.id) is None


def test_list_documents_filters_and_counts(db_session, owner, other_owner, product):
    save(owner, INVOICE, invoice_payload(customer="Asha Traders"))
    save(owner, INVOICE, invoice_payload(customer="Ravi Kumar"))
    save(owner, BILL, bill_payload(product, 1, customer="Asha Traders"))
    save(other_owner, INVOICE, invoice_payload(customer="Asha Traders"))

    rows, total = list_documents(owner.id)
    assert total == 3
    assert rows[0].document_number == "BILL-00001"

    rows, total = list_documents(owner.id, document_type="invoice")
    assert total == 2

    rows, total = list_documents(owner.id, search="asha")
    assert sorted(r.document_number for r in rows) == ["BILL-00001", "INV-00001"]

    rows, total = list_documents(owner.id, search="inv-00002")
    assert [r.customer_name for r in rows] == ["Ravi Kumar"]

    rows, total = list_documents(owner.id, limit=1)
    assert len(rows) == 1 and total == 3


def test_list_documents_rejects_bad_bounds(db_session, owner):
    with pytest.raises(ValidationError):
        list_documents(owner.id, start="yesterday")


def test_save_leaves_product_catalog_untouched_for_invoices(db_session, owner, product):
    payload = invoice_payload(lines=[{"name": "Rice 5kg", "quantity": 10, "unit_price": "100", "product_id": product.id}])
    save(owner, INVOICE, payload)

    assert db_session.get(Product, product.id).quantity_in_stock == 3
    assert db_session.query(InventoryTransaction).count() == 0


def test_sub_cent_prices_keep_subtotal_equal_to_lines(db_session, owner):
    doc = save(owner, INVOICE, invoice_payload(lines=[
        {"name": "Bolt", "quantity": 3, "unit_price": "0.333"},
        {"name": "Nut", "quantity": 7, "unit_price": "1.005"},
    ]))

    assert [line.unit_price_cents for line in doc.lines] == [33, 101]
    assert doc.subtotal_cents == sum(line.line_total_cents for line in doc.lines) == 806


def test_duplicate_reproduces_totals_with_fractional_rates(db_session, owner):
    source = save(owner, INVOICE, invoice_payload(
        discount={"enabled": True, "rate": "12.25"},
        tax={"enabled": True, "rate": "2.75"},
    ))
    copy = save_document(owner.id, duplicate_document(owner.id, source.id))

    assert copy.discount_rate_bps == source.discount_rate_bps == 1225
    assert copy.grand_total_cents == source.grand_total_cents


def test_rates_beyond_two_decimals_are_rejected(db_session, owner):
    with pytest.raises(ValidationError) as exc:
        save(owner, INVOICE, invoice_payload(tax={"enabled": True, "rate": "12.345"}))
    assert "tax" in exc.value.details
    assert db_session.query(Document).count() == 0
