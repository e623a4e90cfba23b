import pytest

from vyapaar.models import Customer
from vyapaar.services.customer_service import (
    CustomerSnapshot,
    create_customer,
    delete_customer,
    find_customer,
    list_customers,
    normalize_name,
    update_customer,
    upsert_customer,
)
from vyapaar.validation import ConflictError, ValidationError


@pytest.mark.parametrize("raw", ["Asha Traders", "  asha   traders ", "ASHA TRADERS", "Asha\tTraders"])
def test_names_normalize_to_one_key(raw):
    assert normalize_name(raw) == "asha traders"


def test_upsert_creates_then_only_touches_last_used(db_session, owner):
    first = upsert_customer(owner.id, CustomerSnapshot("Asha  Traders", phone="98450 11111"), commit=True)
    seen_at = first.last_used_at

    again = upsert_customer(owner.id, CustomerSnapshot("asha traders", phone="00000", email="a@x.test"), commit=True)

    assert again.id == first.id
    assert again.name == "Asha Traders"
    assert again.phone == "98450 11111"
    assert again.email is None
    assert again.last_used_at >= seen_at
    assert db_session.query(Customer).count() == 1


def test_upsert_requires_a_name(db_session, owner):
    with pytest.raises(ValidationError):
        upsert_customer(owner.id, CustomerSnapshot("   "))


def test_customers_are_per_owner(db_session, owner, other_owner):
    upsert_customer(owner.id, CustomerSnapshot("Ravi"), commit=True)
    upsert_customer(other_owner.id, CustomerSnapshot("Ravi"), commit=True)

    assert len(list_customers(owner.id)) == 1
    assert find_customer(other_owner.id, "ravi").owner_id == other_owner.id


def test_create_rejects_duplicate_names(db_session, owner):
    created = create_customer(owner.id, {"name": "Ravi Kumar", "phone": "12345"})
    assert created.last_used_at is None

    with pytest.raises(ConflictError):
        create_customer(owner.id, {"name": " ravi kumar"})


def test_update_renames_and_detects_collisions(db_session, owner):
    ravi = create_customer(owner.id, {"name": "Ravi"})
    create_customer(owner.id, {"name": "Asha"})

    updated = update_customer(owner.id, ravi.id, {"name": "Ravi  K", "email": " ravi@x.test "})
    assert updated.name_key == "ravi k"
    assert updated.email == "ravi@x.test"

    with pytest.raises(ConflictError):
        update_customer(owner.id, ravi.id, {"name": "ASHA"})


def test_search_and_delete(db_session, owner, other_owner):
    create_customer(owner.id, {"name": "Asha Traders", "email": "accounts@asha.test"})
    create_customer(owner.id, {"name": "Ravi", "phone": "98450 22222"})

    assert [c.name for c in list_customers(owner.id, search="ASHA")] == ["Asha Traders"]
    assert [c.name for c in list_customers(owner.id, search="22222")] == ["Ravi"]

    ravi = find_customer(owner.id, "Ravi")
    assert delete_customer(other_owner.id, ravi.id) is False
    assert delete_customer(owner.id, ravi.id) is True
    assert find_customer(owner.id, "Ravi") is None
