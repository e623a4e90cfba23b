"""
CLI command tests (flask system / owners / analytics).
"""

from vyapaar.models import BusinessProfile, User

from conftest import PASSWORD


def test_create_owner_with_profile(app, db_session):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        "owners", "create",
        "--email", "cli@shop.test",
        "--password", PASSWORD,
        "--business", "CLI Kirana",
        "--timezone", "Asia/Kolkata",
    ])

    assert "PASS Created owner: cli@shop.test" in result.output
    user = db_session.query(User).filter_by(email="cli@shop.test").one()
    profile = db_session.query(BusinessProfile).filter_by(owner_id=user.id).one()
    assert profile.name == "CLI Kirana"
    assert profile.timezone == "Asia/Kolkata"


def test_create_owner_weak_password(app, db_session):
    result = app.test_cli_runner().invoke(args=["owners", "create", "--email", "weak@shop.test", "--password", "weak"])
    assert "FAIL Password validation failed" in result.output
    assert db_session.query(User).count() == 0


def test_list_owners(app, owner):
    result = app.test_cli_runner().invoke(args=["owners", "list"])
    assert "owner@sharma.test" in result.output
    assert "Sharma Stores" in result.output


def test_analytics_summary(app, client, owner, owner_headers):
    client.post(
        "/api/invoices",
        json={"customer": {"name": "Asha Traders"}, "lines": [{"name": "Chair", "quantity": 2, "unit_price": "100"}]},
        headers=owner_headers,
    )

    result = app.test_cli_runner().invoke(args=["analytics", "summary", "--email", "OWNER@sharma.test"])

    assert "Total revenue:    200.00 (1 documents)" in result.output
    assert "Asha Traders" in result.output
    assert "Chair" in result.output


def test_analytics_summary_unknown_owner(app, db_session):
    result = app.test_cli_runner().invoke(args=["analytics", "summary", "--email", "nobody@shop.test"])
    assert "FAIL Owner nobody@shop.test not found" in result.output
