"""
tests/integration/test_users.py — Admin view of customer accounts.
"""

from __future__ import annotations

from .conftest import make_category, make_product, place_order


class TestListUsers:

    def test_admin_lists_users_without_password_hashes(self, admin, customer):
        body = admin.get("/api/users/").get_json()

        assert body["meta"]["total"] == 2
        emails = {u["email"] for u in body["data"]}
        assert emails == {"admin@test.com", "carol@test.com"}
        for user in body["data"]:
            assert "password" not in user
            assert "password_hash" not in user

    def test_customer_is_forbidden(self, customer):
        resp = customer.get("/api/users/")
        assert resp.status_code == 403
        assert resp.get_json()["code"] == "FORBIDDEN"

    def test_anonymous_is_unauthorized(self, client):
        assert client.get("/api/users/").status_code == 401

    def test_search(self, admin, customer):
        data = admin.get("/api/users/search?query=CAROL").get_json()["data"]
        assert [u["email"] for u in data] == ["carol@test.com"]


class TestUserOrders:

    def test_user_with_orders(self, admin, customer):
        category = make_category(admin)
        product = make_product(admin, category["id"], price="7.00")
        place_order(customer, [{"product_id": product["id"], "quantity": 2}])

        resp = admin.get(f"/api/users/{customer.user['id']}/orders")

        data = resp.get_json()["data"]
        assert resp.status_code == 200
        assert data["user"]["email"] == "carol@test.com"
        assert data["orders"]["count"] == 1
        assert data["orders"]["data"][0]["total_amount"] == "14.00"

    def test_unknown_user(self, admin):
        resp = admin.get("/api/users/31337/orders")
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "USER_NOT_FOUND"
