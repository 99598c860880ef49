from datetime import timedelta

import jwt

from store_pos.utils.helpers import utcnow


def test_missing_token_is_unauthorized(client):
    response = client.get("/v1/subscriptions/status")

    assert response.status_code == 401


def test_expired_token_is_unauthorized(client, app):
    token = jwt.encode(
        {"user_id": "u1", "store_id": "s1", "role": "Manager", "exp": 1},
        app.config["SECRET_KEY"],
        algorithm="HS256",
    )

    response = client.get("/v1/subscriptions/status", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


def test_active_subscription_passes(client, auth_headers, make_store):
    make_store("s1", days_left=3)

    response = client.get("/v1/subscriptions/status", headers=auth_headers())

    assert response.status_code == 200
    assert response.get_json()["data"]["is_active"] is True


def test_expired_subscription_is_rejected_with_distinct_code(client, auth_headers, fake_db, make_store):
    store = make_store("s1", days_left=-1)

    response = client.get("/v1/products", headers=auth_headers())

    body = response.get_json()
    assert response.status_code == 403
    assert body["code"] == "SUBSCRIPTION_EXPIRED"
    assert body["subscription_end_date"] == store["subscription_end_date"].isoformat()
    # the check itself latches the store inactive
    assert fake_db["stores"].find_one({"store_id": "s1"})["is_active"] is False


def test_inactive_store_is_rejected_even_before_end_date(client, auth_headers, make_store):
    make_store("s1", days_left=30, is_active=False)

    response = client.get("/v1/products", headers=auth_headers())

    assert response.status_code == 403
    assert response.get_json()["code"] == "SUBSCRIPTION_EXPIRED"


def test_admin_skips_subscription_check(client, auth_headers, make_store):
    make_store("s1", days_left=-1)

    response = client.get("/v1/products?store_id=s1", headers=auth_headers(role="Admin"))

    assert response.status_code == 200


def test_failed_check_does_not_block_request(client, auth_headers):
    # no store document at all: the lookup fails, the request goes through
    response = client.get("/v1/products", headers=auth_headers(store_id="ghost"))

    assert response.status_code == 200
    assert response.get_json()["data"]["total_count"] == 0


def test_renewed_store_stays_blocked_until_reactivated(client, auth_headers, fake_db, make_store):
    make_store("s1", days_left=-1)
    assert client.get("/v1/products", headers=auth_headers()).status_code == 403

    fake_db["stores"].update_one(
        {"store_id": "s1"},
        {"$set": {"subscription_end_date": utcnow() + timedelta(days=30)}},
    )
    assert client.get("/v1/products", headers=auth_headers()).status_code == 403

    client.post(
        "/v1/admin/stores/s1/reactivate",
        json={},
        headers=auth_headers(role="Admin", store_id=None),
    )
    assert client.get("/v1/products", headers=auth_headers()).status_code == 200


def test_store_user_is_pinned_to_own_store(client, auth_headers, services, make_store):
    make_store("s1")
    services.products.create_product("s2", {"name": "Other", "barcode": "X1", "cost_price": 1, "price": 1})

    response = client.get("/v1/products?store_id=s2", headers=auth_headers(store_id="s1"))

    assert response.get_json()["data"]["total_count"] == 0


def test_paused_store_message_differs_from_expiry(client, auth_headers, make_store):
    make_store("paused", days_left=30, is_active=False)
    make_store("lapsed", days_left=-1)

    paused = client.get("/v1/products", headers=auth_headers(store_id="paused")).get_json()
    lapsed = client.get("/v1/products", headers=auth_headers(store_id="lapsed")).get_json()

    assert paused["code"] == lapsed["code"] == "SUBSCRIPTION_EXPIRED"
    assert "inactive" in paused["message"]
    assert "expired" in lapsed["message"]
    assert paused["message"] != lapsed["message"]
