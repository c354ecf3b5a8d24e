"""HTTP tests for the storefront API."""

import inspect

import pytest

from storefront.api import deps
from storefront.main import app
from storefront.services.realtime import ChangeFeed

API = "/api/v1"
USER = {"X-User-Id": "user-1"}
GUEST = {"X-Guest-Id": "guest-1"}
ADMIN_HEADERS = {"X-Admin-Key": "test-admin-key"}


@pytest.fixture
def api(client, seeded):
    return client


class TestRoot:
    """Test service endpoints."""

    def test_root(self, api):
        body = api.get("/").json()
        assert body["status"] == "active"
        assert body["endpoints"]["cart"] == "/api/v1/cart"

    def test_health(self, api):
        assert api.get("/health").json()["status"] == "healthy"


class TestErrors:
    """Test the error body shared by every endpoint."""

    def test_unknown_route(self, api):
        response = api.get(f"{API}/nowhere")
        assert response.status_code == 404
        assert response.json()["message"] == "The requested resource was not found"

    def test_missing_product(self, api):
        response = api.get(f"{API}/products/nope")
        body = response.json()
        assert response.status_code == 404
        assert body["error"] == "Not Found"
        assert body["message"] == "Product nope not found"
        assert body["status_code"] == 404

    def test_sign_in_required(self, api):
        response = api.get(f"{API}/orders")
        assert response.status_code == 401
        assert response.json()["message"] == "Authentication required"

    def test_domain_errors_keep_their_status(self, api):
        response = api.post(f"{API}/cart/items", json={"productId": "p-polo", "quantity": 3}, headers=GUEST)
        assert response.status_code == 201
        response = api.post(f"{API}/cart/items", json={"productId": "p-polo", "quantity": 1}, headers=GUEST)
        assert response.status_code == 409
        assert response.json()["error"] == "Stock Limit Reached"

    def test_cart_needs_an_identity(self, api):
        response = api.get(f"{API}/cart")
        assert response.status_code == 401
        assert response.json()["error"] == "Authentication Required"

    def test_admin_key_required(self, api):
        assert api.get(f"{API}/coupons").status_code == 403
        assert api.get(f"{API}/coupons", headers={"X-Admin-Key": "wrong"}).status_code == 403
        assert api.get(f"{API}/coupons", headers=ADMIN_HEADERS).status_code == 200


class TestCatalog:
    """Test browsing endpoints."""

    def test_product_list_envelope(self, api):
        body = api.get(f"{API}/products", params={"category_id": "electronics", "sort_by": "price-asc"}).json()
        assert body["success"]
        assert body["total"] == 2
        assert [p["id"] for p in body["data"]] == ["p-speaker", "p-phones"]
        assert body["data"][1]["salePrice"] == 150.0
        assert "sale_price" not in body["data"][1]

    def test_invalid_trending_timeframe(self, api):
        assert api.get(f"{API}/products/trending", params={"timeframe": "year"}).status_code == 422

    def test_deal_of_the_day(self, api):
        deal = api.get(f"{API}/products/deal-of-the-day").json()["data"]
        assert deal["id"] == "p-tee"
        assert deal["discountPercentage"] == 33

    def test_record_view(self, api):
        body = api.post(f"{API}/products/p-polo/view", headers=USER).json()
        assert body["message"] == "View recorded"
        viewed = api.get(f"{API}/products/recently-viewed", headers=USER).json()["data"]
        assert [p["id"] for p in viewed] == ["p-polo"]

    def test_categories(self, api):
        assert [c["id"] for c in api.get(f"{API}/categories").json()["data"]] == ["electronics", "t-shirts"]


class TestSearch:
    """Test search endpoints."""

    def test_search_with_chips(self, api):
        body = api.get(f"{API}/search", params={"filters": ["audio", "red"]}).json()
        assert [p["id"] for p in body["data"]["products"]] == ["p-speaker"]
        assert body["total"] == 1

    def test_invalid_price_range(self, api):
        response = api.get(f"{API}/search", params={"min_price": 50, "max_price": 10})
        assert response.status_code == 400
        assert response.json()["message"].startswith("Invalid search filters")

    def test_history_for_users_and_guests(self, api):
        api.get(f"{API}/search", params={"q": "Tee"}, headers=USER)
        api.get(f"{API}/search", params={"q": "Polo"}, headers=GUEST)
        assert [h["query"] for h in api.get(f"{API}/search/history", headers=USER).json()["data"]] == ["tee"]
        assert api.get(f"{API}/search/history", headers=GUEST).json()["data"] == ["polo"]
        assert api.get(f"{API}/search/history").status_code == 401

        body = api.delete(f"{API}/search/history", headers=USER).json()
        assert body["data"] == {"removed": 1}
        assert api.get(f"{API}/search/popular").json()["data"] == ["polo", "tee"]


class TestCartAndCheckout:
    """Test a customer journey from guest cart to paid order."""

    def test_guest_cart_summary(self, api):
        api.post(f"{API}/cart/items", json={"productId": "p-tee", "quantity": 2, "color": "White"}, headers=GUEST)
        body = api.get(f"{API}/cart", params={"coupon_code": "discount10"}, headers=GUEST).json()
        assert body["data"]["items"][0]["productId"] == "p-tee"
        summary = body["data"]["summary"]
        assert (summary["subtotal"], summary["discount"], summary["shipping"], summary["total"]) == (40, 4, 10, 46)

    def test_merge_then_checkout(self, api, feed):
        api.post(f"{API}/cart/items", json={"productId": "p-tee", "quantity": 1}, headers=GUEST)
        merged = api.post(f"{API}/cart/merge", headers={**USER, **GUEST}).json()
        assert merged["message"] == "Guest cart merged"
        assert api.get(f"{API}/cart", headers=GUEST).json()["data"]["items"] == []

        response = api.post(
            f"{API}/checkout", json={"shippingAddressId": "addr-1", "paymentMethod": "cod"}, headers=USER
        )
        assert response.status_code == 201
        order = response.json()["data"]
        assert order["status"] == "pending"
        assert order["total"] == 30.0
        assert "orders" in feed.tables()

        tracking = api.get(f"{API}/orders/{order['id']}/tracking", headers=USER).json()["data"]
        assert tracking["steps"][0]["label"] == "Order Placed"

        cancelled = api.post(f"{API}/orders/{order['id']}/cancel", json={"reason": "Oops"}, headers=USER).json()
        assert cancelled["data"]["status"] == "cancelled"

    def test_merge_needs_guest_header(self, api):
        assert api.post(f"{API}/cart/merge", headers=USER).status_code == 400

    def test_checkout_empty_cart(self, api):
        response = api.post(
            f"{API}/checkout", json={"shippingAddressId": "addr-1", "paymentMethod": "cod"}, headers=USER
        )
        assert response.status_code == 400

    def test_shop_admin_ships_order(self, api):
        api.post(f"{API}/cart/items", json={"productId": "p-tee"}, headers=USER)
        order = api.post(
            f"{API}/checkout", json={"shippingAddressId": "addr-1", "paymentMethod": "cod"}, headers=USER
        ).json()["data"]
        owner = {"X-User-Id": "owner-a"}
        response = api.patch(f"{API}/orders/{order['id']}/status", json={"status": "processing"}, headers=owner)
        assert response.json()["data"]["status"] == "processing"
        assert len(api.get(f"{API}/shops/shop-a/orders", headers=owner).json()["data"]) == 1


class TestWishlist:
    """Test wishlist endpoints."""

    def test_add_twice_then_move_to_cart(self, api):
        assert api.post(f"{API}/wishlist", json={"productId": "p-polo"}, headers=USER).json()["data"]["created"]
        again = api.post(f"{API}/wishlist", json={"productId": "p-polo"}, headers=USER).json()
        assert again["message"] == "Already in wishlist"
        assert api.get(f"{API}/wishlist/p-polo", headers=USER).json()["data"]["inWishlist"]

        lines = api.post(f"{API}/wishlist/p-polo/move-to-cart", headers=USER).json()["data"]
        assert [line["productId"] for line in lines] == ["p-polo"]
        assert api.get(f"{API}/wishlist", headers=USER).json()["total"] == 0

    def test_remove_missing(self, api):
        assert api.delete(f"{API}/wishlist/p-tee", headers=USER).status_code == 404


class TestShopsAndAdmin:
    """Test shop management and platform endpoints."""

    def test_shop_lifecycle(self, api):
        created = api.post(f"{API}/shops", json={"name": "Paper Lane"}, headers={"X-User-Id": "user-7"})
        assert created.status_code == 201
        shop_id = created.json()["data"]["id"]
        pending = api.get(f"{API}/shops", params={"status": "pending"}).json()["data"]
        assert [s["id"] for s in pending] == [shop_id]

        approved = api.patch(f"{API}/shops/{shop_id}/status", json={"status": "active"}, headers=ADMIN_HEADERS)
        assert approved.json()["data"]["status"] == "active"

    def test_follow(self, api):
        followed = api.post(f"{API}/shops/shop-a/follow", headers=USER).json()["data"]
        assert followed["isFollowing"]
        state = api.get(f"{API}/shops/shop-a/follow", headers=USER).json()["data"]
        assert state["followersCount"] == 1

    def test_create_coupon_and_validate(self, api):
        response = api.post(f"{API}/coupons", json={
            "code": "SAVE5", "discountAmount": 5,
            "startDate": "2020-01-01T00:00:00", "endDate": "2099-01-01T00:00:00",
        }, headers=ADMIN_HEADERS)
        assert response.status_code == 201
        body = api.get(f"{API}/coupons/save5/validate", params={"subtotal": 40}).json()
        assert body["data"]["discount"] == 5
        assert api.get(f"{API}/coupons/bogus/validate", params={"subtotal": 40}).status_code == 400

    def test_partner_request_review(self, api):
        created = api.post(f"{API}/partner-requests", json={
            "businessName": "Cotton Co", "contactName": "Ravi",
            "mobileNumber": "+91 98765 43210", "email": "ravi@cotton.example.com",
        })
        assert created.status_code == 201
        request_id = created.json()["data"]["id"]
        assert api.get(f"{API}/partner-requests").status_code == 403
        listed = api.get(f"{API}/partner-requests", params={"status": "pending"}, headers=ADMIN_HEADERS)
        assert [r["id"] for r in listed.json()["data"]] == [request_id]
        updated = api.patch(f"{API}/partner-requests/{request_id}", json={"status": "approved"}, headers=ADMIN_HEADERS)
        assert updated.json()["data"]["status"] == "approved"

    def test_notifications(self, api):
        assert api.get(f"{API}/notifications").status_code == 401
        created = api.post(f"{API}/notifications", json={
            "userId": "user-1", "title": "Hi", "message": "Welcome",
        }, headers=ADMIN_HEADERS)
        assert created.status_code == 201
        body = api.get(f"{API}/notifications", headers=USER).json()["data"]
        assert body["unreadCount"] == 1
        assert api.post(f"{API}/notifications/read-all", headers=USER).json()["data"] == {"updated": 1}

    def test_signed_in_users_get_profiles(self, api):
        api.get(f"{API}/cart", headers=USER)
        api.get(f"{API}/cart", headers=USER)
        api.get(f"{API}/cart", headers={"X-User-Id": "user-2"})
        api.get(f"{API}/cart", headers=GUEST)
        dashboard = api.get(f"{API}/analytics/dashboard", headers=ADMIN_HEADERS).json()["data"]
        assert dashboard["totalUsers"] == 2

        updated = api.put(f"{API}/profile", json={"fullName": "Asha Rao"}, headers=USER)
        assert updated.json()["data"]["fullName"] == "Asha Rao"
        assert api.put(f"{API}/profile", json={"phone": "12"}, headers=USER).status_code == 422
        api.post(f"{API}/shops/shop-a/follow", headers=USER)
        followers = api.get(f"{API}/shops/shop-a/followers").json()["data"]
        assert [(f["userId"], f["fullName"]) for f in followers] == [("user-1", "Asha Rao")]

    def test_dashboard_requires_admin(self, api):
        assert api.get(f"{API}/analytics/dashboard").status_code == 403
        body = api.get(f"{API}/analytics/dashboard", headers=ADMIN_HEADERS).json()["data"]
        assert body["totalShops"] == 2
        assert len(body["monthlySalesData"]) == 6


class TestChangeStream:
    """Test the WebSocket change feed."""

    def test_events_for_the_subscriber(self, api):
        live = ChangeFeed()
        app.dependency_overrides[deps.get_change_feed] = lambda: live
        with api.websocket_connect(f"{API}/ws/changes?userId=user-1&tables=orders") as ws:
            live.publish("cart_items", "update", user_id="user-1")
            live.publish("orders", "update", user_id="user-2", record_id="o-2")
            live.publish("orders", "insert", user_id="user-1", record_id="o-1")
            message = ws.receive_json()
        assert message["table"] == "orders"
        assert message["recordId"] == "o-1"
        assert message["userId"] == "user-1"


class TestRouteHandlers:
    """Test how request handlers are scheduled."""

    def test_http_handlers_run_in_the_threadpool(self):
        from fastapi.routing import APIRoute

        handlers = [route for route in app.routes if isinstance(route, APIRoute) and route.path.startswith(API)]
        assert handlers
        blocking_on_loop = [route.path for route in handlers if inspect.iscoroutinefunction(route.endpoint)]
        assert blocking_on_loop == []
