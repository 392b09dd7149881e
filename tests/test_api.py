from datetime import datetime, timedelta, timezone
from decimal import Decimal

from spiral.services import rbac


def _register(client, username="alice", email=None):
    return client.post(
        "/auth/register",
        json={
            "first_name": "Alice",
            "last_name": "Liddell",
            "email": email or f"{username}@example.com",
            "username": username,
            "password": "correct horse",
        },
    )


def _login(client, username="alice"):
    resp = client.post("/auth/login", json={"username": username, "password": "correct horse"})
    assert resp.status_code == 200
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def test_ping(client):
    assert client.get("/ping").json() == {"ok": True}


def test_register_login_me(client):
    resp = _register(client)
    assert resp.status_code == 201

    me = client.get("/auth/me", headers=_login(client))

    assert me.status_code == 200
    body = me.json()
    assert body["email"] == "alice@example.com"
    assert body["roles"] == ["customer"]
    assert body["is_customer"] is True


def test_duplicate_registration_is_409(client):
    _register(client, "alice", "a@x.com")

    resp = _register(client, "bob", "a@x.com")

    assert resp.status_code == 409
    assert resp.json()["error"] == "conflict"


def test_bad_login_is_401(client):
    _register(client)

    resp = client.post("/auth/login", json={"username": "alice", "password": "nope"})

    assert resp.status_code == 401
    assert resp.json()["error"] == "policy"


def test_cart_requires_a_token(client):
    assert client.get("/cart").status_code == 401


def test_customers_cannot_create_products(client):
    _register(client)

    resp = client.post(
        "/products",
        headers=_login(client),
        json={"title": "X", "artist": "Y", "price": "10", "image": "x.jpg", "type": "Merch"},
    )

    assert resp.status_code == 403


def test_shop_flow(client, db, admin, auth_header):
    boss = auth_header(admin)
    created = client.post(
        "/products",
        headers=boss,
        json={
            "title": "Hotter Than July",
            "artist": "Stevie Wonder",
            "price": "50.00",
            "image": "hotter.jpg",
            "year": 1980,
            "genre": "Soul",
            "songs": [{"title": "Master Blaster"}, {"title": "Lately"}],
        },
    )
    assert created.status_code == 201
    product = created.json()
    assert [t["title"] for t in product["tracks"]] == ["Master Blaster", "Lately"]

    coupon = client.post(
        "/admin/coupons",
        headers=boss,
        json={"code": "flat50", "discount_type": "fixed_amount", "discount_value": "50"},
    )
    assert coupon.status_code == 201
    assert coupon.json()["code"] == "FLAT50"

    _register(client, "carol")
    carol = _login(client, "carol")
    assert client.post("/cart", headers=carol, json={"product_id": product["id"]}).json() == {"count": 1}

    preview = client.post("/checkout/preview", headers=carol, json={"coupon_code": "FLAT50"}).json()
    assert Decimal(preview["subtotal"]) == Decimal("50.00")
    assert Decimal(preview["discount"]) == Decimal("50.00")
    assert Decimal(preview["total"]) == Decimal("0.00")

    placed = client.post("/checkout/orders", headers=carol, json={"coupon_code": "FLAT50"})
    assert placed.status_code == 201
    order = placed.json()
    assert order["status"] == "pending"
    assert order["coupons"][0]["code"] == "FLAT50"
    assert client.get("/cart/count", headers=carol).json() == {"count": 0}

    listed = client.get("/checkout/orders", headers=carol).json()
    assert [o["id"] for o in listed] == [order["id"]]

    moved = client.post(f"/admin/orders/{order['id']}/status", headers=boss, json={"status": "processing"})
    assert moved.status_code == 200
    bad = client.post(f"/admin/orders/{order['id']}/status", headers=boss, json={"status": "delivered"})
    assert bad.status_code == 400


def test_cart_validation_error_names_the_field(client):
    _register(client)

    resp = client.post("/cart", headers=_login(client), json={})

    assert resp.status_code == 400
    assert resp.json() == {
        "error": "validation",
        "detail": "Provide exactly one of product_id or song_id",
        "field": "item",
    }


def test_songs_link_and_orphans(client, admin, auth_header, make_product, make_song):
    boss = auth_header(admin)
    album = make_product()
    song = make_song()
    assert [s["id"] for s in client.get("/songs", params={"orphaned": "true"}).json()] == [song.id]

    linked = client.post(f"/songs/{song.id}/albums/{album.id}", headers=boss, json={"track_number": 4})
    assert linked.status_code == 201
    again = client.post(f"/songs/{song.id}/albums/{album.id}", headers=boss, json={})
    assert again.status_code == 409

    detail = client.get(f"/songs/{song.id}").json()
    assert detail["albums"] == [{"album_id": album.id, "title": album.title, "track_number": 4, "disc_number": 1}]
    assert client.get("/songs", params={"orphaned": "true"}).json() == []

    assert client.delete(f"/songs/{song.id}/albums/{album.id}", headers=boss).status_code == 204
    assert client.delete(f"/songs/{song.id}/albums/{album.id}", headers=boss).status_code == 404


def test_admin_user_management(client, db, admin, customer, auth_header):
    boss = auth_header(admin)

    users = client.get("/admin/users", headers=boss).json()
    assert {u["email"] for u in users} == {"alice@example.com", "boss@example.com"}

    changed = client.put(f"/admin/users/{customer.id}/email", headers=boss, json={"email": "alice@newmail.com"})
    assert changed.status_code == 200
    assert changed.json()["change_reason"] == "admin_updated"

    granted = client.post(f"/admin/users/{customer.id}/roles", headers=boss, json={"role": "employee"})
    assert granted.status_code == 201
    assert granted.json()["assigned_by"] == admin.id
    assert client.post(f"/admin/users/{customer.id}/roles", headers=boss, json={"role": "employee"}).status_code == 409

    detail = client.get(f"/admin/users/{customer.id}", headers=boss).json()
    assert sorted(detail["roles"]) == ["customer", "employee"]
    assert [e["email"] for e in detail["emails"]] == ["alice@example.com", "alice@newmail.com"]

    assert client.delete(f"/admin/users/{customer.id}/roles/employee", headers=boss).status_code == 204
    assert not rbac.has_permission(db, customer.id, "orders.manage")


def test_expired_grant_with_offset_gives_no_access(client, admin, customer, auth_header):
    expired = (datetime.now(timezone(timedelta(hours=5))) - timedelta(hours=1)).isoformat()

    granted = client.post(
        f"/admin/users/{customer.id}/roles",
        headers=auth_header(admin),
        json={"role": "admin", "expires_at": expired},
    )
    assert granted.status_code == 201

    assert client.get("/admin/users", headers=auth_header(customer)).status_code == 403


def test_artist_merge_endpoint(client, admin, auth_header, make_product):
    boss = auth_header(admin)
    first = client.post("/artists", headers=boss, json={"stage_name": "Parliament"}).json()
    dup = client.post("/artists", headers=boss, json={"stage_name": "Parliment"}).json()
    make_product(title="Mothership Connection", artist="Parliment", year=1975, genre="Funk")

    merged = client.post(
        "/admin/artists/merge",
        headers=boss,
        json={"canonical_id": first["person_id"], "duplicate_id": dup["person_id"]},
    )

    assert merged.status_code == 200
    products = client.get("/products", params={"search": "mothership"}).json()
    assert products[0]["artist"] == "Parliament"
    assert client.get(f"/artists/{dup['person_id']}").status_code == 404
