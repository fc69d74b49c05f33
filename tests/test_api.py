import time

from bson import ObjectId

import config
import database
import factories
import invoices
from tests.conftest import bearer

ORDER = {
    "user": {"name": "Ada Lovelace", "email": "ada@example.com"},
    "items": [{"product": {"title": "Keyboard", "price": 49.9}, "quantity": 2}],
    "total": 99.8,
}


def test_root(client):
    assert client.get("/").json() == {"message": "Storefront API is running"}


def test_health(client):
    body = client.get("/api/health").json()
    assert body["status"] == "OK"
    assert body["mongodb"] == "Connected"


def test_schema_lists_documents(client):
    assert set(client.get("/schema").json()) == {"user", "category", "sub", "product", "comment"}


def test_empty_product_list(client):
    response = client.get("/api/products")
    assert response.status_code == 200
    assert response.json() == {"success": True, "results": {"products": [], "count": 0}}


def test_product_list_and_filters(client, catalog):
    body = client.get("/api/products").json()
    assert body["results"]["count"] == 2
    body = client.get("/api/products", params={"category": catalog["laptops"]["id"]}).json()
    assert [p["title"] for p in body["results"]["products"]] == ["MacBook Air"]


def test_search_text_is_matched_literally(client, db, catalog):
    for text in ("(", "[", "*", "a+b)"):
        response = client.get("/api/products", params={"q": text})
        assert response.status_code == 200
        assert response.json()["results"] == {"products": [], "count": 0}

    factories.create_product_service(db=db).update_product(catalog["galaxy"]["id"], {"description": "Phone (2024)"})
    body = client.get("/api/products", params={"q": "(2024)"}).json()
    assert [p["title"] for p in body["results"]["products"]] == ["Galaxy S24"]


def test_product_by_slug(client, catalog):
    body = client.get("/api/products/slug/galaxy-s24").json()
    assert body["success"] is True
    assert body["results"]["product"]["category"]["name"] == "Phones"


def test_unknown_product_uses_error_envelope(client, catalog):
    response = client.get("/api/products/slug/nothing-here")
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Product not found"}


def test_bad_id_is_400(client, catalog):
    response = client.get("/api/products/id/123")
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid ID format"


def test_bad_query_is_400(client):
    response = client.get("/api/products", params={"limit": 0})
    assert response.status_code == 400
    assert response.json()["message"] == "Validation Error"
    assert response.json()["errors"]


def test_latest_products(client, catalog):
    body = client.get("/api/products/latest", params={"limit": 1}).json()
    assert len(body["results"]["products"]) == 1


def test_rate_requires_token(client, catalog):
    response = client.put(f"/api/products/{catalog['air']['id']}/rate", json={"star": 4})
    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "Missing Authorization header"}


def test_rate_product(client, catalog, users, socket_emit):
    product_id = catalog["air"]["id"]
    response = client.put(f"/api/products/{product_id}/rate", json={"star": 4}, headers=bearer(users["alice"]))
    assert response.status_code == 200
    results = response.json()["results"]
    assert results["summary"] == {"averageRating": 4, "ratingsCount": 1}
    assert results["product"]["averageRating"] == 4
    socket_emit.assert_awaited_once()
    event, payload = socket_emit.call_args.args
    assert event == "product:rated"
    assert payload["productId"] == product_id
    assert socket_emit.call_args.kwargs == {"room": f"user:{users['alice']['id']}"}

    check = client.get(f"/api/products/{product_id}/rate/check", headers=bearer(users["alice"])).json()
    assert check["results"] == {"rated": True, "star": 4}
    check = client.get(f"/api/products/{product_id}/rate/check", headers=bearer(users["bob"])).json()
    assert check["results"] == {"rated": False, "star": None}


def test_rate_rejects_out_of_range_star(client, catalog, users):
    response = client.put(f"/api/products/{catalog['air']['id']}/rate", json={"star": 6},
                          headers=bearer(users["alice"]))
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_rate_unknown_product(client, users):
    response = client.put(f"/api/products/{ObjectId()}/rate", json={"star": 3}, headers=bearer(users["alice"]))
    assert response.status_code == 404


def test_rating_overview_and_top_rated(client, db, catalog, users):
    product_id = catalog["galaxy"]["id"]
    client.put(f"/api/products/{product_id}/rate", json={"star": 5}, headers=bearer(users["alice"]))
    client.put(f"/api/products/{product_id}/rate", json={"star": 3}, headers=bearer(users["admin"]))
    factories.create_comment_service(db=db).add_comment(
        {"product": product_id, "user": users["bob"]["id"], "text": "Solid", "rating": 4})

    body = client.get(f"/api/products/{product_id}/rating").json()
    assert body["results"] == {
        "stars": {"averageRating": 4, "ratingsCount": 2},
        "comments": {"averageRating": 4, "ratingsCount": 1},
    }
    top = client.get("/api/products/top-rated").json()["results"]["products"]
    assert top[0]["title"] == "Galaxy S24"


def test_categories_and_subs(client, catalog):
    names = [c["name"] for c in client.get("/api/categories").json()["results"]["categories"]]
    assert names == ["Laptops", "Phones"]
    body = client.get("/api/categories/slug/laptops").json()["results"]
    assert body["category"]["name"] == "Laptops"
    assert [s["name"] for s in body["subs"]] == ["Ultrabooks"]
    subs = client.get("/api/subs").json()["results"]["subs"]
    assert {s["parent"]["slug"] for s in subs} == {"laptops", "phones"}


def test_comments_by_product_and_user(client, db, catalog, users):
    factories.create_comment_service(db=db).add_comment(
        {"product": catalog["air"]["id"], "user": users["alice"]["id"], "text": "Love it", "rating": 5})
    body = client.get(f"/api/comments/product/{catalog['air']['id']}").json()["results"]
    assert [c["text"] for c in body["comments"]] == ["Love it"]
    assert body["comments"][0]["user"]["firstname"] == "Alice"
    assert body["stats"] == {"averageRating": 5, "ratingsCount": 1}
    body = client.get(f"/api/comments/user/{users['alice']['id']}").json()["results"]
    assert body["comments"][0]["product"]["title"] == "MacBook Air"


def test_me(client, users):
    body = client.get("/api/users/me", headers=bearer(users["alice"])).json()
    assert body["results"]["user"]["email"] == "alice@example.com"
    assert "password" not in body["results"]["user"]


def test_invoice_requires_order(client):
    response = client.post("/api/invoice/generate", json={})
    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Order data required"}


def test_invoice_generate_and_download(client, invoice_dir, socket_emit):
    response = client.post("/api/invoice/generate", json={"order": ORDER})
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")
    socket_emit.assert_not_called()

    filename = next(p.name for p in invoice_dir.iterdir() if p.suffix == ".pdf")
    download = client.get(f"/api/invoices/{filename}")
    assert download.status_code == 200
    assert download.content == response.content


def test_invoice_notifies_known_user(client, users, socket_emit):
    response = client.post("/api/invoice/generate", json={"order": ORDER}, headers=bearer(users["alice"]))
    assert response.status_code == 200
    event, payload = socket_emit.call_args.args
    assert event == "invoice:ready"
    assert payload["url"].startswith("/api/invoices/invoice-")


def test_invoice_render_failure_is_500(client, monkeypatch):
    def broken(order, path):
        raise OSError("disk full")

    monkeypatch.setattr(invoices, "generate_invoice", broken)
    started = time.monotonic()
    response = client.post("/api/invoice/generate", json={"order": ORDER})
    assert time.monotonic() - started < config.INVOICE_WAIT_TIMEOUT
    assert response.status_code == 500
    assert response.json() == {"success": False, "message": "Invoice generation failed"}


def test_invoice_download_errors(client):
    assert client.get("/api/invoices/notes.txt").status_code == 400
    response = client.get("/api/invoices/invoice-0.pdf")
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Invoice not found"}


def test_seed_requires_admin(client, users):
    response = client.post("/api/admin/seed", headers=bearer(users["alice"]))
    assert response.status_code == 403
    response = client.post("/api/admin/seed", headers=bearer(users["admin"]))
    assert response.status_code == 200
    assert response.json()["results"] == {"categories": 2, "subs": 3, "products": 4}
    client.post("/api/admin/seed", headers=bearer(users["admin"]))
    assert client.get("/api/products").json()["results"]["count"] == 4


def test_unknown_route_uses_envelope(client):
    response = client.get("/api/nope")
    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Not Found"}


def test_database_not_configured(client, monkeypatch):
    monkeypatch.setattr(database, "db", None)
    response = client.get("/api/categories")
    assert response.status_code == 500
    assert response.json() == {"success": False, "message": "Database not configured"}
