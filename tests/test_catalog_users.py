from app.services.catalog import PLACEHOLDER_IMAGE, ProductCatalog


def test_products_crud(client):
    r = client.post("/products", json={"name": "Entrada VIP", "price": 12})
    assert r.status_code == 201
    p = r.json()
    assert p["price"] == 12.0 and p["image"] == PLACEHOLDER_IMAGE

    r = client.put(f"/products/{p['id']}", json={"price": 15.5})
    assert r.json()["price"] == 15.5 and r.json()["name"] == "Entrada VIP"

    assert client.get("/products", params={"q": "vip"}).json()["count"] == 1
    assert client.get("/products", params={"q": "zzz"}).json()["count"] == 0

    assert client.delete(f"/products/{p['id']}").json()["deleted"] is True
    assert client.get(f"/products/{p['id']}").status_code == 404
    assert client.delete(f"/products/{p['id']}").status_code == 404


def test_product_validation(client):
    assert client.post("/products", json={"name": "X", "price": -1}).status_code == 422
    assert client.post("/products", json={"name": "  ", "price": 1}).status_code == 422


def test_cache_invalidated_by_feed(ctx):
    catalog = ProductCatalog(ctx)
    assert catalog.list_products() == []
    created = catalog.create("Entrada General", "5.00")
    # la lista en caché ya no vale tras el evento
    assert [p["id"] for p in catalog.list_products()] == [created["id"]]
    catalog.update(created["id"], price="6.00")
    assert catalog.get_product(created["id"])["price"] == 6.0


def test_users_crud(client):
    body = {
        "email": "Ana@Tienda.pe",
        "display_name": "Ana",
        "shortcuts": [{"key": "a", "productId": 1}],
    }
    r = client.post("/users", json=body)
    assert r.status_code == 201
    u = r.json()
    assert u["email"] == "ana@tienda.pe" and u["role"] == "employee"
    assert u["shortcuts"] == [{"key": "a", "productId": 1}]

    assert client.post("/users", json=body).status_code == 422
    assert client.post("/users", json={"email": "no-es-email"}).status_code == 422

    r = client.put(f"/users/{u['id']}", json={"role": "admin"})
    assert r.json()["role"] == "admin"
    assert client.get("/users").json()["count"] == 1

    assert client.delete(f"/users/{u['id']}").status_code == 200
    assert client.get(f"/users/{u['id']}").status_code == 404


def test_seller_name_on_sale(client):
    client.post("/users", json={"id": "op-ana", "email": "ana@tienda.pe", "display_name": "Ana"})
    h = {"X-Operator-Id": "op-ana"}
    client.post("/register/open", headers=h)
    r = client.post("/sales", json={"lines": [{"name": "X", "unit_price": 1, "quantity": 1}]}, headers=h)
    assert r.json()["sale"]["seller"] == "Ana"
    assert r.json()["tickets"][0]["seller"] == "Ana"
