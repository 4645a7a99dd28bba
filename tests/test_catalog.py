# tests/test_catalog.py
import asyncio

from fastapi.testclient import TestClient

from hub.baas import get_baas
from hub.main import app

client = TestClient(app)


def reset():
    client.post("/reset")


def seed(table, *rows):
    return asyncio.run(get_baas().table(table).insert(list(rows)).execute()).data


def seed_catalog():
    seed(
        "categories",
        {"id": "c1", "name": "Cafés", "slug": "cafes", "created_at": "2024-01-02"},
        {"id": "c2", "name": "Acessórios", "slug": "acessorios", "created_at": "2024-01-01"},
    )
    seed(
        "products",
        {"id": "p1", "name": "Bourbon", "slug": "bourbon", "category_id": "c1", "real_price": 50,
         "created_at": "2024-02-01"},
        {"id": "p2", "name": "Catuaí", "slug": "catuai", "category_id": "c1", "real_price": 40,
         "created_at": "2024-01-01"},
        {"id": "p3", "name": "Moedor", "slug": "moedor", "category_id": "c2", "real_price": 90,
         "created_at": "2024-01-01"},
    )


def test_categories_ordered_by_creation():
    reset()
    seed_catalog()
    r = client.get("/catalog/categories")
    assert r.status_code == 200
    assert [c["slug"] for c in r.json()] == ["acessorios", "cafes"]


def test_products_by_category():
    reset()
    seed_catalog()
    r = client.get("/catalog/categories/cafes/products")
    assert r.status_code == 200
    assert [p["slug"] for p in r.json()] == ["catuai", "bourbon"]


def test_products_of_unknown_category_is_empty():
    reset()
    seed_catalog()
    r = client.get("/catalog/categories/nope/products")
    assert r.status_code == 200
    assert r.json() == []


def test_product_detail_puts_main_image_first():
    reset()
    seed_catalog()
    seed(
        "product_images",
        {"id": "i1", "product_id": "p1", "url": "http://cdn/extra.png", "is_main": False},
        {"id": "i2", "product_id": "p1", "url": "http://cdn/main.png", "is_main": True},
    )
    r = client.get("/catalog/products/bourbon")
    assert r.status_code == 200
    body = r.json()
    assert body["name"] == "Bourbon"
    assert body["images"][0]["url"] == "http://cdn/main.png"
    assert body["main_image_url"] == "http://cdn/main.png"


def test_product_detail_without_images():
    reset()
    seed_catalog()
    body = client.get("/catalog/products/catuai").json()
    assert body["images"] == []
    assert body["main_image_url"] is None


def test_unknown_product_is_404():
    reset()
    seed_catalog()
    r = client.get("/catalog/products/ghost")
    assert r.status_code == 404
    assert r.json()["detail"] == "product not found"


def test_related_excludes_current_and_is_capped():
    reset()
    seed("categories", {"id": "c1", "name": "Cafés", "slug": "cafes"})
    seed("products", *[
        {"id": f"p{i}", "name": f"Café {i}", "slug": f"cafe-{i}", "category_id": "c1"} for i in range(10)
    ])
    r = client.get("/catalog/products/cafe-0/related", params={"category": "cafes"})
    assert r.status_code == 200
    slugs = [p["slug"] for p in r.json()]
    assert len(slugs) == 8
    assert "cafe-0" not in slugs


def test_related_requires_category():
    reset()
    r = client.get("/catalog/products/bourbon/related")
    assert r.status_code == 422
