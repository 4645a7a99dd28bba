#!/usr/bin/env python
"""
Walks the main flows against a memory-backed server started with
HUB_AUTH_AUTO_CONFIRM=true, e.g.

    HUB_AUTH_AUTO_CONFIRM=true uvicorn hub.main:app --port 8085
"""
from sdk.pyhub import HubClient

DISTRIBUTORS = [
    {"name": "Casa do Café Paulista", "cidade": "São Paulo", "estado": "SP", "address": "Av. Paulista, 1000",
     "phone": "(11) 98765-4321", "latitude": -23.5614, "longitude": -46.6559},
    {"name": "Empório Campinas", "cidade": "Campinas", "estado": "SP", "address": "Rua Barão de Jaguara, 500",
     "phone": "(19) 3232-1010", "latitude": -22.9056, "longitude": -47.0608},
    {"name": "Rio Grãos", "cidade": "Rio de Janeiro", "estado": "RJ", "address": "Rua do Ouvidor, 50",
     "phone": "(21) 2222-3333", "latitude": -22.9035, "longitude": -43.1780},
]


def main():
    c = HubClient(base_url="http://127.0.0.1:8085")

    # -----------------------------
    # Reset everything for demo
    # -----------------------------
    print("Resetting memory backend...")
    c.reset()

    # -----------------------------
    # Panel account
    # -----------------------------
    print("\nRegistering and logging into the panel...")
    print(c.register("Ana Admin", "ana@example.com", "s3cret-pass"))
    print(c.login("ana@example.com", "s3cret-pass"))

    # -----------------------------
    # Catalog content
    # -----------------------------
    print("\nCreating categories and products...")
    cafes = c.create_category("Cafés Especiais", description="Grãos selecionados")["data"]
    c.create_category("Acessórios")
    for name, price, promo in [("Café Bourbon Amarelo", 59.9, 49.9), ("Café Catuaí", 44.0, None),
                               ("Café Geisha", 129.0, 99.0)]:
        print(c.create_product(name=name, real_price=price, promo_price=promo, category_id=cafes["id"],
                               sku=name.upper().replace(" ", "-")[:12]))

    # -----------------------------
    # Distributors
    # -----------------------------
    print("\nCreating distributors...")
    for d in DISTRIBUTORS:
        c.create_distributor(**d)

    # -----------------------------
    # Browse like the catalog site
    # -----------------------------
    print("\nCatalog categories:")
    print(c.list_categories())
    print("\nProducts in", cafes["slug"])
    products = c.products_by_category(cafes["slug"])
    print(products)
    print("\nProduct detail and related:")
    print(c.get_product(products[0]["slug"]))
    print(c.related_products(products[0]["slug"], cafes["slug"]))

    # -----------------------------
    # Locator
    # -----------------------------
    print("\nDistributors within 50km of Praça da Sé:")
    for d in c.nearby(-23.5503, -46.6339, distance="50km"):
        print(f"  {d['name']}: {d['distance']}")
    print("\nWithin 120km:")
    for d in c.nearby(-23.5503, -46.6339, radius=120):
        print(f"  {d['name']}: {d['distance']}")

    # -----------------------------
    # Dashboard
    # -----------------------------
    print("\nDashboard counts:")
    print(c.counts())


if __name__ == "__main__":
    main()
