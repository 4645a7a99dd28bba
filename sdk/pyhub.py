# sdk/pyhub.py
import base64
import mimetypes
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
import requests


def image_payload(path: str) -> Dict[str, Any]:
    """Read a local image into the JSON shape the panel endpoints accept."""
    p = Path(path)
    return {
        "filename": p.name,
        "content_base64": base64.b64encode(p.read_bytes()).decode("ascii"),
        "content_type": mimetypes.guess_type(p.name)[0],
    }


class HubClient:
    def __init__(self, base_url: str = "http://localhost:8085", token: Optional[str] = None, timeout: int = 10):
        self.base_url = base_url.rstrip("/")
        self.session = requests.Session()
        self.timeout = timeout
        self.token = None
        if token:
            self.set_token(token)

    def set_token(self, token: Optional[str]):
        self.token = token
        if token:
            self.session.headers.update({"Authorization": f"Bearer {token}"})
        else:
            self.session.headers.pop("Authorization", None)

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None):
        params = {k: v for k, v in (params or {}).items() if v not in (None, "")}
        r = self.session.get(f"{self.base_url}{path}", params=params, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def _send(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None):
        r = self.session.request(method, f"{self.base_url}{path}", json=payload, timeout=self.timeout)
        r.raise_for_status()
        return r.json()

    def reset(self):
        return self.session.post(f"{self.base_url}/reset", timeout=self.timeout).json()

    def health(self):
        return self._get("/health")

    # Catalog
    def list_categories(self):
        return self._get("/catalog/categories")

    def products_by_category(self, category_slug: str):
        return self._get(f"/catalog/categories/{category_slug}/products")

    def get_product(self, slug: str):
        return self._get(f"/catalog/products/{slug}")

    def related_products(self, slug: str, category_slug: str):
        return self._get(f"/catalog/products/{slug}/related", {"category": category_slug})

    # Catalog auth
    def sign_in(self, email: str, password: str):
        session = self._send("POST", "/auth/sign-in", {"email": email, "password": password})
        self.set_token(session["access_token"])
        return session

    def sign_up(self, email: str, password: str):
        return self._send("POST", "/auth/sign-up", {"email": email, "password": password})

    def sign_out(self):
        out = self._send("POST", "/auth/sign-out")
        self.set_token(None)
        return out

    def reset_password(self, email: str):
        return self._send("POST", "/auth/reset-password", {"email": email})

    def me(self):
        return self._get("/auth/me")

    # Locator
    def list_distributors(self):
        return self._get("/locator/distributors")

    def nearby(self, lat: float, lng: float, radius: Optional[float] = None, distance: Optional[str] = None):
        return self._get("/locator/nearby", {"lat": lat, "lng": lng, "radius": radius, "distance": distance})

    def search_addresses(self, query: str):
        return self._get("/locator/addresses", {"q": query})

    def reverse(self, lat: float, lng: float):
        return self._get("/locator/reverse", {"lat": lat, "lng": lng})

    def map_view(self):
        return self._get("/locator/map")

    async def nearby_async(self, lat: float, lng: float, radius: Optional[float] = None):
        params: Dict[str, Any] = {"lat": lat, "lng": lng}
        if radius is not None:
            params["radius"] = radius
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            r = await client.get(f"{self.base_url}/locator/nearby", params=params)
            r.raise_for_status()
            return r.json()

    # Panel: auth and dashboard
    def login(self, email: str, password: str):
        out = self._send("POST", "/panel/login", {"email": email, "password": password})
        self.set_token(out["token"])
        return out

    def register(self, name: str, email: str, password: str):
        return self._send("POST", "/panel/register", {"name": name, "email": email, "password": password})

    def my_profile(self):
        return self._get("/panel/me")

    def counts(self):
        return self._get("/panel/counts")

    def upload(self, bucket: str, folder: str, path: str):
        return self._send("POST", f"/panel/uploads/{bucket}", {"folder": folder, "image": image_payload(path)})

    # Panel: products
    def list_products(self, q: str = "", status: Optional[str] = None, tipo: Optional[str] = None,
                      categoria: Optional[str] = None):
        return self._get("/panel/products", {"q": q, "status": status, "tipo": tipo, "categoria": categoria})

    def product(self, product_id: str):
        return self._get(f"/panel/products/{product_id}")

    def create_product(self, **fields):
        return self._send("POST", "/panel/products", fields)

    def update_product(self, product_id: str, **fields):
        return self._send("PUT", f"/panel/products/{product_id}", fields)

    def delete_product(self, product_id: str):
        return self._send("DELETE", f"/panel/products/{product_id}")

    # Panel: categories
    def list_panel_categories(self, q: str = ""):
        return self._get("/panel/categories", {"q": q})

    def create_category(self, name: str, **fields):
        return self._send("POST", "/panel/categories", {"name": name, **fields})

    def update_category(self, category_id: str, name: str, **fields):
        return self._send("PUT", f"/panel/categories/{category_id}", {"name": name, **fields})

    def delete_category(self, category_id: str):
        return self._send("DELETE", f"/panel/categories/{category_id}")

    # Panel: plans, distributors, partners
    def list_plans(self):
        return self._get("/panel/plans")

    def list_panel_distributors(self, q: str = "", plano: Optional[str] = None):
        return self._get("/panel/distributors", {"q": q, "plano": plano})

    def distributors_simple(self):
        return self._get("/panel/distributors/simple")

    def create_distributor(self, name: str, **fields):
        return self._send("POST", "/panel/distributors", {"name": name, **fields})

    def update_distributor(self, distributor_id: str, name: str, **fields):
        return self._send("PUT", f"/panel/distributors/{distributor_id}", {"name": name, **fields})

    def delete_distributor(self, distributor_id: str):
        return self._send("DELETE", f"/panel/distributors/{distributor_id}")

    def list_partners(self, q: str = ""):
        return self._get("/panel/partners", {"q": q})

    def create_partner(self, name: str, **fields):
        return self._send("POST", "/panel/partners", {"name": name, **fields})

    def update_partner(self, partner_id: str, name: str, **fields):
        return self._send("PUT", f"/panel/partners/{partner_id}", {"name": name, **fields})

    def delete_partner(self, partner_id: str):
        return self._send("DELETE", f"/panel/partners/{partner_id}")

    # Panel: users
    def list_users(self, q: str = "", cargo: Optional[str] = None) -> List[Dict[str, Any]]:
        return self._get("/panel/users", {"q": q, "cargo": cargo})

    def create_user(self, name: str, email: str, password: str, role: str = "Colaborador", **fields):
        payload = {"name": name, "email": email, "password": password, "role": role, **fields}
        return self._send("POST", "/panel/users", payload)

    def update_user(self, user_id: str, name: str, email: str, **fields):
        return self._send("PUT", f"/panel/users/{user_id}", {"name": name, "email": email, **fields})

    def delete_user(self, user_id: str):
        return self._send("DELETE", f"/panel/users/{user_id}")

    def update_profile(self, **fields):
        return self._send("PUT", "/panel/profile", fields)

    def update_password(self, new_password: str):
        return self._send("PUT", "/panel/password", {"new_password": new_password})
