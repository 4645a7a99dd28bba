# hub/catalog.py
from typing import Any, Dict, List, Optional

from fastapi import HTTPException
from loguru import logger

from .baas import get_baas
from .errors import AuthError, NotFoundError
from .models import AuthResponse, AuthSession, AuthUser

# Read-only product catalog plus the sign-in flows of the catalog site.

RELATED_LIMIT = 8


async def get_categories() -> List[Dict[str, Any]]:
    res = await get_baas().table("categories").select("*").order("created_at").execute()
    return res.data


async def _category_by_slug(slug: str) -> Optional[Dict[str, Any]]:
    res = await get_baas().table("categories").select("id, name, slug").eq("slug", slug).limit(1).execute()
    return res.data[0] if res.data else None


async def get_products_by_category(category_slug: str) -> List[Dict[str, Any]]:
    category = await _category_by_slug(category_slug)
    if category is None:
        return []
    res = (
        await get_baas()
        .table("products")
        .select("*")
        .eq("category_id", category["id"])
        .order("created_at")
        .execute()
    )
    return res.data


async def get_product_by_slug(slug: str) -> Dict[str, Any]:
    client = get_baas()
    try:
        product = (await client.table("products").select("*").eq("slug", slug).single().execute()).data
    except NotFoundError:
        raise HTTPException(status_code=404, detail="product not found")

    images = (
        await client.table("product_images").select("id, url, is_main").eq("product_id", product["id"]).execute()
    ).data
    # main image first, then insertion order
    images.sort(key=lambda img: not img.get("is_main"))
    product["images"] = images
    product["main_image_url"] = next((img["url"] for img in images if img.get("is_main")), None)
    return product


async def get_related_products(category_slug: str, current_slug: str) -> List[Dict[str, Any]]:
    category = await _category_by_slug(category_slug)
    if category is None:
        return []
    res = (
        await get_baas()
        .table("products")
        .select("*")
        .eq("category_id", category["id"])
        .neq("slug", current_slug)
        .limit(RELATED_LIMIT)
        .execute()
    )
    return res.data


# ---------------------------
# Auth
# ---------------------------
async def sign_in(email: str, password: str) -> AuthSession:
    res = await get_baas().auth.sign_in_with_password(email, password)
    if res.session is None:
        raise AuthError("Authentication failed")
    logger.info(f"Catalog sign-in for {res.user.email}")
    return res.session


async def sign_up(email: str, password: str) -> AuthResponse:
    return await get_baas().auth.sign_up(email, password)


async def sign_out(token: str) -> None:
    await get_baas().auth.sign_out(token)


async def reset_password(email: str) -> None:
    await get_baas().auth.reset_password_for_email(email)


async def get_current_user(token: str) -> AuthUser:
    return await get_baas().auth.get_user(token)
