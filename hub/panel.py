# hub/panel.py
"""
Administrative panel operations.

Every function is a thin pass-through to the data tier: it shapes the row,
runs one or more table / storage calls and returns what the panel views need.
Failures of secondary steps (image rows, per-table counts) are logged and
tolerated; failures of the primary write propagate as `BaaSError`.
"""
import asyncio
import uuid
from typing import Any, Dict, List, Optional, Sequence

from loguru import logger

from .baas import get_baas
from .config import get_settings
from .core import (
    CategoryIn,
    DistributorIn,
    ImageIn,
    PartnerIn,
    ProductIn,
    ProfileUpdateIn,
    UserCreateIn,
    UserUpdateIn,
    _make_category_row,
    _make_product_row,
    normalize_status,
    path_from_public_url,
)
from .errors import AuthError, BaaSError
from .models import AuthUser

PRODUCT_COLUMNS = (
    "id, name, slug, subtitle, sku, status, tipo, real_price, promo_price, "
    "video_embed, button_link, category_id, created_at"
)
DISTRIBUTOR_COLUMNS = (
    "id, name, email, phone, address, cidade, estado, instagram, status, logo_url, plan_id, latitude, longitude"
)
PARTNER_COLUMNS = "id, name, email, phone, address, cidade, estado, status, instagram, logo_url"
PROFILE_COLUMNS = "id, name, email, company, role, phone, avatar_url"

PRODUCT_BUCKET = "product-images"
LOGO_BUCKET = "logos"
AVATAR_BUCKET = "avatars"

COUNTED_TABLES = {
    "products": "products",
    "distributors": "distribuidores",
    "partners": "parceiros",
    "categories": "categories",
}


# ---------------------------
# Authentication
# ---------------------------
async def login(email: str, password: str) -> Dict[str, Any]:
    res = await get_baas().auth.sign_in_with_password(email, password)
    if res.session is None:
        raise AuthError("Authentication failed")
    user = res.session.user
    if not user.email_confirmed_at:
        raise AuthError("Email not confirmed. Please check your inbox.", code="email_not_confirmed")
    logger.info(f"Panel login for {user.email}")
    return {"token": res.session.access_token, "user": {"id": user.id, "email": user.email}}


async def register(name: str, email: str, password: str) -> Dict[str, Any]:
    await get_baas().auth.sign_up(email, password, {"name": name})
    return {
        "success": True,
        "message": "Check your email to confirm your registration. After that you can log in.",
    }


async def get_current_profile(user: AuthUser) -> Optional[Dict[str, Any]]:
    res = await get_baas().table("profiles").select(PROFILE_COLUMNS).eq("email", user.email).limit(1).execute()
    return res.data[0] if res.data else None


async def is_admin(user: AuthUser) -> bool:
    profile = await get_current_profile(user)
    return bool(profile) and profile.get("role") == get_settings().admin_role


# ---------------------------
# Storage
# ---------------------------
async def upload_image(image: ImageIn, bucket: str, folder: str) -> str:
    client = get_baas()
    ext = image.filename.rsplit(".", 1)[-1].lower() if "." in image.filename else "bin"
    path = f"{folder}/{uuid.uuid4().hex[:13]}.{ext}"
    await client.storage.upload(bucket, path, image.content(), content_type=image.content_type, upsert=False)
    url = client.storage.get_public_url(bucket, path)
    logger.debug(f"Uploaded {image.filename} to {bucket}/{path}")
    return url


async def _remove_objects(bucket: str, urls: Sequence[Optional[str]]) -> None:
    prefix = get_settings().storage_public_prefix
    paths = [p for p in (path_from_public_url(u, prefix) for u in urls) if p]
    if paths:
        await get_baas().storage.remove(bucket, paths)


# ---------------------------
# Products
# ---------------------------
async def _attach_product_relations(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    if not rows:
        return rows
    client = get_baas()
    category_ids = list(dict.fromkeys(r["category_id"] for r in rows if r.get("category_id")))
    categories = {}
    if category_ids:
        res = await client.table("categories").select("id, name").in_("id", category_ids).execute()
        categories = {c["id"]: c for c in res.data}
    images = (
        await client.table("product_images")
        .select("product_id, url")
        .in_("product_id", [r["id"] for r in rows])
        .eq("is_main", True)
        .execute()
    ).data
    main_urls = {img["product_id"]: img["url"] for img in images}
    for row in rows:
        row["category"] = categories.get(row.get("category_id"))
        row["main_image_url"] = main_urls.get(row["id"])
    return rows


async def fetch_products(filters: Optional[Dict[str, Any]] = None, search: str = "") -> List[Dict[str, Any]]:
    query = get_baas().table("products").select(PRODUCT_COLUMNS).order("name")
    if search:
        query = query.or_ilike(["name", "sku"], search)
    filters = filters or {}
    status = normalize_status(filters.get("status"))
    if status:
        query = query.eq("status", status)
    if filters.get("tipo"):
        query = query.eq("tipo", filters["tipo"])
    if filters.get("categoria"):
        query = query.eq("category_id", filters["categoria"])
    rows = (await query.execute()).data
    return await _attach_product_relations(rows)


async def get_product(product_id: str) -> Dict[str, Any]:
    client = get_baas()
    product = (await client.table("products").select("*").eq("id", product_id).single().execute()).data
    product["images"] = (
        await client.table("product_images").select("id, url, is_main").eq("product_id", product_id).execute()
    ).data
    return product


async def _register_image(product_id: str, url: str, is_main: bool) -> None:
    try:
        await get_baas().table("product_images").insert(
            {"product_id": product_id, "url": url, "is_main": is_main}
        ).execute()
    except BaaSError as e:
        logger.error(f"Failed to register image for product {product_id}: {e.message}")


async def _add_additional_images(product_id: str, images: Sequence[ImageIn]) -> None:
    for image in images:
        try:
            url = await upload_image(image, PRODUCT_BUCKET, "additional")
        except BaaSError as e:
            logger.error(f"Failed to upload additional image {image.filename}: {e.message}")
            continue
        await _register_image(product_id, url, is_main=False)


async def create_product(data: ProductIn) -> Dict[str, Any]:
    client = get_baas()
    # the main image is uploaded first; a failure here aborts before anything is written
    main_url = await upload_image(data.main_image, PRODUCT_BUCKET, "main") if data.main_image else None

    product = (await client.table("products").insert(_make_product_row(data)).single().execute()).data
    logger.info(f"Created product {product['id']} ({product['name']})")

    if main_url:
        await _register_image(product["id"], main_url, is_main=True)
    await _add_additional_images(product["id"], data.additional_images)
    return {"success": True, "data": product}


async def update_product(product_id: str, data: ProductIn) -> Dict[str, Any]:
    client = get_baas()
    updated = (
        await client.table("products")
        .update(_make_product_row(data, for_update=True))
        .eq("id", product_id)
        .single()
        .execute()
    ).data

    try:
        existing = (
            await client.table("product_images").select("id, url, is_main").eq("product_id", product_id).execute()
        ).data
    except BaaSError as e:
        logger.error(f"Failed to load images of product {product_id}: {e.message}")
        existing = []

    if data.main_image:
        new_url = await upload_image(data.main_image, PRODUCT_BUCKET, "main")
        old_main = next((img for img in existing if img.get("is_main")), None)
        if old_main:
            await _remove_objects(PRODUCT_BUCKET, [old_main.get("url")])
            await client.table("product_images").delete().eq("id", old_main["id"]).execute()
        await _register_image(product_id, new_url, is_main=True)

    # new additional images replace every previous one
    if data.additional_images:
        old_additional = [img for img in existing if not img.get("is_main")]
        if old_additional:
            await _remove_objects(PRODUCT_BUCKET, [img.get("url") for img in old_additional])
            await client.table("product_images").delete().in_("id", [img["id"] for img in old_additional]).execute()
        await _add_additional_images(product_id, data.additional_images)

    logger.info(f"Updated product {product_id}")
    return {"success": True, "data": updated}


async def delete_product(product_id: str) -> Dict[str, Any]:
    client = get_baas()
    try:
        await client.table("product_images").delete().eq("product_id", product_id).execute()
    except BaaSError as e:
        logger.error(f"Failed to delete images of product {product_id}: {e.message}")
    await client.table("products").delete().eq("id", product_id).execute()
    logger.info(f"Deleted product {product_id}")
    return {"success": True}


# ---------------------------
# Categories
# ---------------------------
async def fetch_categories(search: str = "") -> List[Dict[str, Any]]:
    query = get_baas().table("categories").select("*")
    if search:
        query = query.ilike("name", f"%{search}%")
    return (await query.execute()).data


async def create_category(data: CategoryIn) -> Dict[str, Any]:
    category = (await get_baas().table("categories").insert(_make_category_row(data)).single().execute()).data
    return {"success": True, "data": category}


async def update_category(category_id: str, data: CategoryIn) -> Dict[str, Any]:
    category = (
        await get_baas()
        .table("categories")
        .update(_make_category_row(data, for_update=True))
        .eq("id", category_id)
        .single()
        .execute()
    ).data
    return {"success": True, "data": category}


async def delete_category(category_id: str) -> Dict[str, Any]:
    await get_baas().table("categories").delete().eq("id", category_id).execute()
    return {"success": True}


# ---------------------------
# Plans
# ---------------------------
async def fetch_plans() -> List[Dict[str, Any]]:
    return (await get_baas().table("plans").select("id, name").order("name").execute()).data or []


async def _plans_by_id() -> Dict[Any, Dict[str, Any]]:
    try:
        plans = (await get_baas().table("plans").select("*").execute()).data
    except BaaSError as e:
        logger.error(f"Failed to load plans: {e.message}")
        return {}
    return {plan["id"]: plan for plan in plans}


# ---------------------------
# Distributors
# ---------------------------
async def fetch_distributors(filters: Optional[Dict[str, Any]] = None, search: str = "") -> List[Dict[str, Any]]:
    client = get_baas()
    query = client.table("distribuidores").select(DISTRIBUTOR_COLUMNS)
    if search:
        query = query.or_ilike(["name", "email"], search)

    plan_name = (filters or {}).get("plano")
    if plan_name:
        try:
            plan = (await client.table("plans").select("id").eq("name", plan_name).single().execute()).data
        except BaaSError as e:
            logger.error(f"Plan {plan_name!r} not found: {e.message}")
            return []
        query = query.eq("plan_id", plan["id"])

    rows = (await query.execute()).data or []
    plans = await _plans_by_id()
    for row in rows:
        row["plan"] = plans.get(row.get("plan_id"))
    return rows


async def fetch_distributors_simple() -> List[Dict[str, Any]]:
    return (await get_baas().table("distribuidores").select("id, name").order("name").execute()).data or []


async def _logo_fields(row: Dict[str, Any], logo: Optional[ImageIn], folder: str) -> Dict[str, Any]:
    if logo:
        row["logo_url"] = await upload_image(logo, LOGO_BUCKET, folder)
    elif not row.get("logo_url"):
        row["logo_url"] = None
    return row


async def create_distributor(data: DistributorIn) -> Dict[str, Any]:
    row = await _logo_fields(data.model_dump(exclude={"cnpj", "logo"}), data.logo, "distribuidores")
    distributor = (await get_baas().table("distribuidores").insert(row).single().execute()).data
    logger.info(f"Created distributor {distributor['id']} ({distributor['name']})")
    return {"success": True, "data": distributor}


async def update_distributor(distributor_id: str, data: DistributorIn) -> Dict[str, Any]:
    row = await _logo_fields(data.model_dump(exclude={"cnpj", "logo"}), data.logo, "distribuidores")
    distributor = (
        await get_baas().table("distribuidores").update(row).eq("id", distributor_id).single().execute()
    ).data
    distributor["plan"] = (await _plans_by_id()).get(distributor.get("plan_id"))
    logger.info(f"Updated distributor {distributor_id}")
    return {"success": True, "data": distributor}


async def delete_distributor(distributor_id: str) -> Dict[str, Any]:
    await get_baas().table("distribuidores").delete().eq("id", distributor_id).execute()
    return {"success": True}


# ---------------------------
# Partners
# ---------------------------
_PARTNER_DROPPED = {"cnpj", "plan_id", "distribuidor_id", "logo"}


async def fetch_partners(search: str = "") -> List[Dict[str, Any]]:
    query = get_baas().table("parceiros").select(PARTNER_COLUMNS).order("name")
    if search:
        query = query.or_ilike(["name", "email"], search)
    return (await query.execute()).data or []


async def create_partner(data: PartnerIn) -> Dict[str, Any]:
    row = await _logo_fields(data.model_dump(exclude=_PARTNER_DROPPED), data.logo, "parceiros")
    partner = (await get_baas().table("parceiros").insert(row).single().execute()).data
    return {"success": True, "data": partner}


async def update_partner(partner_id: str, data: PartnerIn) -> Dict[str, Any]:
    row = await _logo_fields(data.model_dump(exclude=_PARTNER_DROPPED), data.logo, "parceiros")
    partner = (await get_baas().table("parceiros").update(row).eq("id", partner_id).single().execute()).data
    return {"success": True, "data": partner}


async def delete_partner(partner_id: str) -> Dict[str, Any]:
    await get_baas().table("parceiros").delete().eq("id", partner_id).execute()
    return {"success": True}


# ---------------------------
# Users / profiles
# ---------------------------
async def fetch_users(filters: Optional[Dict[str, Any]] = None, search: str = "") -> List[Dict[str, Any]]:
    query = get_baas().table("profiles").select(PROFILE_COLUMNS).order("name")
    if search:
        query = query.or_ilike(["name", "email"], search)
    if (filters or {}).get("cargo"):
        query = query.eq("role", filters["cargo"])
    return (await query.execute()).data or []


async def create_user(data: UserCreateIn) -> Dict[str, Any]:
    client = get_baas()
    auth = await client.auth.sign_up(data.email, data.password, {"name": data.name, "role": data.role})
    if auth.user is None:
        raise AuthError("Failed to register user in authentication.")
    logger.info(f"Registered auth user {auth.user.id} for {data.email}")

    avatar_url = None
    if data.avatar:
        try:
            avatar_url = await upload_image(data.avatar, AVATAR_BUCKET, "public")
        except BaaSError as e:
            logger.error(f"Avatar upload failed, continuing without avatar: {e.message}")

    profile_row = {
        "id": auth.user.id,
        "name": data.name,
        "email": data.email,
        "company": data.company or None,
        "role": data.role,
        "phone": data.phone or None,
        "avatar_url": avatar_url,
    }
    try:
        profile = (await client.table("profiles").insert(profile_row).single().execute()).data
    except BaaSError as e:
        # the auth user stays registered; nothing rolls it back
        logger.error(f"Profile insert failed for {auth.user.id}: {e.message}")
        raise
    return {"success": True, "user": auth.user.model_dump(), "profile": profile}


async def update_user(user_id: str, data: UserUpdateIn) -> Dict[str, Any]:
    row = data.model_dump(exclude={"avatar", "password", "confirm_password"})
    if data.avatar:
        row["avatar_url"] = await upload_image(data.avatar, AVATAR_BUCKET, "public")
    elif not row.get("avatar_url"):
        row["avatar_url"] = None
    profile = (await get_baas().table("profiles").update(row).eq("id", user_id).single().execute()).data
    logger.info(f"Updated profile {user_id}")
    return {"success": True, "data": profile}


async def update_profile(user_id: str, data: ProfileUpdateIn) -> Dict[str, Any]:
    row = data.model_dump(exclude_unset=True, exclude={"current_password", "new_password", "confirm_password"})
    profile = (
        await get_baas().table("profiles").update(row).eq("id", user_id).select(PROFILE_COLUMNS).single().execute()
    ).data
    return {"success": True, "data": profile}


async def update_user_password(token: str, new_password: str) -> Dict[str, Any]:
    logger.warning("Updating password of the signed-in user without verifying the old one")
    await get_baas().auth.update_user(token, password=new_password)
    return {"success": True}


async def delete_user(user_id: str) -> Dict[str, Any]:
    logger.warning(f"Deleting profile {user_id} only; the auth user is left in place")
    await get_baas().table("profiles").delete().eq("id", user_id).execute()
    return {"success": True}


# ---------------------------
# Dashboard
# ---------------------------
async def _count(table: str) -> int:
    res = await get_baas().table(table).select("*", count=True, head=True).execute()
    return res.count or 0


async def fetch_counts() -> Dict[str, int]:
    results = await asyncio.gather(*(_count(t) for t in COUNTED_TABLES.values()), return_exceptions=True)
    counts = {}
    for (key, table), result in zip(COUNTED_TABLES.items(), results):
        if isinstance(result, BaseException):
            if not isinstance(result, BaaSError):
                raise result
            logger.error(f"Failed to count {table}: {result.message}")
            result = 0
        counts[key] = result
    logger.debug(f"Dashboard counts: {counts}")
    return counts
