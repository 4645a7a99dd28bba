# hub/main.py
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel

from . import catalog, locator, panel
from .baas import get_baas
from .config import get_settings
from .core import (
    CategoryIn,
    CredentialsIn,
    DistributorIn,
    EmailIn,
    PartnerIn,
    PasswordIn,
    ProductIn,
    ProfileUpdateIn,
    RegisterIn,
    UploadIn,
    UserCreateIn,
    UserUpdateIn,
)
from .database import MemoryBaaS
from .errors import register_exception_handlers
from .geo import parse_distance_filter
from .log import configure_logging
from .models import (
    AuthResponse,
    AuthSession,
    AuthUser,
    Category,
    Counts,
    Distributor,
    GeocodingStatus,
    NearbyDistributor,
    Partner,
    Place,
    Plan,
    Product,
    ProductDetail,
    Profile,
)

settings = get_settings()
configure_logging(settings.log_level)

app = FastAPI(title="distributor-hub (catalog, locator, panel)")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(app)


# ---------------------------
# Auth dependencies
# ---------------------------
def _bearer(authorization: Optional[str]) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="missing bearer token")
    return authorization.split(" ", 1)[1].strip()


async def bearer_token(authorization: Optional[str] = Header(None)) -> str:
    return _bearer(authorization)


async def current_user(token: str = Depends(bearer_token)) -> AuthUser:
    return await get_baas().auth.get_user(token)


async def admin_user(user: AuthUser = Depends(current_user)) -> AuthUser:
    if not await panel.is_admin(user):
        logger.info(f"{user.email} is not an administrator")
        raise HTTPException(status_code=403, detail="administrator role required")
    return user


@app.get("/health")
async def health():
    return {"status": "ok", "backend": get_settings().baas_backend}


# ---------------------------
# Catalog
# ---------------------------
@app.get("/catalog/categories", response_model=List[Category])
async def catalog_categories():
    return await catalog.get_categories()


@app.get("/catalog/categories/{slug}/products", response_model=List[Product])
async def catalog_category_products(slug: str):
    return await catalog.get_products_by_category(slug)


@app.get("/catalog/products/{slug}", response_model=ProductDetail)
async def catalog_product(slug: str):
    return await catalog.get_product_by_slug(slug)


@app.get("/catalog/products/{slug}/related", response_model=List[Product])
async def catalog_related(slug: str, category: str = Query(..., min_length=1)):
    return await catalog.get_related_products(category, slug)


# ---------------------------
# Catalog auth
# ---------------------------
@app.post("/auth/sign-in", response_model=AuthSession)
async def auth_sign_in(payload: CredentialsIn):
    return await catalog.sign_in(payload.email, payload.password)


@app.post("/auth/sign-up", response_model=AuthResponse, status_code=201)
async def auth_sign_up(payload: CredentialsIn):
    return await catalog.sign_up(payload.email, payload.password)


@app.post("/auth/sign-out")
async def auth_sign_out(token: str = Depends(bearer_token)):
    await catalog.sign_out(token)
    return {"success": True}


@app.post("/auth/reset-password")
async def auth_reset_password(payload: EmailIn):
    await catalog.reset_password(payload.email)
    return {"success": True}


@app.get("/auth/me", response_model=AuthUser)
async def auth_me(token: str = Depends(bearer_token)):
    return await catalog.get_current_user(token)


# ---------------------------
# Distributor locator
# ---------------------------
class MapView(BaseModel):
    distributors: List[Dict[str, Any]]
    status: GeocodingStatus


@app.get("/locator/distributors", response_model=List[Distributor])
async def locator_distributors():
    return await locator.get_distributors()


@app.get("/locator/nearby", response_model=List[NearbyDistributor])
async def locator_nearby(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius: Optional[float] = Query(None, gt=0),
    distance: Optional[str] = Query(None, description="distance filter such as '50km'"),
):
    if radius is None and distance:
        try:
            radius = parse_distance_filter(distance)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
    return await locator.get_distributors_by_distance(lat, lng, radius)


@app.get("/locator/addresses", response_model=List[Place])
async def locator_addresses(q: str = Query(..., min_length=1)):
    return await locator.search_addresses(q)


@app.get("/locator/reverse", response_model=Place)
async def locator_reverse(lat: float = Query(..., ge=-90, le=90), lng: float = Query(..., ge=-180, le=180)):
    return await locator.locate(lat, lng)


@app.get("/locator/map", response_model=MapView)
async def locator_map():
    placed, status = await locator.geocode_distributors()
    return {"distributors": placed, "status": status}


# ---------------------------
# Panel: auth
# ---------------------------
@app.post("/panel/login")
async def panel_login(payload: CredentialsIn):
    return await panel.login(payload.email, payload.password)


@app.post("/panel/register", status_code=201)
async def panel_register(payload: RegisterIn):
    return await panel.register(payload.name, payload.email, payload.password)


@app.get("/panel/me", response_model=Optional[Profile])
async def panel_me(user: AuthUser = Depends(current_user)):
    return await panel.get_current_profile(user)


@app.get("/panel/counts", response_model=Counts)
async def panel_counts(user: AuthUser = Depends(current_user)):
    return await panel.fetch_counts()


@app.post("/panel/uploads/{bucket}", status_code=201)
async def panel_upload(bucket: str, payload: UploadIn, user: AuthUser = Depends(current_user)):
    url = await panel.upload_image(payload.image, bucket, payload.folder)
    return {"url": url}


# ---------------------------
# Panel: products
# ---------------------------
@app.get("/panel/products")
async def panel_products(
    q: str = "",
    status: Optional[str] = None,
    tipo: Optional[str] = None,
    categoria: Optional[str] = None,
    user: AuthUser = Depends(current_user),
):
    filters = {"status": status, "tipo": tipo, "categoria": categoria}
    return await panel.fetch_products(filters, q)


@app.get("/panel/products/{product_id}")
async def panel_product(product_id: str, user: AuthUser = Depends(current_user)):
    return await panel.get_product(product_id)


@app.post("/panel/products", status_code=201)
async def panel_create_product(payload: ProductIn, user: AuthUser = Depends(current_user)):
    return await panel.create_product(payload)


@app.put("/panel/products/{product_id}")
async def panel_update_product(product_id: str, payload: ProductIn, user: AuthUser = Depends(current_user)):
    return await panel.update_product(product_id, payload)


@app.delete("/panel/products/{product_id}")
async def panel_delete_product(product_id: str, user: AuthUser = Depends(current_user)):
    return await panel.delete_product(product_id)


# ---------------------------
# Panel: categories
# ---------------------------
@app.get("/panel/categories", response_model=List[Category])
async def panel_categories(q: str = "", user: AuthUser = Depends(current_user)):
    return await panel.fetch_categories(q)


@app.post("/panel/categories", status_code=201)
async def panel_create_category(payload: CategoryIn, user: AuthUser = Depends(current_user)):
    return await panel.create_category(payload)


@app.put("/panel/categories/{category_id}")
async def panel_update_category(category_id: str, payload: CategoryIn, user: AuthUser = Depends(current_user)):
    return await panel.update_category(category_id, payload)


@app.delete("/panel/categories/{category_id}")
async def panel_delete_category(category_id: str, user: AuthUser = Depends(current_user)):
    return await panel.delete_category(category_id)


# ---------------------------
# Panel: plans, distributors, partners
# ---------------------------
@app.get("/panel/plans", response_model=List[Plan])
async def panel_plans(user: AuthUser = Depends(current_user)):
    return await panel.fetch_plans()


@app.get("/panel/distributors")
async def panel_distributors(q: str = "", plano: Optional[str] = None, user: AuthUser = Depends(current_user)):
    return await panel.fetch_distributors({"plano": plano}, q)


@app.get("/panel/distributors/simple")
async def panel_distributors_simple(user: AuthUser = Depends(current_user)):
    return await panel.fetch_distributors_simple()


@app.post("/panel/distributors", status_code=201)
async def panel_create_distributor(payload: DistributorIn, user: AuthUser = Depends(current_user)):
    return await panel.create_distributor(payload)


@app.put("/panel/distributors/{distributor_id}")
async def panel_update_distributor(
    distributor_id: str, payload: DistributorIn, user: AuthUser = Depends(current_user)
):
    return await panel.update_distributor(distributor_id, payload)


@app.delete("/panel/distributors/{distributor_id}")
async def panel_delete_distributor(distributor_id: str, user: AuthUser = Depends(current_user)):
    return await panel.delete_distributor(distributor_id)


@app.get("/panel/partners", response_model=List[Partner])
async def panel_partners(q: str = "", user: AuthUser = Depends(current_user)):
    return await panel.fetch_partners(q)


@app.post("/panel/partners", status_code=201)
async def panel_create_partner(payload: PartnerIn, user: AuthUser = Depends(current_user)):
    return await panel.create_partner(payload)


@app.put("/panel/partners/{partner_id}")
async def panel_update_partner(partner_id: str, payload: PartnerIn, user: AuthUser = Depends(current_user)):
    return await panel.update_partner(partner_id, payload)


@app.delete("/panel/partners/{partner_id}")
async def panel_delete_partner(partner_id: str, user: AuthUser = Depends(current_user)):
    return await panel.delete_partner(partner_id)


# ---------------------------
# Panel: users and profile
# ---------------------------
@app.get("/panel/users", response_model=List[Profile])
async def panel_users(q: str = "", cargo: Optional[str] = None, user: AuthUser = Depends(current_user)):
    return await panel.fetch_users({"cargo": cargo}, q)


@app.post("/panel/users", status_code=201)
async def panel_create_user(payload: UserCreateIn, user: AuthUser = Depends(admin_user)):
    return await panel.create_user(payload)


@app.put("/panel/users/{user_id}")
async def panel_update_user(user_id: str, payload: UserUpdateIn, user: AuthUser = Depends(admin_user)):
    return await panel.update_user(user_id, payload)


@app.delete("/panel/users/{user_id}")
async def panel_delete_user(user_id: str, user: AuthUser = Depends(admin_user)):
    return await panel.delete_user(user_id)


@app.put("/panel/profile")
async def panel_update_profile(payload: ProfileUpdateIn, user: AuthUser = Depends(current_user)):
    return await panel.update_profile(user.id, payload)


@app.put("/panel/password")
async def panel_update_password(payload: PasswordIn, token: str = Depends(bearer_token)):
    return await panel.update_user_password(token, payload.new_password)


# ---------------------------
# Utility: reset (for tests/demo)
# ---------------------------
@app.post("/reset")
async def reset_all():
    client = get_baas()
    if not isinstance(client, MemoryBaaS):
        raise HTTPException(status_code=403, detail="reset is only available on the memory backend")
    client.reset()
    return {"status": "reset"}
