# hub/models.py
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict

# PostgREST tables may use integer keys; the memory backend assigns hex strings
RecordId = Union[int, str]


class Record(BaseModel):
    # rows come straight from managed tables; unknown columns pass through
    model_config = ConfigDict(extra="allow")


class Category(Record):
    id: RecordId
    name: str
    slug: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_active: Optional[bool] = True
    created_at: Optional[str] = None


class ProductImage(Record):
    id: Optional[RecordId] = None
    product_id: Optional[RecordId] = None
    url: str
    is_main: bool = False


class Product(Record):
    id: RecordId
    name: str
    slug: Optional[str] = None
    subtitle: Optional[str] = None
    sku: Optional[str] = None
    status: Optional[str] = None
    tipo: Optional[str] = None
    real_price: Optional[float] = None
    promo_price: Optional[float] = None
    category_id: Optional[RecordId] = None
    created_at: Optional[str] = None


class ProductDetail(Product):
    mini_description: Optional[str] = None
    description: Optional[str] = None
    discount_percentage: Optional[float] = None
    video_embed: Optional[str] = None
    button_link: Optional[str] = None
    images: List[ProductImage] = []
    main_image_url: Optional[str] = None


class Plan(Record):
    id: RecordId
    name: str


class Distributor(Record):
    id: RecordId
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    cidade: Optional[str] = None
    estado: Optional[str] = None
    instagram: Optional[str] = None
    logo_url: Optional[str] = None
    plan_id: Optional[RecordId] = None
    plan: Optional[Plan] = None


class NearbyDistributor(Distributor):
    distance_km: float
    distance: Optional[str] = None
    full_address: str = ""
    show_distance: bool = False
    whatsapp_url: Optional[str] = None
    maps_url: Optional[str] = None
    initials: str = ""


class Partner(Record):
    id: RecordId
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    cidade: Optional[str] = None
    estado: Optional[str] = None
    status: Optional[str] = None
    instagram: Optional[str] = None
    logo_url: Optional[str] = None


class Profile(Record):
    id: RecordId
    name: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None
    role: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None


class Counts(BaseModel):
    products: int = 0
    distributors: int = 0
    partners: int = 0
    categories: int = 0


# ---------------------------
# Auth
# ---------------------------
class AuthUser(BaseModel):
    id: str
    email: Optional[str] = None
    email_confirmed_at: Optional[str] = None
    user_metadata: Dict[str, Any] = {}


class AuthSession(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: AuthUser


class AuthResponse(BaseModel):
    user: Optional[AuthUser] = None
    session: Optional[AuthSession] = None


# ---------------------------
# Geocoding
# ---------------------------
class Place(BaseModel):
    display_name: str
    lat: float
    lng: float
    city: Optional[str] = None
    state: Optional[str] = None
    state_code: Optional[str] = None


class GeocodingStatus(BaseModel):
    total: int = 0
    processed: int = 0
    succeeded: int = 0
