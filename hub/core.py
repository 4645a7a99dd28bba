# hub/core.py
import base64
import binascii
import re
import unicodedata
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, field_validator

from .models import RecordId

STATUSES = ("Ativo", "Inativo")

# ---------------------------
# Pydantic schemas
# ---------------------------
class ImageIn(BaseModel):
    filename: str
    content_base64: str
    content_type: Optional[str] = None

    @field_validator("content_base64")
    @classmethod
    def _valid_base64(cls, v: str) -> str:
        try:
            base64.b64decode(v, validate=True)
        except (binascii.Error, ValueError):
            raise ValueError("content_base64 is not valid base64")
        return v

    def content(self) -> bytes:
        return base64.b64decode(self.content_base64)


class CredentialsIn(BaseModel):
    email: str
    password: str


class RegisterIn(BaseModel):
    name: str
    email: str
    password: str


class EmailIn(BaseModel):
    email: str


class PasswordIn(BaseModel):
    new_password: str


class ProductIn(BaseModel):
    name: str
    slug: Optional[str] = None
    subtitle: Optional[str] = None
    mini_description: Optional[str] = None
    description: Optional[str] = None
    real_price: float = 0
    promo_price: Optional[float] = None
    sku: Optional[str] = None
    status: str = "Ativo"
    tipo: str = "Produto"
    category_id: Optional[RecordId] = None
    video_embed: Optional[str] = None
    button_link: Optional[str] = None
    main_image: Optional[ImageIn] = None
    additional_images: List[ImageIn] = []


class CategoryIn(BaseModel):
    name: str
    slug: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_active: bool = True


class DistributorIn(BaseModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    cidade: Optional[str] = None
    estado: Optional[str] = None
    instagram: Optional[str] = None
    status: str = "Ativo"
    logo_url: Optional[str] = None
    plan_id: Optional[RecordId] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    cnpj: Optional[str] = None
    logo: Optional[ImageIn] = None


class PartnerIn(BaseModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    cidade: Optional[str] = None
    estado: Optional[str] = None
    instagram: Optional[str] = None
    status: str = "Ativo"
    logo_url: Optional[str] = None
    # accepted from older forms, never stored
    cnpj: Optional[str] = None
    plan_id: Optional[RecordId] = None
    distribuidor_id: Optional[RecordId] = None
    logo: Optional[ImageIn] = None


class UserCreateIn(BaseModel):
    name: str
    email: str
    password: str
    role: str = "Colaborador"
    company: Optional[str] = None
    phone: Optional[str] = None
    avatar: Optional[ImageIn] = None


class UserUpdateIn(BaseModel):
    name: str
    email: str
    role: str = "Colaborador"
    company: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = None
    avatar: Optional[ImageIn] = None


class ProfileUpdateIn(BaseModel):
    name: Optional[str] = None
    company: Optional[str] = None
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    current_password: Optional[str] = None
    new_password: Optional[str] = None
    confirm_password: Optional[str] = None


class UploadIn(BaseModel):
    folder: str
    image: ImageIn


# ---------------------------
# Helpers
# ---------------------------
def slugify(text: str) -> str:
    normalized = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9]+", "-", normalized.lower()).strip("-")


def normalize_status(value: Optional[str]) -> Optional[str]:
    """'ativo' / 'ATIVO' -> 'Ativo'; anything else -> None."""
    if not value:
        return None
    status = value[:1].upper() + value[1:].lower()
    return status if status in STATUSES else None


def discount_percentage(real_price: Optional[float], promo_price: Optional[float]) -> Optional[float]:
    if not real_price or promo_price is None or promo_price >= real_price:
        return None
    return round((real_price - promo_price) / real_price * 100, 2)


def _make_product_row(p: ProductIn, for_update: bool = False) -> Dict[str, Any]:
    row = p.model_dump(exclude={"main_image", "additional_images", "slug"})
    row["status"] = normalize_status(p.status) or "Ativo"
    row["discount_percentage"] = discount_percentage(p.real_price, p.promo_price)
    if p.slug:
        row["slug"] = slugify(p.slug)
    elif not for_update:
        row["slug"] = slugify(p.name)
    return row


def _make_category_row(c: CategoryIn, for_update: bool = False) -> Dict[str, Any]:
    row = c.model_dump(exclude={"slug"})
    if c.slug:
        row["slug"] = slugify(c.slug)
    elif not for_update:
        row["slug"] = slugify(c.name)
    return row


def path_from_public_url(url: Optional[str], prefix: str = "/storage/v1/object/public/") -> Optional[str]:
    """Object path inside its bucket, from a public storage URL."""
    if not url:
        return None
    path = urlparse(url).path
    if prefix not in path:
        return None
    rest = path.split(prefix, 1)[1]
    bucket, _, object_path = rest.partition("/")
    return object_path or None
