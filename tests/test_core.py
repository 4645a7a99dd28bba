# tests/test_core.py
from hub.core import (
    ImageIn,
    ProductIn,
    _make_product_row,
    discount_percentage,
    normalize_status,
    path_from_public_url,
    slugify,
)
from sdk.pyhub import image_payload


def test_slugify():
    assert slugify("Café Bourbon Amarelo") == "cafe-bourbon-amarelo"
    assert slugify("  Chás & Infusões!  ") == "chas-infusoes"


def test_normalize_status():
    assert normalize_status("ATIVO") == "Ativo"
    assert normalize_status("inativo") == "Inativo"
    assert normalize_status("pausado") is None
    assert normalize_status(None) is None


def test_discount_percentage():
    assert discount_percentage(100, 75) == 25.0
    assert discount_percentage(100, None) is None
    assert discount_percentage(100, 120) is None
    assert discount_percentage(0, 10) is None


def test_product_row_slug_only_generated_on_create():
    data = ProductIn(name="Café Geisha", real_price=129, promo_price=99, status="inativo")
    row = _make_product_row(data)
    assert row["slug"] == "cafe-geisha"
    assert row["status"] == "Inativo"
    assert "main_image" not in row
    assert "slug" not in _make_product_row(data, for_update=True)
    assert _make_product_row(ProductIn(name="x", slug="Novo Slug"), for_update=True)["slug"] == "novo-slug"


def test_path_from_public_url():
    url = "https://p.example.co/storage/v1/object/public/product-images/main/abc.png"
    assert path_from_public_url(url) == "main/abc.png"
    assert path_from_public_url("https://elsewhere.com/a.png") is None
    assert path_from_public_url(None) is None


def test_image_payload_is_accepted_by_the_api(tmp_path):
    path = tmp_path / "logo.png"
    path.write_bytes(b"\x89PNG\r\n")
    image = ImageIn(**image_payload(str(path)))
    assert image.filename == "logo.png"
    assert image.content_type == "image/png"
    assert image.content() == b"\x89PNG\r\n"
