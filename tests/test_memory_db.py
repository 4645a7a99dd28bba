# tests/test_memory_db.py
import asyncio

import pytest

from hub.database import MemoryBaaS
from hub.errors import BaaSError, NotFoundError


def run(query):
    return asyncio.run(query.execute())


def make_db():
    db = MemoryBaaS()
    run(db.table("products").insert([
        {"id": "1", "name": "Bourbon", "sku": "BRB", "status": "Ativo", "price": 50},
        {"id": "2", "name": "catuaí", "sku": "CTU", "status": "Inativo", "price": None},
        {"id": "3", "name": "Arábica", "sku": "ARA", "status": "Ativo", "price": 30},
    ]))
    return db


def test_insert_fills_id_and_created_at():
    db = MemoryBaaS()
    row = run(db.table("categories").insert({"name": "Cafés"}).single()).data
    assert row["id"]
    assert row["created_at"]


def test_duplicate_id_is_rejected():
    db = make_db()
    with pytest.raises(BaaSError) as exc:
        run(db.table("products").insert({"id": "1", "name": "dup"}))
    assert exc.value.code == "23505"
    assert exc.value.status == 409


def test_filters_and_projection():
    db = make_db()
    rows = run(db.table("products").select("id, name").eq("status", "Ativo")).data
    assert rows == [{"id": "1", "name": "Bourbon"}, {"id": "3", "name": "Arábica"}]
    assert [r["id"] for r in run(db.table("products").select().neq("status", "Ativo")).data] == ["2"]
    assert [r["id"] for r in run(db.table("products").select().in_("id", ["1", "2"])).data] == ["1", "2"]


def test_ilike_and_or_ilike_are_case_insensitive():
    db = make_db()
    assert [r["id"] for r in run(db.table("products").select().ilike("name", "%CATU%")).data] == ["2"]
    assert [r["id"] for r in run(db.table("products").select().ilike("name", "bour%")).data] == ["1"]
    assert [r["id"] for r in run(db.table("products").select().or_ilike(["name", "sku"], "ara")).data] == ["3"]


def test_order_puts_nulls_last_and_limit():
    db = make_db()
    rows = run(db.table("products").select("id").order("price")).data
    assert [r["id"] for r in rows] == ["3", "1", "2"]
    rows = run(db.table("products").select("id").order("price", ascending=False).limit(2)).data
    assert [r["id"] for r in rows] == ["1", "3"]


def test_single_errors():
    db = make_db()
    with pytest.raises(NotFoundError) as exc:
        run(db.table("products").select().eq("id", "404").single())
    assert exc.value.code == "PGRST116"
    with pytest.raises(BaaSError) as exc:
        run(db.table("products").select().eq("status", "Ativo").single())
    assert exc.value.status == 406


def test_update_and_delete_return_matched_rows():
    db = make_db()
    updated = run(db.table("products").update({"status": "Inativo"}).eq("id", "1").select("id, status")).data
    assert updated == [{"id": "1", "status": "Inativo"}]
    deleted = run(db.table("products").delete().eq("status", "Inativo")).data
    assert sorted(r["id"] for r in deleted) == ["1", "2"]
    assert [r["id"] for r in db.tables["products"]] == ["3"]


def test_rows_are_copied_out():
    db = make_db()
    row = run(db.table("products").select().eq("id", "1").single()).data
    row["name"] = "changed"
    assert db.tables["products"][0]["name"] == "Bourbon"


def test_count_head():
    db = make_db()
    res = run(db.table("products").select("*", count=True, head=True).eq("status", "Ativo"))
    assert res.count == 2
    assert res.data == []
    assert run(db.table("empty").select("*", count=True, head=True)).count == 0


def test_storage_refuses_overwrite_without_upsert():
    db = MemoryBaaS(public_url="https://cdn.example.com/")
    asyncio.run(db.storage.upload("logos", "a/b.png", b"1"))
    with pytest.raises(BaaSError) as exc:
        asyncio.run(db.storage.upload("logos", "a/b.png", b"2"))
    assert exc.value.status == 409
    asyncio.run(db.storage.upload("logos", "a/b.png", b"2", upsert=True))
    assert db.objects[("logos", "a/b.png")][0] == b"2"
    assert db.storage.get_public_url("logos", "a/b.png") == (
        "https://cdn.example.com/storage/v1/object/public/logos/a/b.png"
    )
    assert asyncio.run(db.storage.remove("logos", ["a/b.png", "missing.png"])) == ["a/b.png"]


def test_auto_confirmed_sign_up_returns_session():
    db = MemoryBaaS(auto_confirm=True)
    res = asyncio.run(db.auth.sign_up("New@Example.com", "s3cret-pass", {"name": "New"}))
    assert res.session is not None
    assert res.user.email == "new@example.com"
    user = asyncio.run(db.auth.get_user(res.session.access_token))
    assert user.user_metadata == {"name": "New"}
