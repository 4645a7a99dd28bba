# tests/conftest.py
import pytest

from hub.baas import set_baas
from hub.database import MemoryBaaS
from hub.errors import BaaSError


class FailingBaaS(MemoryBaaS):
    """Memory backend whose chosen tables and upload folders answer 503."""

    def __init__(self, tables=(), folders=(), **kwargs):
        super().__init__(**kwargs)
        self.failing_tables = set(tables)
        self.failing_folders = set(folders)
        upload = self.storage.upload

        async def flaky_upload(bucket, path, content, **options):
            if path.split("/", 1)[0] in self.failing_folders:
                raise BaaSError(f"storage down for {bucket}/{path}", status=503)
            return await upload(bucket, path, content, **options)

        self.storage.upload = flaky_upload

    def table(self, name):
        query = super().table(name)
        if name in self.failing_tables:
            async def fail():
                raise BaaSError(f"{name} down", status=503)

            query.execute = fail
        return query


@pytest.fixture
def failing_baas():
    """Install a FailingBaaS as the process backend for one test."""
    def install(tables=(), folders=()):
        baas = FailingBaaS(tables, folders)
        set_baas(baas)
        return baas

    yield install
    set_baas(None)
