"""
Fixtures compartidas.

- session / client: API con SQLite en memoria.
- FakeRemote: API remota simulada para httpx.MockTransport, con modos
  para simular caídas, lentitud y errores de escritura.
"""
import asyncio
import json
from datetime import date

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from medicall import models  # noqa: F401  registra las tablas
from medicall.database import get_session
from medicall.main import app
from medicall.models import Category, Contact, Outcome, Visit, VisitStatus
from medicall.services.api_client import RemoteApi
from medicall.services.store import MemoryStore
from medicall.services.sync import SyncService

BASE_URL = "http://remote.test/api"


# ============================================================================
# Base de datos / API
# ============================================================================

@pytest.fixture
def session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(session):
    def override_session():
        yield session

    app.dependency_overrides[get_session] = override_session
    yield TestClient(app)
    app.dependency_overrides.clear()


# ============================================================================
# Datos
# ============================================================================

def make_contact(contact_id="doc-1", executive="LUIS", name="DR. HOUSE", visits=None, **extra):
    return Contact(
        id=contact_id,
        category=extra.pop("category", Category.MEDICO),
        executive=executive,
        name=name,
        specialty=extra.pop("specialty", "CARDIOLOGÍA"),
        address=extra.pop("address", "AV. REFORMA 1"),
        visits=visits or [],
        **extra,
    )


def make_visit(visit_id="v-1", day=date(2024, 6, 10), time="10:00", outcome=Outcome.PLANEADA, **extra):
    return Visit(
        id=visit_id,
        date=day,
        time=time,
        outcome=outcome,
        status=extra.pop("status", VisitStatus.PLANNED),
        note=extra.pop("note", ""),
        objective=extra.pop("objective", "PRESENTAR PRODUCTO"),
        **extra,
    )


# ============================================================================
# API remota simulada
# ============================================================================

class FakeRemote:
    """
    Modos:
    - "ok": responde como el servidor real
    - "down": error de conexión
    - "slow": tarda más que cualquier timeout de test
    - "error": HTTP 500 en todo
    fail_writes=True hace fallar sólo POST/DELETE.
    """

    def __init__(self):
        self.collections = {"doctors": {}, "timeoff": {}, "procedures": {}}
        self.mode = "ok"
        self.fail_writes = False
        self.calls = []

    def seed(self, name, items):
        for item in items:
            data = item.to_wire() if hasattr(item, "to_wire") else item
            self.collections[name][data["id"]] = data

    def writes(self):
        return [c for c in self.calls if c[0] != "GET"]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        parts = request.url.path.strip("/").split("/")[1:]  # sin "api"
        self.calls.append((method, "/" + "/".join(parts)))

        if self.mode == "down":
            raise httpx.ConnectError("connection refused", request=request)
        if self.mode == "slow":
            await asyncio.sleep(5)
        if self.mode == "error" or (self.fail_writes and method != "GET"):
            return httpx.Response(500, json={"error": "boom"})

        store = self.collections[parts[0]]
        if method == "GET":
            return httpx.Response(200, json=list(store.values()))
        if method == "POST" and len(parts) == 2 and parts[1] == "bulk":
            items = json.loads(request.content)
            for item in items:
                store[item["id"]] = item
            return httpx.Response(200, json={"success": True, "count": len(items)})
        if method == "POST":
            item = json.loads(request.content)
            store[item["id"]] = item
            return httpx.Response(200, json={"success": True})
        if method == "DELETE" and len(parts) == 3 and parts[1] == "clear":
            doomed = [k for k, v in store.items() if v.get("category") == parts[2]]
            for key in doomed:
                del store[key]
            return httpx.Response(200, json={"success": True, "count": len(doomed)})
        if method == "DELETE":
            store.pop(parts[1], None)
            return httpx.Response(200, json={"success": True})
        return httpx.Response(404, json={"error": "not found"})


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def memory_store():
    return MemoryStore(version="v5")


def build_sync(remote, store=None, timeout=0.2, seed=None):
    api = RemoteApi(base_url=BASE_URL, timeout=timeout, transport=httpx.MockTransport(remote.handler))
    kwargs = {}
    if seed is not None:
        kwargs["seed_loader"] = lambda: list(seed)
    return SyncService(api, store or MemoryStore(), timeout=timeout, **kwargs)


def run(coro):
    return asyncio.run(coro)
