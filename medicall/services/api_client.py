import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx
from pydantic import ValidationError

from ..config import API_BASE_URL, SYNC_TIMEOUT_SECONDS
from ..errors import RemoteUnavailable
from ..models import Contact, Procedure, TimeOffEvent

logger = logging.getLogger(__name__)


@dataclass
class RemoteSnapshot:
    contacts: list[Contact] = field(default_factory=list)
    time_off: list[TimeOffEvent] = field(default_factory=list)
    procedures: list[Procedure] = field(default_factory=list)


class RemoteApi:
    """
    Cliente de la API REST (/doctors, /timeoff, /procedures).

    Los fallos de la petición (red, timeout, status no-2xx, JSON
    inesperado) se convierten en RemoteUnavailable; quien llama decide si
    cae a caché. Un documento individual inválido sólo se omite.
    """

    def __init__(
        self,
        base_url: str = API_BASE_URL,
        timeout: float = SYNC_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, json=None):
        try:
            resp = await self._client.request(method, path, json=json)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise RemoteUnavailable(
                f"{method} {path} -> HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise RemoteUnavailable(f"{method} {path} -> {exc!r}") from exc
        try:
            return resp.json()
        except ValueError as exc:
            raise RemoteUnavailable(f"{method} {path} -> respuesta no JSON") from exc

    async def _fetch_list(self, path: str, model):
        data = await self._request("GET", path)
        if not isinstance(data, list):
            raise RemoteUnavailable(f"GET {path} -> se esperaba una lista")
        items = []
        for index, item in enumerate(data):
            try:
                items.append(model.model_validate(item))
            except ValidationError as exc:
                # un documento roto no tumba la colección entera
                item_id = item.get("id") if isinstance(item, dict) else None
                logger.warning("GET %s: documento %s (%s) ignorado: %s", path, index, item_id, exc)
        return items

    # ---- lecturas ----

    async def fetch_contacts(self) -> list[Contact]:
        return await self._fetch_list("/doctors", Contact)

    async def fetch_time_off(self) -> list[TimeOffEvent]:
        return await self._fetch_list("/timeoff", TimeOffEvent)

    async def fetch_procedures(self) -> list[Procedure]:
        return await self._fetch_list("/procedures", Procedure)

    async def fetch_all(self) -> RemoteSnapshot:
        contacts, time_off, procedures = await asyncio.gather(
            self.fetch_contacts(),
            self.fetch_time_off(),
            self.fetch_procedures(),
        )
        return RemoteSnapshot(contacts=contacts, time_off=time_off, procedures=procedures)

    # ---- escrituras (upsert por id) ----

    async def upsert_contact(self, contact: Contact) -> dict:
        return await self._request("POST", "/doctors", json=contact.to_wire())

    async def bulk_upsert_contacts(self, contacts: list[Contact]) -> dict:
        return await self._request("POST", "/doctors/bulk", json=[c.to_wire() for c in contacts])

    async def delete_contact(self, contact_id: str) -> dict:
        return await self._request("DELETE", f"/doctors/{contact_id}")

    async def clear_category(self, category: str) -> dict:
        return await self._request("DELETE", f"/doctors/clear/{category}")

    async def upsert_time_off(self, event: TimeOffEvent) -> dict:
        return await self._request("POST", "/timeoff", json=event.to_wire())

    async def delete_time_off(self, event_id: str) -> dict:
        return await self._request("DELETE", f"/timeoff/{event_id}")

    async def upsert_procedure(self, procedure: Procedure) -> dict:
        return await self._request("POST", "/procedures", json=procedure.to_wire())

    async def delete_procedure(self, procedure_id: str) -> dict:
        return await self._request("DELETE", f"/procedures/{procedure_id}")
