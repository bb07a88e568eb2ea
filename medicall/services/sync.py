"""
Sincronización entre el estado local (optimista) y la API remota.

- Arranque: descarga todo con timeout; si falla, caché local o seed.
- Resync en segundo plano sólo con la vista visible.
- Escrituras: primero local y en el momento, luego la API por el outbox.
  Un fallo remoto no deshace nada: lo local manda.

Las colecciones se reemplazan enteras en cada cambio, nunca se editan en
sitio, así nadie observa un estado a medio aplicar.
"""
import asyncio
import logging
from enum import Enum
from typing import Callable, Iterable, Optional

from pydantic import ValidationError

from ..config import CACHE_DIR, CACHE_VERSION, RESYNC_INTERVAL_SECONDS, SYNC_TIMEOUT_SECONDS
from ..errors import NotFoundError, RemoteUnavailable
from ..models import Category, Contact, Procedure, TimeOffEvent, User
from .api_client import RemoteApi, RemoteSnapshot
from .csv_io import load_seed_contacts
from .outbox import Outbox
from .store import (
    CacheStore,
    JsonFileStore,
    KEY_CONTACTS,
    KEY_PROCEDURES,
    KEY_SIDEBAR_COLLAPSED,
    KEY_TIMEOFF,
    KEY_USER,
)

logger = logging.getLogger(__name__)

OFFLINE_MESSAGE = "Modo Local: El servidor no responde o la base de datos está fuera de línea."


class ConnectionStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


class SyncService:
    def __init__(
        self,
        api: RemoteApi,
        store: CacheStore,
        seed_loader: Callable[[], list[Contact]] = load_seed_contacts,
        timeout: float = SYNC_TIMEOUT_SECONDS,
        interval: float = RESYNC_INTERVAL_SECONDS,
        outbox: Optional[Outbox] = None,
    ):
        self.api = api
        self.store = store
        self.seed_loader = seed_loader
        self.timeout = timeout
        self.interval = interval
        self.outbox = outbox or Outbox()

        self.contacts: list[Contact] = []
        self.time_off: list[TimeOffEvent] = []
        self.procedures: list[Procedure] = []

        self.status = ConnectionStatus.OFFLINE
        self.syncing = False
        self.last_error: Optional[str] = None
        self._stop = asyncio.Event()

    # ---------- caché ----------

    def save_cache(self) -> None:
        self.store.save(KEY_CONTACTS, [c.to_wire() for c in self.contacts])
        self.store.save(KEY_PROCEDURES, [p.to_wire() for p in self.procedures])
        self.store.save(KEY_TIMEOFF, [t.to_wire() for t in self.time_off])

    def _load_cached(self, key: str, model) -> Optional[list]:
        raw = self.store.load(key)
        if raw is None:
            return None
        try:
            return [model.model_validate(item) for item in raw]
        except ValidationError as exc:
            logger.warning("Snapshot %s inválido, se descarta: %s", key, exc)
            return None

    def load_from_cache(self) -> bool:
        """
        Restaura el último snapshot. Devuelve False si no había contactos
        guardados.
        """
        contacts = self._load_cached(KEY_CONTACTS, Contact)
        procedures = self._load_cached(KEY_PROCEDURES, Procedure)
        time_off = self._load_cached(KEY_TIMEOFF, TimeOffEvent)
        if procedures is not None:
            self.procedures = procedures
        if time_off is not None:
            self.time_off = time_off
        if contacts is None:
            return False
        self.contacts = contacts
        return True

    def _fall_back_locally(self) -> None:
        if self.load_from_cache():
            logger.info("Usando caché local: %s contactos", len(self.contacts))
            return
        self.contacts = self.seed_loader()
        logger.info("Sin caché: usando seed incluido (%s contactos)", len(self.contacts))

    # ---------- lectura remota ----------

    def _go_offline(self, exc: BaseException) -> None:
        self.status = ConnectionStatus.OFFLINE
        self.last_error = OFFLINE_MESSAGE
        logger.warning("[SYNC] API no disponible: %r", exc)

    def _apply_remote(self, snapshot: RemoteSnapshot) -> None:
        if snapshot.contacts:
            self.contacts = list(snapshot.contacts)
        else:
            # API vacía: se conserva lo local y se sube en una sola llamada
            if not self.contacts:
                self.contacts = self.seed_loader()
            batch = list(self.contacts)
            if batch:
                logger.info("[SYNC] API sin contactos, subiendo %s locales", len(batch))
                self.outbox.post("bulk seed", lambda: self.api.bulk_upsert_contacts(batch))
        self.time_off = list(snapshot.time_off)
        self.procedures = list(snapshot.procedures)
        self.status = ConnectionStatus.ONLINE
        self.last_error = None
        self.save_cache()

    async def _fetch(self) -> RemoteSnapshot:
        return await asyncio.wait_for(self.api.fetch_all(), timeout=self.timeout)

    async def startup(self) -> ConnectionStatus:
        """
        Primera carga. Nunca lanza: si la API falla, queda en modo local.
        """
        self.syncing = True
        try:
            snapshot = await self._fetch()
        except (RemoteUnavailable, asyncio.TimeoutError) as exc:
            self._go_offline(exc)
            self._fall_back_locally()
        else:
            self._apply_remote(snapshot)
            logger.info("[SYNC] Conectado: %s contactos", len(self.contacts))
        finally:
            self.syncing = False
        return self.status

    async def resync(self) -> ConnectionStatus:
        """
        Refresco silencioso. Un fallo sólo cambia el indicador de estado,
        no borra lo que ya está cargado.
        """
        self.syncing = True
        try:
            snapshot = await self._fetch()
        except (RemoteUnavailable, asyncio.TimeoutError) as exc:
            self._go_offline(exc)
        else:
            self._apply_remote(snapshot)
        finally:
            self.syncing = False
        return self.status

    async def tick(self, visible: bool) -> bool:
        """Un ciclo del polling. Con la pestaña oculta no se consulta nada."""
        if not visible:
            return False
        await self.resync()
        return True

    async def run_background(self, is_visible: Callable[[], bool]) -> None:
        self._stop.clear()
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                await self.tick(is_visible())

    def stop(self) -> None:
        self._stop.set()

    # ---------- escrituras optimistas ----------

    def _commit(self) -> None:
        self.save_cache()

    def get_contact(self, contact_id: str) -> Contact:
        for contact in self.contacts:
            if contact.id == contact_id:
                return contact
        raise NotFoundError(f"Contacto {contact_id} no encontrado")

    def find_contact(self, contact_id: str) -> Optional[Contact]:
        try:
            return self.get_contact(contact_id)
        except NotFoundError:
            return None

    def add_contact(self, contact: Contact) -> None:
        self.contacts = [contact, *[c for c in self.contacts if c.id != contact.id]]
        self._commit()
        self.outbox.post(f"contact {contact.id}", lambda: self.api.upsert_contact(contact))

    def update_contact(self, contact: Contact) -> None:
        self.get_contact(contact.id)
        self.contacts = [contact if c.id == contact.id else c for c in self.contacts]
        self._commit()
        self.outbox.post(f"contact {contact.id}", lambda: self.api.upsert_contact(contact))

    def delete_contact(self, contact_id: str) -> None:
        # las visitas viajan dentro del contacto: se van con él
        self.contacts = [c for c in self.contacts if c.id != contact_id]
        self._commit()
        self.outbox.post(f"delete contact {contact_id}", lambda: self.api.delete_contact(contact_id))

    def clear_category(self, category: Category) -> int:
        before = len(self.contacts)
        self.contacts = [c for c in self.contacts if c.category != category]
        self._commit()
        self.outbox.post(f"clear {category.value}", lambda: self.api.clear_category(category.value))
        return before - len(self.contacts)

    def replace_contacts(self, contacts: Iterable[Contact]) -> None:
        """Reemplazo sólo local (p. ej. tras reordenar); no toca la API."""
        self.contacts = list(contacts)
        self._commit()

    def import_contacts(self, batch: list[Contact]) -> int:
        """
        Upsert local por id y una única llamada bulk. Repetir el mismo lote
        deja el mismo conjunto de contactos.
        """
        if not batch:
            return 0
        incoming = {c.id: c for c in batch}
        merged = [incoming.pop(c.id, c) for c in self.contacts]
        self.contacts = merged + list(incoming.values())
        self._commit()
        batch = list(batch)
        self.outbox.post(f"bulk {len(batch)}", lambda: self.api.bulk_upsert_contacts(batch))
        return len(batch)

    def add_time_off(self, event: TimeOffEvent) -> None:
        self.time_off = [*[t for t in self.time_off if t.id != event.id], event]
        self._commit()
        self.outbox.post(f"timeoff {event.id}", lambda: self.api.upsert_time_off(event))

    def update_time_off(self, event: TimeOffEvent) -> None:
        if not any(t.id == event.id for t in self.time_off):
            raise NotFoundError(f"Ausencia {event.id} no encontrada")
        self.time_off = [event if t.id == event.id else t for t in self.time_off]
        self._commit()
        self.outbox.post(f"timeoff {event.id}", lambda: self.api.upsert_time_off(event))

    def delete_time_off(self, event_id: str) -> None:
        self.time_off = [t for t in self.time_off if t.id != event_id]
        self._commit()
        self.outbox.post(f"delete timeoff {event_id}", lambda: self.api.delete_time_off(event_id))

    def add_procedure(self, procedure: Procedure) -> None:
        self.procedures = [*[p for p in self.procedures if p.id != procedure.id], procedure]
        self._commit()
        self.outbox.post(f"procedure {procedure.id}", lambda: self.api.upsert_procedure(procedure))

    def update_procedure(self, procedure: Procedure) -> None:
        if not any(p.id == procedure.id for p in self.procedures):
            raise NotFoundError(f"Procedimiento {procedure.id} no encontrado")
        self.procedures = [procedure if p.id == procedure.id else p for p in self.procedures]
        self._commit()
        self.outbox.post(f"procedure {procedure.id}", lambda: self.api.upsert_procedure(procedure))

    def delete_procedure(self, procedure_id: str) -> None:
        self.procedures = [p for p in self.procedures if p.id != procedure_id]
        self._commit()
        self.outbox.post(
            f"delete procedure {procedure_id}", lambda: self.api.delete_procedure(procedure_id)
        )

    # ---------- sesión / preferencias ----------

    def login(self, user: User) -> None:
        self.store.save(KEY_USER, user.to_wire())

    def current_user(self) -> Optional[User]:
        raw = self.store.load(KEY_USER)
        return User.model_validate(raw) if raw else None

    def logout(self) -> None:
        self.store.clear()

    def set_sidebar_collapsed(self, collapsed: bool) -> None:
        self.store.save(KEY_SIDEBAR_COLLAPSED, bool(collapsed))

    def sidebar_collapsed(self) -> bool:
        return bool(self.store.load(KEY_SIDEBAR_COLLAPSED))

    async def close(self) -> None:
        self.stop()
        await self.outbox.drain()
        await self.api.close()


def create_sync_service() -> SyncService:
    """Servicio con caché en disco y la API configurada en el entorno."""
    return SyncService(RemoteApi(), JsonFileStore(CACHE_DIR, CACHE_VERSION))
