import asyncio
import logging
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class Outbox:
    """
    Cola de escrituras "dispara y olvida".

    Cada mensaje se entrega como mucho una vez: si la API falla se
    registra en el log y el estado local se queda como está. No hay
    reintentos; la siguiente escritura con el mismo id vuelve a
    sincronizar ese documento.
    """

    def __init__(self):
        self._pending: set[asyncio.Task] = set()
        self.delivered = 0
        self.failed = 0

    @property
    def pending(self) -> int:
        return len(self._pending)

    def post(self, label: str, send: Callable[[], Awaitable]) -> Optional[asyncio.Task]:
        """
        Programa la escritura en el loop actual sin esperarla.
        Sin loop corriendo la escritura se descarta y cuenta como fallida;
        el cambio local ya aplicado se mantiene.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.failed += 1
            logger.warning("[OUTBOX] %s no se pudo sincronizar: no hay event loop activo", label)
            return None
        task = loop.create_task(self._deliver(label, send))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _deliver(self, label: str, send: Callable[[], Awaitable]) -> None:
        try:
            await send()
        except Exception as exc:
            self.failed += 1
            logger.warning("[OUTBOX] %s no se pudo sincronizar: %s", label, exc)
        else:
            self.delivered += 1
            logger.debug("[OUTBOX] %s sincronizado", label)

    async def drain(self) -> None:
        """Espera a que terminen las escrituras en vuelo (apagado / tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending))
