"""
Persistencia local clave-valor para la capa de sincronización.

Las claves se versionan (`contacts_v5`) para que un cambio de forma de
los datos invalide los snapshots antiguos sin migraciones.
"""
import json
import logging
from pathlib import Path
from typing import Any, Optional

from ..config import CACHE_VERSION

logger = logging.getLogger(__name__)

KEY_CONTACTS = "contacts"
KEY_PROCEDURES = "procedures"
KEY_TIMEOFF = "timeoff"
KEY_USER = "user"
KEY_SIDEBAR_COLLAPSED = "sidebar_collapsed"


class CacheStore:
    """
    Interfaz mínima: load / save / clear. Los valores son JSON.
    """

    def __init__(self, version: str):
        self.version = version

    def versioned(self, key: str) -> str:
        return f"{key}_{self.version}"

    def load(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def save(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class MemoryStore(CacheStore):
    def __init__(self, version: str = CACHE_VERSION):
        super().__init__(version)
        self._data: dict[str, str] = {}

    def load(self, key: str) -> Optional[Any]:
        raw = self._data.get(self.versioned(key))
        return json.loads(raw) if raw is not None else None

    def save(self, key: str, value: Any) -> None:
        # se serializa igual que en disco para no compartir referencias
        self._data[self.versioned(key)] = json.dumps(value, ensure_ascii=False)

    def remove(self, key: str) -> None:
        self._data.pop(self.versioned(key), None)

    def clear(self) -> None:
        self._data = {k: v for k, v in self._data.items() if not k.endswith(f"_{self.version}")}


class JsonFileStore(CacheStore):
    """
    Un archivo JSON por clave dentro de cache_dir.
    """

    def __init__(self, cache_dir: str, version: str):
        super().__init__(version)
        self.cache_dir = Path(cache_dir)

    def _path(self, key: str) -> Path:
        return self.cache_dir / f"{self.versioned(key)}.json"

    def load(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Cache corrupta en %s, se ignora: %s", path, exc)
            return None

    def save(self, key: str, value: Any) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        # escribir y renombrar: nunca queda un snapshot a medias
        tmp.write_text(json.dumps(value, ensure_ascii=False), encoding="utf-8")
        tmp.replace(path)

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def clear(self) -> None:
        if not self.cache_dir.exists():
            return
        for path in self.cache_dir.glob(f"*_{self.version}.json"):
            path.unlink(missing_ok=True)
