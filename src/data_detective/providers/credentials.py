from __future__ import annotations

import logging
import threading
from typing import Mapping, Optional, Protocol, Union

from .catalog import ProviderKind, parse_kind

logger = logging.getLogger(__name__)

KindLike = Union[ProviderKind, str]


class CredentialPersistence(Protocol):
    """Durable storage owned by the caller (keychain, secrets manager, ...)."""

    def load(self) -> Mapping[str, str]: ...

    def save(self, key: str, credential: str) -> None: ...

    def delete(self, key: str) -> None: ...


def _key(kind: KindLike) -> str:
    parsed = parse_kind(kind)
    return parsed.value if parsed is not None else str(kind)


class CredentialStore:
    """
    Credential scope for one session.

    Each pipeline run receives the scope explicitly; nothing is shared unless
    the caller passes the same instance to several runs. Set/clear of a
    provider's credential is atomic with respect to concurrent readers.
    """

    def __init__(
        self,
        initial: Optional[Mapping[KindLike, str]] = None,
        *,
        persistence: Optional[CredentialPersistence] = None,
    ) -> None:
        self._lock = threading.Lock()
        self._keys: dict[str, str] = {}
        self._persistence = persistence

        if persistence is not None:
            for k, v in persistence.load().items():
                if v and v.strip():
                    self._keys[_key(k)] = v.strip()
        for k, v in (initial or {}).items():
            if v and v.strip():
                self._keys[_key(k)] = v.strip()

    def set(self, kind: KindLike, credential: str) -> None:
        key = _key(kind)
        value = (credential or "").strip()
        if not value:
            self.clear(kind)
            return
        with self._lock:
            self._keys[key] = value
            if self._persistence is not None:
                self._persistence.save(key, value)
        logger.info("Credential set for provider '%s'", key)

    def get(self, kind: KindLike) -> Optional[str]:
        with self._lock:
            return self._keys.get(_key(kind))

    def clear(self, kind: KindLike) -> None:
        key = _key(kind)
        with self._lock:
            existed = self._keys.pop(key, None) is not None
            if self._persistence is not None:
                self._persistence.delete(key)
        if existed:
            logger.info("Credential cleared for provider '%s'", key)

    def clear_all(self) -> None:
        with self._lock:
            keys = list(self._keys)
        for key in keys:
            self.clear(key)

    def has(self, kind: KindLike) -> bool:
        return bool(self.get(kind))
