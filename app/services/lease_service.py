"""
services/lease_service.py
-------------------------

Exclusive leases on dispatches.

A wizard session takes a lease on every dispatch of its pool when it
starts entering costs and gives them back when it commits or is
abandoned. While a lease is held, no other session can enter costs
for (and therefore commit) any of those dispatches. Leases expire
after ``APP_LEASE_TTL_SECONDS`` so a crashed session cannot block a
dispatch forever; expired entries are reclaimed on the next access.

Acquisition is all-or-none: if one dispatch of the pool is leased by
someone else nothing is taken.
"""

from __future__ import annotations

import json
import threading
import time
from typing import Dict, Iterable, List, Optional, Tuple

from app.core.config import get_settings
from app.core.errors import LeaseConflictError
from app.logging_config import logger


class LeaseManager:
    def __init__(self, ttl: Optional[float] = None, clock=time.monotonic) -> None:
        self.ttl = ttl if ttl is not None else get_settings().lease_ttl_seconds
        self._clock = clock
        # dispatch key -> (owner, expires_at)
        self._leases: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()

    def _vigente(self, key: str, now: float) -> Optional[str]:
        entry = self._leases.get(key)
        if entry is None:
            return None
        owner, expires_at = entry
        if now >= expires_at:
            self._leases.pop(key, None)
            return None
        return owner

    def acquire(self, keys: Iterable[str], owner: str) -> None:
        """Lease every key to ``owner`` or raise ``LeaseConflictError``.

        Re-acquiring keys already held by ``owner`` renews them.
        """
        keys = [str(k) for k in keys]
        with self._lock:
            now = self._clock()
            ocupados = {k: o for k in keys if (o := self._vigente(k, now)) not in (None, owner)}
            if ocupados:
                logger.warning(json.dumps({
                    "event": "lease_conflicto",
                    "owner": owner,
                    "despachos": sorted(ocupados),
                }))
                raise LeaseConflictError(
                    "El despacho está siendo neteado en otra sesión",
                    paso="lease",
                    extra={"despachos": sorted(ocupados)},
                )
            for k in keys:
                self._leases[k] = (owner, now + self.ttl)
        logger.info(json.dumps({"event": "lease_adquirido", "owner": owner, "despachos": keys}))

    def ensure(self, keys: Iterable[str], owner: str) -> None:
        """Check that ``owner`` still holds every key (renewing them)."""
        self.acquire(keys, owner)

    def release(self, owner: str, keys: Optional[Iterable[str]] = None) -> List[str]:
        """Release the keys held by ``owner`` (all of them when ``keys`` is None)."""
        with self._lock:
            if keys is None:
                candidatos = [k for k, (o, _) in self._leases.items() if o == owner]
            else:
                candidatos = [str(k) for k in keys]
            liberados = []
            for k in candidatos:
                entry = self._leases.get(k)
                if entry and entry[0] == owner:
                    self._leases.pop(k, None)
                    liberados.append(k)
        if liberados:
            logger.info(json.dumps({"event": "lease_liberado", "owner": owner, "despachos": liberados}))
        return liberados

    def holder(self, key: str) -> Optional[str]:
        with self._lock:
            return self._vigente(str(key), self._clock())


leases = LeaseManager()
