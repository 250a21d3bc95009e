"""
Response cache for JSON-RPC reads.

Entries are keyed by ``(method, canonical JSON of params)``, expire after a per method TTL and are evicted least
recently used first once `max_entries` is reached.

Every write (e.g. ``sendrawtransaction``) bumps a generation counter. Entries of methods that depend on chain state
are stamped with the generation at insertion and are treated as a miss once the generation moved on. Methods whose
results never change once they exist (blocks and transactions by hash, application logs) are exempt.
"""
from __future__ import annotations
import asyncio
import copy
import json
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Optional
from neoviper import api_logger as logger

DEFAULT_METHOD_TTLS: dict[str, float] = {
    "getblock": 3600,
    "getblockhash": 3600,
    "getblockheader": 3600,
    "getrawtransaction": 3600,
    "getapplicationlog": 3600,
    "getcontractstate": 60,
    "getnep17balances": 10,
    "getblockcount": 5,
}

#: methods that alter chain state. A successful call bumps the cache generation.
WRITE_METHODS = frozenset({"sendrawtransaction", "submitblock"})

#: results depend on the caller (signers) or the mempool, or have side effects.
NON_CACHEABLE_METHODS = WRITE_METHODS | frozenset(
    {"invokefunction", "invokescript", "invokecontractverify", "calculatenetworkfee", "getrawmempool"}
)

#: results are final once they exist.
IMMUTABLE_METHODS = frozenset({"getblock", "getblockhash", "getblockheader", "getrawtransaction", "getapplicationlog"})


@dataclass
class CacheConfig:
    #: maximum number of entries before the least recently used one is evicted.
    max_entries: int = 10000
    #: TTL in seconds for methods without an entry in `method_ttls`.
    default_ttl: float = 30.0
    #: interval in seconds of the background expiry sweep.
    cleanup_interval: float = 60.0
    method_ttls: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_METHOD_TTLS))


@dataclass
class _Entry:
    value: Any
    inserted_at: float
    ttl: float
    generation: int


def canonical_params(params: Optional[list]) -> str:
    """
    Stable JSON text for `params`: object keys sorted, no insignificant whitespace.
    """
    return json.dumps(params if params else [], sort_keys=True, separators=(",", ":"), default=str)


class RpcCache:
    def __init__(self, config: Optional[CacheConfig] = None, clock: Callable[[], float] = time.monotonic):
        self.config = config if config else CacheConfig()
        self._clock = clock
        self._entries: OrderedDict[tuple[str, str], _Entry] = OrderedDict()
        self._lock = asyncio.Lock()
        #: incremented on every write to the chain.
        self.generation = 0
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def __len__(self):
        return len(self._entries)

    def is_cacheable(self, method: str) -> bool:
        return method not in NON_CACHEABLE_METHODS and self.ttl_for(method) > 0

    def ttl_for(self, method: str) -> float:
        return self.config.method_ttls.get(method, self.config.default_ttl)

    def _is_stale(self, method: str, entry: _Entry) -> bool:
        if self._clock() - entry.inserted_at >= entry.ttl:
            return True
        return method not in IMMUTABLE_METHODS and entry.generation != self.generation

    def get(self, method: str, params: Optional[list] = None) -> tuple[bool, Any]:
        """
        Look up a cached result.

        Returns:
            ``(True, value)`` on a hit, ``(False, None)`` on a miss. Expired or stale entries count as a miss and are
            removed.
        """
        key = (method, canonical_params(params))
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return False, None
        if self._is_stale(method, entry):
            del self._entries[key]
            self.misses += 1
            return False, None
        self._entries.move_to_end(key)
        self.hits += 1
        logger.debug(f"Cache hit for {method}")
        # callers own what they receive
        return True, copy.deepcopy(entry.value)

    async def put(self, method: str, params: Optional[list], value: Any, generation: Optional[int] = None) -> bool:
        """
        Store a result.

        Args:
            generation: the generation observed before the request was issued. If a write happened in the meantime
             the value is not stored for methods that depend on chain state.

        Returns:
            ``True`` if the value was stored.
        """
        if not self.is_cacheable(method):
            return False
        async with self._lock:
            if generation is None:
                generation = self.generation
            elif generation != self.generation and method not in IMMUTABLE_METHODS:
                return False
            key = (method, canonical_params(params))
            self._entries[key] = _Entry(copy.deepcopy(value), self._clock(), self.ttl_for(method), generation)
            self._entries.move_to_end(key)
            while len(self._entries) > self.config.max_entries:
                self._entries.popitem(last=False)
                self.evictions += 1
        return True

    def bump_generation(self) -> int:
        self.generation += 1
        logger.debug(f"Cache generation is now {self.generation}")
        return self.generation

    def purge_expired(self) -> int:
        """
        Remove all expired and stale entries.

        Returns:
            the number of removed entries.
        """
        stale = [key for key, entry in self._entries.items() if self._is_stale(key[0], entry)]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total * 100 if total else 0.0

    def to_dict(self) -> dict:
        return {
            "entries": len(self._entries),
            "max_entries": self.config.max_entries,
            "generation": self.generation,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "hit_rate": self.hit_rate,
        }
