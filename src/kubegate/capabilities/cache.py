#!/usr/bin/env python3
"""
KUBEGATE CAPABILITY CACHE
-------------------------
Memoizes per-instance-type capability records reported by the provider.

Population is lazy and single-flight: the first request for a missing
instance type submits one fetch to a small worker pool, and every concurrent
request for the same type waits on that same Future. Waiters honour their
own deadline; a waiter that gives up does not cancel the fetch, which still
lands in the cache when it completes. Failed fetches are never cached.

Records never expire. `refresh()` rebuilds the whole mapping on demand for
operational tooling and swaps it in atomically.

Author: KubeGate Team
Date: 2026-10-17
"""

import logging
import re
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from kubegate.capabilities.provider import CapabilityProvider
from kubegate.core.errors import (
    KubeGateError,
    ParseError,
    ProviderTimeout,
    ProviderTransientError,
)
from kubegate.core.models import CapabilityRecord

logger = logging.getLogger("kubegate.capabilities")

# Well-known Azure SKU capability names (matched case-insensitively)
ACCELERATED_NETWORKING = "AcceleratedNetworkingEnabled"
PREMIUM_IO = "PremiumIO"
VCPUS = "vCPUs"
MEMORY_GB = "MemoryGB"

_INT_RE = re.compile(r"^[+-]?\d+$")
_FLOAT_RE = re.compile(r"^[+-]?(\d+\.\d*|\.\d+)$")


def _coerce(value: Any) -> Any:
    """Provider values arrive as strings ("True", "4", "1.5"); give them real types."""
    if isinstance(value, (bool, int, float)):
        return value
    text = str(value).strip()
    lowered = text.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    if _INT_RE.match(text):
        return int(text)
    if _FLOAT_RE.match(text):
        return float(text)
    return text


def _entry_field(entry: Any, name: str) -> Any:
    """Entries are {name, value} maps, but SDK objects with attributes are accepted too."""
    if isinstance(entry, dict):
        for key in (name, name.capitalize()):
            if key in entry:
                return entry[key]
        return None
    return getattr(entry, name, None)


def parse_capability_table(instance_type: str, entries: Any) -> CapabilityRecord:
    """
    Interprets a raw provider table.
    Absent capabilities are fine; entries that cannot be read raise ParseError.
    """
    if isinstance(entries, (str, bytes)) or not isinstance(entries, Iterable):
        raise ParseError(f"capability table for '{instance_type}' is not a list")

    capabilities: Dict[str, Any] = {}
    for index, entry in enumerate(entries):
        name = _entry_field(entry, "name")
        value = _entry_field(entry, "value")
        if not name or not isinstance(name, str):
            raise ParseError(f"capability #{index} of '{instance_type}' has no name")
        if value is None:
            raise ParseError(f"capability '{name}' of '{instance_type}' has no value")

        key = name.casefold()
        coerced = _coerce(value)
        if key in capabilities and capabilities[key] != coerced:
            raise ParseError(f"capability '{name}' of '{instance_type}' is reported twice with different values")
        capabilities[key] = coerced

    return CapabilityRecord(instance_type=instance_type, capabilities=capabilities)


class CapabilityCache:
    """
    Process-wide capability store with an injected provider.
    Safe for any number of concurrent readers.
    """

    def __init__(self, provider: CapabilityProvider, fetch_timeout: Optional[float] = None,
                 max_workers: int = 4):
        self.provider = provider
        self.fetch_timeout = fetch_timeout
        self._records: Dict[str, CapabilityRecord] = {}
        self._inflight: Dict[str, Future] = {}
        self._lock = threading.Lock()
        self._refresh_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="kubegate-caps")

    def __enter__(self) -> "CapabilityCache":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self._executor.shutdown(wait=False)

    def cached_types(self):
        with self._lock:
            return sorted(self._records)

    def _fetch_record(self, instance_type: str) -> CapabilityRecord:
        try:
            entries = self.provider.get_capabilities(instance_type)
        except KubeGateError:
            raise
        except Exception as e:
            raise ProviderTransientError(instance_type, str(e)) from e
        return parse_capability_table(instance_type, entries)

    def _populate(self, instance_type: str) -> CapabilityRecord:
        """Runs on the worker pool. Stores the record and clears the in-flight slot."""
        try:
            started = time.monotonic()
            record = self._fetch_record(instance_type)
            with self._lock:
                self._records[instance_type] = record
            logger.debug(f"Cached capabilities for {instance_type} in {time.monotonic() - started:.3f}s")
            return record
        finally:
            with self._lock:
                self._inflight.pop(instance_type, None)

    def _wait_timeout(self, deadline: Optional[float]) -> Optional[float]:
        timeout = self.fetch_timeout
        if deadline is not None:
            remaining = max(0.0, deadline - time.monotonic())
            timeout = remaining if timeout is None else min(timeout, remaining)
        return timeout

    def get(self, instance_type: str, deadline: Optional[float] = None) -> CapabilityRecord:
        """
        Returns the record for `instance_type`, fetching it once if needed.

        Raises:
            ProviderLookupError: the provider does not know the type or failed.
            ParseError: the provider's table is malformed.
            ProviderTimeout: the fetch did not finish before `deadline`.
        """
        with self._lock:
            record = self._records.get(instance_type)
            if record is not None:
                return record
            future = self._inflight.get(instance_type)
            if future is None:
                logger.debug(f"Capability cache miss for {instance_type}, fetching")
                try:
                    future = self._executor.submit(self._populate, instance_type)
                except RuntimeError as e:
                    # executor already shut down by close()
                    raise ProviderTransientError(instance_type, "capability cache is closed") from e
                self._inflight[instance_type] = future

        timeout = self._wait_timeout(deadline)
        try:
            return future.result(timeout=timeout)
        except FutureTimeout:
            logger.warning(f"Capability fetch for {instance_type} exceeded {timeout}s")
            raise ProviderTimeout(instance_type, timeout)

    def supports(self, instance_type: str, capability: str, deadline: Optional[float] = None) -> bool:
        """False when the capability is simply not reported for a known type."""
        return self.get(instance_type, deadline=deadline).supports(capability)

    def refresh(self) -> None:
        """
        Re-fetches every instance type the provider lists and replaces the mapping.
        On failure the current mapping is kept and the error propagates.
        """
        with self._refresh_lock:
            try:
                instance_types = list(self.provider.list_instance_types())
            except KubeGateError:
                raise
            except Exception as e:
                raise ProviderTransientError("*", str(e)) from e

            fresh = {name: self._fetch_record(name) for name in instance_types}
            with self._lock:
                self._records = fresh
            logger.info(f"Capability cache refreshed with {len(fresh)} instance types")

    def bind(self, deadline: Optional[float] = None) -> "CapabilityView":
        return CapabilityView(self, deadline)


@dataclass(frozen=True)
class CapabilityView:
    """Request-scoped handle on the cache that carries the request deadline."""
    cache: CapabilityCache
    deadline: Optional[float] = None

    def get(self, instance_type: str) -> CapabilityRecord:
        return self.cache.get(instance_type, deadline=self.deadline)

    def supports(self, instance_type: str, capability: str) -> bool:
        return self.cache.supports(instance_type, capability, deadline=self.deadline)
