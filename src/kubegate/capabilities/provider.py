#!/usr/bin/env python3
"""
KUBEGATE CAPABILITY PROVIDERS
-----------------------------
The outbound side of the capability cache. A provider answers
"what does instance type X report" with the raw list of {name, value}
entries, exactly as the cloud API returns them. Interpretation of those
entries belongs to the cache.

Author: KubeGate Team
Date: 2026-10-17
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Union

from ruamel.yaml import YAML, YAMLError

from kubegate.core.errors import ProviderNotFound, ProviderTransientError, SettingsError

logger = logging.getLogger("kubegate.provider")


class CapabilityProvider(ABC):
    """Contract every capability source must fulfil."""

    @abstractmethod
    def get_capabilities(self, instance_type: str) -> List[Dict[str, Any]]:
        """
        Returns the raw capability entries for one instance type.
        Raises ProviderNotFound for unknown types, ProviderTransientError otherwise.
        """

    @abstractmethod
    def list_instance_types(self) -> List[str]:
        """Every instance type the provider can describe. Used by a full refresh."""


class StaticCapabilityProvider(CapabilityProvider):
    """
    Serves a fixed SKU table, typically an export of the Azure resource SKU list.

    File layout (YAML or JSON):

        Standard_D4_v3:
          - {name: AcceleratedNetworkingEnabled, value: "True"}
          - {name: PremiumIO, value: "False"}
    """

    def __init__(self, table: Dict[str, Any]):
        if not isinstance(table, dict):
            raise SettingsError("capability table must map instance types to capability lists")
        self.table = table

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "StaticCapabilityProvider":
        resolved = Path(path).resolve()
        try:
            with open(resolved, "r", encoding="utf-8") as f:
                table = YAML(typ="safe").load(f) or {}
        except (OSError, YAMLError) as e:
            logger.error(f"Unable to load capability table from {resolved}")
            raise SettingsError(f"failed to load capability table: {e}")
        logger.info(f"Loaded {len(table) if isinstance(table, dict) else 0} instance types from {resolved}")
        return cls(table)

    def get_capabilities(self, instance_type: str) -> List[Dict[str, Any]]:
        if instance_type not in self.table:
            raise ProviderNotFound(instance_type, "unknown instance type")
        entries = self.table[instance_type]
        if entries is None:
            raise ProviderTransientError(instance_type, "provider returned no capability table")
        return entries

    def list_instance_types(self) -> List[str]:
        return sorted(self.table)
