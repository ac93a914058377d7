#!/usr/bin/env python3
"""
KUBEGATE SETTINGS
-----------------
Loads the engine configuration from a YAML file. Relative paths in the file
are resolved against the file's own directory.

    capabilities: skus.yaml
    releases: releases.yaml
    fetch_timeout: 5.0
    fetch_workers: 4
    component: azure-operator

Author: KubeGate Team
Date: 2026-10-17
"""

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ruamel.yaml import YAML, YAMLError

from kubegate.core.errors import SettingsError


@dataclass(frozen=True)
class Settings:
    capabilities: Optional[str] = None   # capability table file
    releases: Optional[str] = None       # release registry file
    fetch_timeout: float = 5.0           # seconds a request may wait on the provider
    fetch_workers: int = 4
    component: str = "azure-operator"

    def override(self, **values: Any) -> "Settings":
        """CLI flags win over the file; None means 'not given'."""
        return replace(self, **{k: v for k, v in values.items() if v is not None})


_TYPES: Dict[str, tuple] = {
    "capabilities": (str,),
    "releases": (str,),
    "fetch_timeout": (int, float),
    "fetch_workers": (int,),
    "component": (str,),
}


def load_settings(path: Union[str, Path, None]) -> Settings:
    if path is None:
        return Settings()

    resolved = Path(path).resolve()
    try:
        with open(resolved, "r", encoding="utf-8") as f:
            data = YAML(typ="safe").load(f) or {}
    except (OSError, YAMLError) as e:
        raise SettingsError(f"Failed to load settings from {resolved}: {e}")

    if not isinstance(data, dict):
        raise SettingsError(f"{resolved}: settings must be a map")

    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise SettingsError(f"{resolved}: unknown settings {', '.join(unknown)}")

    for key, value in data.items():
        if isinstance(value, bool) or not isinstance(value, _TYPES[key]):
            raise SettingsError(f"{resolved}: '{key}' has the wrong type")

    for key in ("capabilities", "releases"):
        if key in data and not Path(data[key]).is_absolute():
            data[key] = str(resolved.parent / data[key])

    if data.get("fetch_workers", 1) < 1:
        raise SettingsError(f"{resolved}: fetch_workers must be at least 1")
    if "fetch_timeout" in data:
        data["fetch_timeout"] = float(data["fetch_timeout"])

    return Settings(**data)
