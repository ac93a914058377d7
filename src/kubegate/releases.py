#!/usr/bin/env python3
"""
KUBEGATE RELEASE REGISTRY
-------------------------
Resolves a platform release (e.g. 'v13.1.0') to the version of one of its
components (e.g. 'azure-operator'). In a cluster this is backed by the
Release custom resources; here the registry is a plain mapping that can be
loaded from a YAML file.

Author: KubeGate Team
Date: 2026-10-17
"""

import logging
from pathlib import Path
from typing import Any, Dict, Union

from ruamel.yaml import YAML, YAMLError

from kubegate.core.errors import ReleaseNotFound, SettingsError

logger = logging.getLogger("kubegate.releases")


def release_name(version: Any) -> str:
    """Release objects are named with a leading 'v'; labels may omit it."""
    # YAML reads unquoted keys like 13.1 or 14 as numbers
    version = str(version).strip()
    return version if version.startswith("v") else f"v{version}"


class ReleaseRegistry:
    """
    Static release -> component -> version lookup.

    File layout:

        v13.1.0:
          azure-operator: 5.1.0
          cluster-operator: 0.23.18
    """

    def __init__(self, releases: Dict[str, Dict[str, str]]):
        self.releases: Dict[str, Dict[str, str]] = {}
        for name, components in releases.items():
            if components is None:
                components = {}
            if not isinstance(components, dict):
                raise SettingsError(f"release '{name}' must map component names to versions")
            self.releases[release_name(name)] = dict(components)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ReleaseRegistry":
        resolved = Path(path).resolve()
        try:
            with open(resolved, "r", encoding="utf-8") as f:
                data = YAML(typ="safe").load(f) or {}
        except (OSError, YAMLError) as e:
            logger.error(f"Unable to load release registry from {resolved}")
            raise SettingsError(f"failed to load release registry: {e}")
        if not isinstance(data, dict):
            raise SettingsError("release registry must map release names to components")
        return cls(data)

    def resolve_component_version(self, release: str, component: str) -> str:
        components = self.releases.get(release_name(release))
        if not components or component not in components:
            raise ReleaseNotFound(release, component)
        return str(components[component])
