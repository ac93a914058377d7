#!/usr/bin/env python3
"""
KUBEGATE MUTATION SHIELD - Defaulting & Normalisation
-----------------------------------------------------
The MutationShield evaluates the new version of a resource against the
platform's defaults and produces the JSON patch that brings it in line.

Rules are pure and idempotent: they look only at the new snapshot and the
external lookups in the MutationContext, and return no operations for an
object that is already correct.

Author: KubeGate Team
Date: 2026-10-17
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from kubegate.admission.adapter import AZURE_CLUSTER, AZURE_MACHINE_POOL
from kubegate.capabilities.cache import PREMIUM_IO, CapabilityView
from kubegate.core.errors import PatchError
from kubegate.core.models import Operation, PatchOp, ResourceSnapshot
from kubegate.mutator.patch import add, add_path, overlapping

logger = logging.getLogger("kubegate.mutator")

RELEASE_LABEL = "release.giantswarm.io/version"
DEFAULT_COMPONENT = "azure-operator"

# Disks every node pool gets on creation
DEFAULT_DATA_DISKS = [
    {"nameSuffix": "docker", "diskSizeGB": 100, "lun": 21},
    {"nameSuffix": "kubelet", "diskSizeGB": 100, "lun": 22},
]


def component_label(component: str) -> str:
    return f"{component}.giantswarm.io/version"


@dataclass(frozen=True)
class MutationContext:
    """External lookups a mutator may consult, bound to one request."""
    operation: Operation
    releases: Any  # anything with resolve_component_version(release, component)
    capabilities: Optional[CapabilityView] = None
    component: str = DEFAULT_COMPONENT


Mutator = Callable[[ResourceSnapshot, MutationContext], List[PatchOp]]


def mutate_component_version_label(snapshot: ResourceSnapshot, context: MutationContext) -> List[PatchOp]:
    """
    Policy: the operator version label must match what the release ships.
    The release registry is the source of truth; a stale or missing label is overwritten.
    """
    labels = snapshot.get("labels") or {}
    release = labels.get(RELEASE_LABEL)
    if not release:
        return []

    version = context.releases.resolve_component_version(release, context.component)
    key = component_label(context.component)
    if labels.get(key) == version:
        return []
    return [add("metadata", "labels", key, value=version)]


def mutate_default_storage_account_type(snapshot: ResourceSnapshot, context: MutationContext) -> List[PatchOp]:
    """Policy: OS disks are premium whenever the VM size can serve premium IO."""
    if snapshot.has("storageAccountType"):
        return []
    vm_size = snapshot.get("vmSize")
    if vm_size is None or context.capabilities is None:
        return []

    storage = "Premium_LRS" if context.capabilities.supports(vm_size, PREMIUM_IO) else "Standard_LRS"
    return [add_path(snapshot.document,
                     ("spec", "template", "osDisk", "managedDisk", "storageAccountType"), storage)]


def mutate_default_data_disks(snapshot: ResourceSnapshot, context: MutationContext) -> List[PatchOp]:
    if snapshot.has("dataDisks"):
        return []
    return [add_path(snapshot.document, ("spec", "template", "dataDisks"),
                     [dict(disk) for disk in DEFAULT_DATA_DISKS])]


# Fixed order per kind and operation.
MUTATORS: Dict[str, Dict[Operation, List[Mutator]]] = {
    AZURE_CLUSTER: {
        Operation.CREATE: [mutate_component_version_label],
        Operation.UPDATE: [mutate_component_version_label],
    },
    AZURE_MACHINE_POOL: {
        Operation.CREATE: [
            mutate_component_version_label,
            mutate_default_storage_account_type,
            mutate_default_data_disks,
        ],
        Operation.UPDATE: [mutate_component_version_label],
    },
}


class MutationShield:
    """
    Runs the mutators registered for a resource kind and collects their patches
    along with human-readable notes of what was changed.
    """

    def __init__(self, releases: Any, component: str = DEFAULT_COMPONENT):
        self.releases = releases
        self.component = component

    def protect(self, snapshot: ResourceSnapshot, operation: Operation,
                capabilities: Optional[CapabilityView] = None) -> Tuple[List[PatchOp], List[str]]:
        context = MutationContext(
            operation=operation,
            releases=self.releases,
            capabilities=capabilities,
            component=self.component,
        )

        patches: List[PatchOp] = []
        notes: List[str] = []
        for rule in MUTATORS.get(snapshot.kind, {}).get(operation, []):
            ops = rule(snapshot, context)
            for op in ops:
                notes.append(f"{rule.__name__}: {op.op} {op.path} = {op.value!r}")
            patches.extend(ops)

        clashes = overlapping(patches)
        if clashes:
            raise PatchError(f"mutators produced conflicting patches: {', '.join(clashes)}")

        if patches:
            logger.info(f"{snapshot.kind} {snapshot.name}: {len(patches)} patch operation(s)")
        return patches, notes
