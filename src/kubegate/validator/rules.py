#!/usr/bin/env python3
"""
KUBEGATE VALIDATOR - The Judge
------------------------------
Ordered validation rules per resource kind and operation. Every rule is a
plain function `(diff, capabilities) -> Decision`. The chain stops at the
first Deny, so the order inside each list below is the order in which
problems are reported.

Rules never raise for policy violations. A provider fault raised while a
rule consults the capability cache propagates to the engine, which fails
the request closed.

Author: KubeGate Team
Date: 2026-10-17
"""

import logging
from typing import Any, Callable, Dict, List

from kubegate.admission.adapter import AZURE_CLUSTER, AZURE_MACHINE_POOL
from kubegate.capabilities.cache import ACCELERATED_NETWORKING, PREMIUM_IO, CapabilityView
from kubegate.core.models import Decision, DenyReason, Diff, Operation

logger = logging.getLogger("kubegate.validator")

Validator = Callable[[Diff, CapabilityView], Decision]


def _show(value: Any) -> str:
    if value is None:
        return "unset"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, tuple):
        return f"{len(value)} entries"
    return repr(value)


def is_premium_storage(storage_account_type: Any) -> bool:
    return isinstance(storage_account_type, str) and storage_account_type.startswith("Premium")


def _immutable(diff: Diff, key: str, reason: DenyReason, label: str) -> Decision:
    change = diff.classify(key)
    if change.changed:
        return Decision.deny(
            reason,
            f"{label} can't be changed (was {_show(change.old)}, now {_show(change.new)})",
            field=key,
        )
    return Decision.allow()


# --- AzureCluster -----------------------------------------------------------

def check_control_plane_endpoint(diff: Diff, capabilities: CapabilityView) -> Decision:
    for key, label in (("controlPlaneEndpoint.host", "ControlPlaneEndpoint.Host"),
                       ("controlPlaneEndpoint.port", "ControlPlaneEndpoint.Port")):
        decision = _immutable(diff, key, DenyReason.CONTROL_PLANE_ENDPOINT_CHANGED, label)
        if not decision.allowed:
            return decision
    return Decision.allow()


def check_location(diff: Diff, capabilities: CapabilityView) -> Decision:
    return _immutable(diff, "location", DenyReason.LOCATION_CHANGED, "Location")


# --- AzureMachinePool -------------------------------------------------------

def check_storage_account_type(diff: Diff, capabilities: CapabilityView) -> Decision:
    return _immutable(diff, "storageAccountType", DenyReason.STORAGE_ACCOUNT_CHANGED,
                      "OSDisk.ManagedDisk.StorageAccountType")


def check_data_disks(diff: Diff, capabilities: CapabilityView) -> Decision:
    return _immutable(diff, "dataDisks", DenyReason.DATADISKS_FIELD_IS_SET, "DataDisks")


def check_accelerated_networking(diff: Diff, capabilities: CapabilityView) -> Decision:
    # unset -> false and false -> unset are changes as well
    return _immutable(diff, "acceleratedNetworking", DenyReason.ACCELERATED_NETWORKING_CHANGED,
                      "AcceleratedNetworking")


def check_vm_size_keeps_accelerated_networking(diff: Diff, capabilities: CapabilityView) -> Decision:
    """An instance type change must not land on a type that cannot serve the enabled flag."""
    change = diff.classify("vmSize")
    if not change.changed or change.new is None:
        return Decision.allow()
    if diff.new.get("acceleratedNetworking") is not True:
        return Decision.allow()

    if capabilities.supports(change.new, ACCELERATED_NETWORKING):
        return Decision.allow()
    return Decision.deny(
        DenyReason.VM_SIZE_CAPABILITY_MISMATCH,
        f"VM size {change.new!r} does not support accelerated networking, "
        f"which is enabled on this node pool (previous VM size {_show(change.old)})",
        field="vmSize",
    )


def check_vm_size_keeps_premium_storage(diff: Diff, capabilities: CapabilityView) -> Decision:
    """Switching away from a PremiumIO type is only fine when the OS disk is not premium."""
    change = diff.classify("vmSize")
    if not change.changed or change.old is None or change.new is None:
        return Decision.allow()
    storage = diff.new.get("storageAccountType")
    if not is_premium_storage(storage):
        return Decision.allow()

    if not capabilities.supports(change.old, PREMIUM_IO):
        return Decision.allow()
    if capabilities.supports(change.new, PREMIUM_IO):
        return Decision.allow()
    return Decision.deny(
        DenyReason.STORAGE_CAPABILITY_LOST,
        f"VM size {change.new!r} does not support premium storage, "
        f"but the OS disk uses {storage!r} (previous VM size {change.old!r})",
        field="vmSize",
    )


def check_accelerated_networking_supported(diff: Diff, capabilities: CapabilityView) -> Decision:
    vm_size = diff.new.get("vmSize")
    if vm_size is None or diff.new.get("acceleratedNetworking") is not True:
        return Decision.allow()
    if capabilities.supports(vm_size, ACCELERATED_NETWORKING):
        return Decision.allow()
    return Decision.deny(
        DenyReason.VM_SIZE_CAPABILITY_MISMATCH,
        f"accelerated networking is enabled but VM size {vm_size!r} does not support it",
        field="acceleratedNetworking",
    )


def check_premium_storage_supported(diff: Diff, capabilities: CapabilityView) -> Decision:
    vm_size = diff.new.get("vmSize")
    storage = diff.new.get("storageAccountType")
    if vm_size is None or not is_premium_storage(storage):
        return Decision.allow()
    if capabilities.supports(vm_size, PREMIUM_IO):
        return Decision.allow()
    return Decision.deny(
        DenyReason.VM_SIZE_CAPABILITY_MISMATCH,
        f"OS disk uses {storage!r} but VM size {vm_size!r} does not support premium storage",
        field="storageAccountType",
    )


# Fixed evaluation order per kind and operation. First Deny wins.
VALIDATORS: Dict[str, Dict[Operation, List[Validator]]] = {
    AZURE_CLUSTER: {
        Operation.CREATE: [],
        Operation.UPDATE: [
            check_control_plane_endpoint,
            check_location,
        ],
    },
    AZURE_MACHINE_POOL: {
        Operation.CREATE: [
            check_accelerated_networking_supported,
            check_premium_storage_supported,
        ],
        Operation.UPDATE: [
            check_location,
            check_storage_account_type,
            check_data_disks,
            check_accelerated_networking,
            check_vm_size_keeps_accelerated_networking,
            check_vm_size_keeps_premium_storage,
        ],
    },
}


def validators_for(kind: str, operation: Operation) -> List[Validator]:
    return VALIDATORS.get(kind, {}).get(operation, [])


def run_validators(diff: Diff, capabilities: CapabilityView) -> Decision:
    """Runs the chain for the diff's kind and operation; returns the first Deny or Allow."""
    operation = Operation.CREATE if diff.is_create else Operation.UPDATE
    for validator in validators_for(diff.new.kind, operation):
        decision = validator(diff, capabilities)
        if not decision.allowed:
            logger.info(f"{diff.new.kind} {diff.new.name}: {validator.__name__} denied: {decision.message}")
            return decision
    return Decision.allow()
