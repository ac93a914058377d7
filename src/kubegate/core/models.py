#!/usr/bin/env python3
"""
KUBEGATE CORE MODELS
--------------------
Defines the fundamental data structures used across the KubeGate engine:
decoded resource snapshots, the old/new diff, provider capability records,
admission decisions and JSON patch operations.

Author: KubeGate Team
Date: 2026-10-17
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple


class Operation(str, Enum):
    """Admission operations the pipeline evaluates."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"


class ReasonCategory(str, Enum):
    """Coarse classification of a denial."""
    IMMUTABLE_FIELD_CHANGED = "ImmutableFieldChanged"
    CAPABILITY_MISMATCH = "CapabilityMismatch"


class DenyReason(Enum):
    """
    Fixed taxonomy of policy denials.
    Each member carries the reason code reported to the API server and its category.
    """
    CONTROL_PLANE_ENDPOINT_CHANGED = ("ControlPlaneEndpointWasChanged", ReasonCategory.IMMUTABLE_FIELD_CHANGED)
    LOCATION_CHANGED = ("LocationWasChanged", ReasonCategory.IMMUTABLE_FIELD_CHANGED)
    STORAGE_ACCOUNT_CHANGED = ("StorageAccountWasChanged", ReasonCategory.IMMUTABLE_FIELD_CHANGED)
    DATADISKS_FIELD_IS_SET = ("DatadisksFieldIsSet", ReasonCategory.IMMUTABLE_FIELD_CHANGED)
    ACCELERATED_NETWORKING_CHANGED = ("AcceleratedNetworkingWasChanged", ReasonCategory.IMMUTABLE_FIELD_CHANGED)
    VM_SIZE_CAPABILITY_MISMATCH = ("VmSizeCapabilityMismatch", ReasonCategory.CAPABILITY_MISMATCH)
    STORAGE_CAPABILITY_LOST = ("StorageCapabilityLost", ReasonCategory.CAPABILITY_MISMATCH)

    @property
    def code(self) -> str:
        return self.value[0]

    @property
    def category(self) -> ReasonCategory:
        return self.value[1]


@dataclass(frozen=True)
class Decision:
    """
    Outcome of a single validator or of a whole chain.
    A Deny always names the rule's reason, the offending field and a readable message.
    """
    allowed: bool
    reason: Optional[DenyReason] = None
    message: str = ""
    field: Optional[str] = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenyReason, message: str, field: Optional[str] = None) -> "Decision":
        return cls(allowed=False, reason=reason, message=message, field=field)


@dataclass(frozen=True)
class PatchOp:
    """One RFC 6902 operation. `path` is an already escaped RFC 6901 pointer."""
    op: str
    path: str
    value: Any = None

    def to_dict(self) -> Dict[str, Any]:
        if self.op == "remove":
            return {"op": self.op, "path": self.path}
        return {"op": self.op, "path": self.path, "value": self.value}


@dataclass(frozen=True)
class ResourceSnapshot:
    """
    Immutable decoded view of one version (old or new) of a resource.

    `fields` maps recognized field keys (e.g. 'vmSize') to typed values. A key
    is missing from the mapping when the field is unset in the payload.
    `document` keeps the decoded payload so mutators can address patch paths.
    """
    kind: str
    name: str
    namespace: str = ""
    fields: Mapping[str, Any] = field(default_factory=dict)
    document: Mapping[str, Any] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    @property
    def identity(self) -> Tuple[str, str, str]:
        return (self.kind, self.namespace, self.name)

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)

    def has(self, key: str) -> bool:
        return key in self.fields


class FieldState(str, Enum):
    UNCHANGED = "Unchanged"
    CHANGED = "Changed"
    ABSENT = "NotPresentInEither"


@dataclass(frozen=True)
class FieldDiff:
    state: FieldState
    old: Any = None
    new: Any = None

    @property
    def changed(self) -> bool:
        return self.state is FieldState.CHANGED


@dataclass(frozen=True)
class Diff:
    """
    Pairs the old and new snapshot of a single resource.
    `old` is None for a create operation.
    """
    new: ResourceSnapshot
    old: Optional[ResourceSnapshot] = None

    @property
    def is_create(self) -> bool:
        return self.old is None

    def classify(self, key: str) -> FieldDiff:
        """
        Three-way classification of one recognized field.
        A field set on one side only is Changed, even when the set value is falsy.
        """
        new_present = self.new.has(key)
        old_present = self.old is not None and self.old.has(key)
        old_value = self.old.get(key) if self.old is not None else None
        new_value = self.new.get(key)

        if not new_present and not old_present:
            return FieldDiff(FieldState.ABSENT)
        if new_present and old_present and old_value == new_value:
            return FieldDiff(FieldState.UNCHANGED, old_value, new_value)
        return FieldDiff(FieldState.CHANGED, old_value, new_value)


@dataclass(frozen=True)
class CapabilityRecord:
    """
    Static capability set of one instance type as reported by the provider.
    Capability names are case-folded on construction; the mapping is read-only.
    """
    instance_type: str
    capabilities: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        normalized = {str(name).casefold(): value for name, value in dict(self.capabilities).items()}
        object.__setattr__(self, "capabilities", MappingProxyType(normalized))

    def get(self, name: str, default: Any = None) -> Any:
        return self.capabilities.get(name.casefold(), default)

    def supports(self, name: str) -> bool:
        """Absent capabilities are unsupported; numbers count when non-zero."""
        value = self.get(name)
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value != 0
        return False


@dataclass
class AdmissionRequest:
    """What the transport hands to the engine for one webhook call."""
    kind: str
    operation: Operation
    new_payload: Any
    old_payload: Optional[Any] = None
    uid: str = ""
    deadline: Optional[float] = None  # absolute time.monotonic() value


@dataclass
class AdmissionResponse:
    """What the engine hands back to the transport."""
    uid: str
    allowed: bool
    reason: Optional[str] = None
    reason_code: Optional[str] = None
    patches: List[PatchOp] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"uid": self.uid, "allowed": self.allowed}
        if self.reason is not None:
            result["reason"] = self.reason
            result["reasonCode"] = self.reason_code
        if self.patches:
            result["patches"] = [p.to_dict() for p in self.patches]
        return result
