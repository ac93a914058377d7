#!/usr/bin/env python3
"""
KUBEGATE ADAPTER - Request Decoding
-----------------------------------
Turns the raw old/new payloads of an admission request into immutable
ResourceSnapshots and pairs them into a Diff. Payloads may arrive as JSON
bytes, YAML text or an already decoded mapping (AdmissionReview objects).

Only the fields listed in FIELD_SPECS are recognized. Everything else in the
payload is carried in the snapshot document but never compared.

Author: KubeGate Team
Date: 2026-10-17
"""

import copy
import json
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ruamel.yaml import YAML, YAMLError

from kubegate.core.errors import DecodeError
from kubegate.core.models import AdmissionRequest, Diff, Operation, ResourceSnapshot

logger = logging.getLogger("kubegate.adapter")

AZURE_CLUSTER = "AzureCluster"
AZURE_MACHINE_POOL = "AzureMachinePool"


@dataclass(frozen=True)
class FieldSpec:
    """Where a recognized field lives in the payload and what it must look like."""
    key: str
    path: Tuple[str, ...]
    types: Tuple[type, ...]
    # When True, an empty list/map is indistinguishable from an unset field
    empty_is_absent: bool = False


_LABELS = FieldSpec("labels", ("metadata", "labels"), (dict,), empty_is_absent=True)

FIELD_SPECS: Dict[str, List[FieldSpec]] = {
    AZURE_CLUSTER: [
        FieldSpec("controlPlaneEndpoint.host", ("spec", "controlPlaneEndpoint", "host"), (str,)),
        FieldSpec("controlPlaneEndpoint.port", ("spec", "controlPlaneEndpoint", "port"), (int,)),
        FieldSpec("location", ("spec", "location"), (str,)),
        _LABELS,
    ],
    AZURE_MACHINE_POOL: [
        FieldSpec("location", ("spec", "location"), (str,)),
        FieldSpec("vmSize", ("spec", "template", "vmSize"), (str,)),
        # Unset and explicit false behave differently on the provider side
        FieldSpec("acceleratedNetworking", ("spec", "template", "acceleratedNetworking"), (bool,)),
        FieldSpec("storageAccountType",
                  ("spec", "template", "osDisk", "managedDisk", "storageAccountType"), (str,)),
        FieldSpec("dataDisks", ("spec", "template", "dataDisks"), (list,), empty_is_absent=True),
        _LABELS,
    ],
}


def supported_kinds() -> List[str]:
    return sorted(FIELD_SPECS)


def load_document(payload: Any) -> Any:
    """Parses bytes/str payloads. JSON is tried first, YAML is the fallback."""
    if isinstance(payload, Mapping):
        return copy.deepcopy(dict(payload))

    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = bytes(payload).decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise DecodeError(f"payload is not valid UTF-8: {e}")

    if not isinstance(payload, str):
        raise DecodeError(f"unsupported payload type '{type(payload).__name__}'")

    text = payload.strip()
    if not text:
        raise DecodeError("payload is empty")

    if text.startswith("{"):
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise DecodeError(f"payload is not valid JSON: {e}")

    try:
        return YAML(typ="safe").load(text)
    except YAMLError as e:
        raise DecodeError(f"payload is not valid YAML: {e}")


def _lookup(doc: Mapping[str, Any], path: Tuple[str, ...]) -> Tuple[bool, Any]:
    """Walks `path`; returns (found, value). A null along the way means not found."""
    node: Any = doc
    for segment in path:
        if not isinstance(node, Mapping) or segment not in node:
            return False, None
        node = node[segment]
        if node is None:
            return False, None
    return True, node


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    return value


def _typecheck(kind: str, spec: FieldSpec, value: Any) -> None:
    dotted = ".".join(spec.path)
    # bool is an int subclass; a port of `true` is still malformed
    if isinstance(value, bool) and bool not in spec.types:
        raise DecodeError(f"{kind}: field '{dotted}' must not be a boolean")
    if not isinstance(value, spec.types):
        expected = "/".join(t.__name__ for t in spec.types)
        raise DecodeError(f"{kind}: field '{dotted}' must be {expected}, got {type(value).__name__}")

    if spec.key == "labels":
        for label, label_value in value.items():
            if not isinstance(label_value, str):
                raise DecodeError(f"{kind}: label '{label}' must have a string value")
    elif spec.key == "dataDisks":
        for index, disk in enumerate(value):
            if not isinstance(disk, Mapping):
                raise DecodeError(f"{kind}: field '{dotted}[{index}]' must be a map")


def decode_snapshot(kind: str, payload: Any) -> ResourceSnapshot:
    """
    Decodes one resource version.
    Raises DecodeError when the payload cannot be read as a `kind` object.
    """
    specs = FIELD_SPECS.get(kind)
    if specs is None:
        raise DecodeError(f"unsupported resource kind '{kind}'")

    doc = load_document(payload)
    if not isinstance(doc, dict):
        raise DecodeError(f"{kind}: payload must be a map, got {type(doc).__name__}")

    declared = doc.get("kind")
    if declared is not None and declared != kind:
        raise DecodeError(f"payload declares kind '{declared}', expected '{kind}'")

    metadata = doc.get("metadata")
    if not isinstance(metadata, dict) or not metadata.get("name"):
        raise DecodeError(f"{kind}: metadata.name is required")
    namespace = metadata.get("namespace") or ""

    fields: Dict[str, Any] = {}
    for spec in specs:
        found, value = _lookup(doc, spec.path)
        if not found:
            continue
        _typecheck(kind, spec, value)
        if spec.empty_is_absent and len(value) == 0:
            continue
        fields[spec.key] = _freeze(value)

    return ResourceSnapshot(
        kind=kind,
        name=str(metadata["name"]),
        namespace=str(namespace),
        fields=fields,
        document=doc,
    )


def build_diff(request: AdmissionRequest) -> Diff:
    """Decodes both versions of the request and pairs them."""
    new = decode_snapshot(request.kind, request.new_payload)

    old: Optional[ResourceSnapshot] = None
    if request.operation is Operation.UPDATE:
        if request.old_payload is None:
            raise DecodeError(f"{request.kind} update request carries no old object")
        old = decode_snapshot(request.kind, request.old_payload)
        if old.identity != new.identity:
            raise DecodeError(
                f"old object {'/'.join(old.identity)} and new object "
                f"{'/'.join(new.identity)} are different resources"
            )

    logger.debug(f"Decoded {request.operation.value} {request.kind} {new.namespace}/{new.name}")
    return Diff(new=new, old=old)


def request_from_review(review: Any, deadline: Optional[float] = None) -> AdmissionRequest:
    """
    Builds an AdmissionRequest out of a Kubernetes AdmissionReview document.
    Accepts the review as a mapping or as JSON/YAML text.
    """
    doc = load_document(review)
    request = doc.get("request") if isinstance(doc, dict) else None
    if not isinstance(request, dict):
        raise DecodeError("AdmissionReview has no 'request' section")

    kind_info = request.get("kind") or {}
    kind = kind_info.get("kind") if isinstance(kind_info, dict) else None
    if not kind:
        new_object = request.get("object") or {}
        kind = new_object.get("kind") if isinstance(new_object, dict) else None
    if not kind:
        raise DecodeError("AdmissionReview does not say which kind it carries")

    try:
        operation = Operation(str(request.get("operation", "")).upper())
    except ValueError:
        raise DecodeError(f"unsupported admission operation '{request.get('operation')}'")

    new_payload = request.get("object")
    if new_payload is None:
        raise DecodeError("AdmissionReview has no object")

    return AdmissionRequest(
        kind=kind,
        operation=operation,
        new_payload=new_payload,
        old_payload=request.get("oldObject"),
        uid=str(request.get("uid", "")),
        deadline=deadline,
    )
