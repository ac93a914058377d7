#!/usr/bin/env python3
"""
KUBEGATE PATCH BUILDER - JSON Patch Round-Trip
----------------------------------------------
Builds RFC 6901 pointers for mutation patches and applies RFC 6902
add/replace/remove operations to a decoded document. Escaping and patch
application are delegated to jsonpointer/jsonpatch; what stays here is the
nested-add targeting and the clash check between mutators.

Author: KubeGate Team
Date: 2026-10-17
"""

from typing import Any, Iterable, List, Mapping

import jsonpatch
from jsonpointer import JsonPointer, JsonPointerException

from kubegate.core.errors import PatchError
from kubegate.core.models import PatchOp

SUPPORTED_OPS = ("add", "replace", "remove")


def pointer(*segments: Any) -> str:
    """pointer('metadata', 'labels', 'a/b') -> '/metadata/labels/a~1b'"""
    return JsonPointer.from_parts(segments).path


def split_pointer(path: str) -> List[str]:
    try:
        return JsonPointer(path).parts
    except JsonPointerException as e:
        raise PatchError(f"invalid pointer {path!r}: {e}")


def add(*segments: Any, value: Any) -> PatchOp:
    return PatchOp("add", pointer(*segments), value)


def replace(*segments: Any, value: Any) -> PatchOp:
    return PatchOp("replace", pointer(*segments), value)


def remove(*segments: Any) -> PatchOp:
    return PatchOp("remove", pointer(*segments))


def add_path(document: Mapping[str, Any], segments: Iterable[Any], value: Any) -> PatchOp:
    """
    'add' for a map path whose parents may be missing. The op targets the
    shallowest missing (or null) map key and carries the nested remainder.
    """
    segments = list(segments)
    node: Any = document
    for depth, segment in enumerate(segments[:-1]):
        child = node.get(segment) if isinstance(node, Mapping) else None
        if not isinstance(child, Mapping):
            nested = value
            for inner in reversed(segments[depth + 1:]):
                nested = {inner: nested}
            return add(*segments[:depth + 1], value=nested)
        node = child
    return add(*segments, value=value)


def overlapping(ops: Iterable[PatchOp]) -> List[str]:
    """Paths that are equal to or nested under another op's path."""
    paths = [op.path for op in ops]
    clashes = []
    for i, first in enumerate(paths):
        for second in paths[i + 1:]:
            if first == second or second.startswith(first + "/") or first.startswith(second + "/"):
                clashes.append(f"{first} <-> {second}")
    return clashes


def apply_patches(document: Mapping[str, Any], ops: Iterable[PatchOp]) -> Any:
    """Returns a patched deep copy of `document`; the input is left untouched."""
    ops = list(ops)
    for op in ops:
        if op.op not in SUPPORTED_OPS:
            raise PatchError(f"unsupported patch operation {op.op!r}")
        if op.op == "remove" and op.path == "":
            raise PatchError("cannot remove the document root")

    try:
        return jsonpatch.apply_patch(dict(document), [op.to_dict() for op in ops], in_place=False)
    except (jsonpatch.JsonPatchException, JsonPointerException) as e:
        raise PatchError(f"patch does not apply: {e}")
