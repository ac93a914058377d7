#!/usr/bin/env python3
"""
KUBEGATE PATCH TESTS - Pointers & JSON Patch
--------------------------------------------
Pointer escaping, nested-add targeting, clash detection and applying
mutation patches to decoded documents.

Author: KubeGate Team
Date: 2026-10-17
"""

import pytest

from kubegate.core.errors import KubeGateError
from kubegate.core.models import PatchOp
from kubegate.mutator.patch import (
    PatchError,
    add,
    add_path,
    apply_patches,
    overlapping,
    pointer,
    remove,
    replace,
    split_pointer,
)


@pytest.mark.parametrize("raw, escaped", [
    ("plain", "/plain"),
    ("azure-operator.giantswarm.io/version", "/azure-operator.giantswarm.io~1version"),
    ("a~b", "/a~0b"),
    ("~1", "/~01"),
    ("/~", "/~1~0"),
    ("", "/"),
])
def test_segment_escaping(raw, escaped):
    assert pointer(raw) == escaped
    assert split_pointer(escaped) == [raw]


def test_pointer_joins_escaped_segments():
    assert pointer("metadata", "labels", "a/b~c") == "/metadata/labels/a~1b~0c"
    assert pointer("spec", "template", "dataDisks", 0) == "/spec/template/dataDisks/0"
    assert pointer() == ""


def test_split_pointer():
    assert split_pointer("/metadata/labels/a~1b~0c") == ["metadata", "labels", "a/b~c"]
    assert split_pointer("") == []
    with pytest.raises(PatchError):
        split_pointer("metadata/labels")


def test_remove_has_no_value_on_the_wire():
    assert remove("metadata", "labels", "x").to_dict() == {"op": "remove", "path": "/metadata/labels/x"}


def test_add_path_targets_the_shallowest_missing_parent():
    doc = {"spec": {"template": {"osDisk": {"osType": "Linux"}}}}
    op = add_path(doc, ("spec", "template", "osDisk", "managedDisk", "storageAccountType"), "Premium_LRS")
    assert op == PatchOp("add", "/spec/template/osDisk/managedDisk", {"storageAccountType": "Premium_LRS"})

    doc["spec"]["template"]["osDisk"]["managedDisk"] = {}
    op = add_path(doc, ("spec", "template", "osDisk", "managedDisk", "storageAccountType"), "Premium_LRS")
    assert op == PatchOp("add", "/spec/template/osDisk/managedDisk/storageAccountType", "Premium_LRS")


def test_add_path_replaces_a_null_parent():
    doc = {"spec": {"template": None}}
    assert add_path(doc, ("spec", "template", "vmSize"), "Standard_D4_v3") == \
        PatchOp("add", "/spec/template", {"vmSize": "Standard_D4_v3"})


def test_apply_patches_leaves_input_untouched():
    doc = {"metadata": {"labels": {"a/b": "1"}}, "spec": {"list": [1, 3]}}
    patched = apply_patches(doc, [
        replace("metadata", "labels", "a/b", value="2"),
        add("metadata", "labels", "c~d", value="3"),
        add("spec", "list", 1, value=2),
        add("spec", "list", "-", value=4),
        remove("spec", "list", 0),
    ])

    assert patched == {"metadata": {"labels": {"a/b": "2", "c~d": "3"}}, "spec": {"list": [2, 3, 4]}}
    assert doc == {"metadata": {"labels": {"a/b": "1"}}, "spec": {"list": [1, 3]}}


@pytest.mark.parametrize("op", [
    replace("metadata", "missing", value=1),
    remove("metadata", "missing"),
    add("nowhere", "key", value=1),
    add("spec", "list", 5, value=1),
    replace("spec", "list", 3, value=1),
    add("spec", "name", "deeper", value=1),
    PatchOp("move", "/spec"),
    PatchOp("remove", ""),
])
def test_invalid_operations_raise(op):
    with pytest.raises(PatchError):
        apply_patches({"metadata": {}, "spec": {"list": [0], "name": "x"}}, [op])


def test_overlapping_paths_are_reported():
    assert overlapping([add("a", "b", value=1), add("a", "c", value=1)]) == []
    assert overlapping([add("a", value={}), add("a", "b", value=1)]) == ["/a <-> /a/b"]
    assert overlapping([add("ab", value=1), add("a", value=1)]) == []


def test_patch_errors_fail_closed():
    assert issubclass(PatchError, KubeGateError)
    assert PatchError.code == "PatchError"
