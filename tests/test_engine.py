#!/usr/bin/env python3
"""
KUBEGATE ENGINE TESTS - Dispatcher & Fail-Closed Responses
----------------------------------------------------------
Response wire format, fault-to-reason-code mapping and building the engine
from settings.

Author: KubeGate Team
Date: 2026-10-17
"""

import threading
import time

import pytest

from builders import UNSET, StubProvider, as_json, azure_cluster, azure_machine_pool
from kubegate.capabilities.cache import CapabilityCache
from kubegate.core.engine import AdmissionEngine
from kubegate.core.errors import SettingsError
from kubegate.core.models import AdmissionRequest, Operation
from kubegate.core.settings import Settings
from kubegate.mutator.patch import add
from kubegate.mutator.shield import MUTATORS


def vm_size_change(deadline=None):
    return AdmissionRequest(
        kind="AzureMachinePool",
        operation=Operation.UPDATE,
        new_payload=as_json(azure_machine_pool(vm_size="Standard_D8_v3", accelerated_networking=True)),
        old_payload=as_json(azure_machine_pool(accelerated_networking=True)),
        uid="req-1",
        deadline=deadline,
    )


def test_allowed_response_shape(engine):
    response = engine.validate(vm_size_change())
    assert response.to_dict() == {"uid": "req-1", "allowed": True}


def test_denied_response_carries_reason_and_code(engine):
    request = vm_size_change()
    request.new_payload = as_json(azure_machine_pool(vm_size="Standard_D16_v3", accelerated_networking=True))

    body = engine.validate(request).to_dict()
    assert body["allowed"] is False
    assert body["reasonCode"] == "VmSizeCapabilityMismatch"
    assert "Standard_D16_v3" in body["reason"]


def test_decode_error_is_rejected(engine):
    request = AdmissionRequest(kind="AzureMachinePool", operation=Operation.CREATE, new_payload=b"{broken")
    response = engine.validate(request)

    assert response.allowed is False
    assert response.reason_code == "DecodeError"


def test_provider_timeout_fails_closed(releases):
    gate = threading.Event()
    cache = CapabilityCache(StubProvider(gate=gate))
    engine = AdmissionEngine(cache, releases)
    try:
        response = engine.validate(vm_size_change(deadline=time.monotonic() + 0.05))
    finally:
        gate.set()
        engine.close()

    assert response.allowed is False
    assert response.reason_code == "ProviderTimeout"


def test_malformed_capability_table_fails_closed(releases):
    provider = StubProvider({"Standard_D8_v3": [{"name": "AcceleratedNetworkingEnabled"}]})
    engine = AdmissionEngine(CapabilityCache(provider), releases)
    try:
        response = engine.validate(vm_size_change())
    finally:
        engine.close()

    assert response.allowed is False
    assert response.reason_code == "ParseError"


def test_mutation_response_wire_format(engine):
    pool = azure_machine_pool(labels={"release.giantswarm.io/version": "13.1.0"})
    request = AdmissionRequest(kind="AzureMachinePool", operation=Operation.UPDATE,
                               new_payload=as_json(pool), old_payload=as_json(pool), uid="req-2")
    assert engine.mutate(request).to_dict() == {
        "uid": "req-2",
        "allowed": True,
        "patches": [{"op": "add", "path": "/metadata/labels/azure-operator.giantswarm.io~1version",
                     "value": "5.1.0"}],
    }


def test_from_settings_requires_a_capability_source():
    with pytest.raises(SettingsError):
        AdmissionEngine.from_settings(Settings())


def test_from_settings_with_injected_collaborators(releases):
    engine = AdmissionEngine.from_settings(Settings(fetch_timeout=1.0), provider=StubProvider(), releases=releases)
    try:
        assert engine.cache.fetch_timeout == 1.0
        assert engine.validate(vm_size_change()).allowed
    finally:
        engine.close()


def test_conflicting_mutator_patches_fail_closed(engine, monkeypatch):
    def set_owner(snapshot, context):
        return [add("metadata", "labels", "owner", value="team")]

    monkeypatch.setitem(MUTATORS["AzureCluster"], Operation.UPDATE, [set_owner, set_owner])
    cluster = as_json(azure_cluster())
    response = engine.mutate(AdmissionRequest(kind="AzureCluster", operation=Operation.UPDATE,
                                              new_payload=cluster, old_payload=cluster, uid="req-3"))

    assert response.allowed is False
    assert response.reason_code == "PatchError"
    assert response.patches == []


def test_mutation_after_close_fails_closed(engine):
    engine.close()
    request = AdmissionRequest(kind="AzureMachinePool", operation=Operation.CREATE,
                               new_payload=as_json(azure_machine_pool(storage_account_type=UNSET)))
    response = engine.mutate(request)

    assert response.allowed is False
    assert response.reason_code == "ProviderLookupError"
    assert "closed" in response.reason
