#!/usr/bin/env python3
"""
KUBEGATE CLI TESTS - Offline Review
-----------------------------------
Drives the review and capabilities commands against files in a temporary
workspace and checks the exit codes.

Author: KubeGate Team
Date: 2026-10-17
"""

import json

import pytest
from ruamel.yaml import YAML

from builders import RELEASES, SKUS, azure_machine_pool
from kubegate.cli.main import EXIT_ALLOWED, EXIT_DENIED, EXIT_USAGE, KubeGateCLI


@pytest.fixture
def workspace(tmp_path):
    yaml = YAML()
    with open(tmp_path / "skus.yaml", "w") as f:
        yaml.dump(SKUS, f)
    with open(tmp_path / "releases.yaml", "w") as f:
        yaml.dump(RELEASES, f)
    (tmp_path / "kubegate.yaml").write_text("capabilities: skus.yaml\nreleases: releases.yaml\nfetch_timeout: 2\n")
    return tmp_path


def write_json(path, obj):
    path.write_text(json.dumps(obj))
    return str(path)


def test_review_create_manifest_is_mutated_then_allowed(workspace):
    new = write_json(workspace / "pool.json", azure_machine_pool(vm_size="Standard_D4s_v3"))
    code = KubeGateCLI().run(["review", new, "--config", str(workspace / "kubegate.yaml"), "--diff"])
    assert code == EXIT_ALLOWED


def test_review_update_manifest_is_denied(workspace):
    old = write_json(workspace / "old.json", azure_machine_pool(accelerated_networking=True))
    new = write_json(workspace / "new.json",
                     azure_machine_pool(vm_size="Standard_D16_v3", accelerated_networking=True))
    code = KubeGateCLI().run(["review", new, "--old", old, "--config", str(workspace / "kubegate.yaml")])
    assert code == EXIT_DENIED


def test_review_admission_review_document(workspace):
    review = {
        "apiVersion": "admission.k8s.io/v1",
        "kind": "AdmissionReview",
        "request": {
            "uid": "abc",
            "kind": {"kind": "AzureMachinePool"},
            "operation": "UPDATE",
            "object": azure_machine_pool(location="northeastitaly"),
            "oldObject": azure_machine_pool(location="westeurope"),
        },
    }
    path = write_json(workspace / "review.json", review)
    code = KubeGateCLI().run(["review", path, "--capabilities", str(workspace / "skus.yaml"),
                              "--releases", str(workspace / "releases.yaml")])
    assert code == EXIT_DENIED


def test_unknown_release_denies_at_mutation(workspace):
    new = write_json(workspace / "pool.json",
                     azure_machine_pool(labels={"release.giantswarm.io/version": "99.0.0"}))
    code = KubeGateCLI().run(["review", new, "--capabilities", str(workspace / "skus.yaml")])
    assert code == EXIT_DENIED


def test_capabilities_command(workspace):
    skus = str(workspace / "skus.yaml")
    assert KubeGateCLI().run(["capabilities", "Standard_D4_v3", "--capabilities", skus]) == EXIT_ALLOWED
    assert KubeGateCLI().run(["capabilities", "Standard_Nope", "--capabilities", skus]) == EXIT_DENIED


def test_missing_configuration_is_a_usage_error(workspace):
    new = write_json(workspace / "pool.json", azure_machine_pool())
    assert KubeGateCLI().run(["review", new]) == EXIT_USAGE
    assert KubeGateCLI().run(["review", str(workspace / "absent.json"),
                              "--config", str(workspace / "kubegate.yaml")]) == EXIT_USAGE
    assert KubeGateCLI().run([]) == EXIT_USAGE
