#!/usr/bin/env python3
"""
KUBEGATE ERRORS - Fault Taxonomy
--------------------------------
Exceptions raised by the admission pipeline. Ordinary policy violations are
NOT exceptions: validators return a Deny decision for those. Everything in
this module is a fault that the engine turns into a fail-closed response.

Author: KubeGate Team
Date: 2026-10-17
"""

from typing import Optional


class KubeGateError(Exception):
    """Base class for every fault the engine knows how to fail closed on."""

    # Reason code surfaced to the API server when this fault rejects a request
    code = "InternalError"


class DecodeError(KubeGateError):
    """The request payload cannot be decoded into the expected resource schema."""

    code = "DecodeError"


class ProviderLookupError(KubeGateError):
    """The cloud provider could not answer a capability query."""

    code = "ProviderLookupError"

    def __init__(self, instance_type: str, detail: str = ""):
        self.instance_type = instance_type
        self.detail = detail
        message = f"capability lookup for instance type '{instance_type}' failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ProviderNotFound(ProviderLookupError):
    """The provider does not know the instance type."""


class ProviderTransientError(ProviderLookupError):
    """The provider failed for a reason unrelated to the instance type."""


class ProviderTimeout(KubeGateError):
    """A capability fetch did not complete before the request deadline."""

    code = "ProviderTimeout"

    def __init__(self, instance_type: str, waited: Optional[float] = None):
        self.instance_type = instance_type
        self.waited = waited
        message = f"capability lookup for instance type '{instance_type}' timed out"
        if waited is not None:
            message = f"{message} after {waited:.3f}s"
        super().__init__(message)


class ParseError(KubeGateError):
    """The provider returned a capability table that cannot be interpreted."""

    code = "ParseError"


class ReleaseNotFound(KubeGateError):
    """The release registry has no component version for a release."""

    code = "ReleaseNotFound"

    def __init__(self, release: str, component: str):
        self.release = release
        self.component = component
        super().__init__(f"release '{release}' does not define component '{component}'")


class SettingsError(KubeGateError):
    """The configuration file is missing, unreadable or malformed."""

    code = "SettingsError"


class PatchError(KubeGateError):
    """A JSON patch cannot be built or applied to the document."""

    code = "PatchError"
