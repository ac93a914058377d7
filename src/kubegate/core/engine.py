#!/usr/bin/env python3
"""
KUBEGATE ENGINE - The Dispatcher
--------------------------------
The AdmissionEngine receives a structured admission request from the
transport, decodes it, routes it to the validator or mutator chain of the
resource kind and answers with a decision and optional patch list.

Faults (undecodable payloads, provider failures and timeouts, malformed
capability tables, unknown releases) never let a request through: they are
logged and turned into a denial carrying the fault's reason code.

Author: KubeGate Team
Date: 2026-10-17
"""

import logging
from typing import Any, Optional

from kubegate.admission.adapter import build_diff
from kubegate.capabilities.cache import CapabilityCache
from kubegate.capabilities.provider import CapabilityProvider, StaticCapabilityProvider
from kubegate.core.errors import KubeGateError, SettingsError
from kubegate.core.models import AdmissionRequest, AdmissionResponse
from kubegate.core.settings import Settings
from kubegate.mutator.shield import DEFAULT_COMPONENT, MutationShield
from kubegate.releases import ReleaseRegistry
from kubegate.validator.rules import run_validators

logger = logging.getLogger("kubegate.engine")


class AdmissionEngine:
    """
    Principal orchestrator for admission decisions.
    Holds the shared capability cache; everything else is request-local.
    """

    def __init__(self, cache: CapabilityCache, releases: Any, component: str = DEFAULT_COMPONENT):
        self.cache = cache
        self.releases = releases
        self.shield = MutationShield(releases, component=component)

    @classmethod
    def from_settings(cls, settings: Settings, provider: Optional[CapabilityProvider] = None,
                      releases: Optional[Any] = None) -> "AdmissionEngine":
        """Builds the engine from configuration; explicit collaborators win over files."""
        if provider is None:
            if not settings.capabilities:
                raise SettingsError("no capability table configured")
            provider = StaticCapabilityProvider.from_file(settings.capabilities)
        if releases is None:
            releases = ReleaseRegistry.from_file(settings.releases) if settings.releases else ReleaseRegistry({})

        cache = CapabilityCache(provider, fetch_timeout=settings.fetch_timeout,
                                max_workers=settings.fetch_workers)
        return cls(cache, releases, component=settings.component)

    def close(self) -> None:
        self.cache.close()

    def _fail_closed(self, request: AdmissionRequest, stage: str, error: KubeGateError) -> AdmissionResponse:
        logger.error(f"{stage} of {request.kind} request {request.uid or '-'} failed closed: {error}")
        return AdmissionResponse(
            uid=request.uid,
            allowed=False,
            reason=str(error),
            reason_code=error.code,
        )

    def validate(self, request: AdmissionRequest) -> AdmissionResponse:
        try:
            diff = build_diff(request)
            decision = run_validators(diff, self.cache.bind(request.deadline))
        except KubeGateError as e:
            return self._fail_closed(request, "Validation", e)

        if decision.allowed:
            logger.info(f"Allowed {request.operation.value} {request.kind} {diff.new.name}")
            return AdmissionResponse(uid=request.uid, allowed=True)

        logger.info(f"Denied {request.operation.value} {request.kind} {diff.new.name}: {decision.reason.code}")
        return AdmissionResponse(
            uid=request.uid,
            allowed=False,
            reason=decision.message,
            reason_code=decision.reason.code,
        )

    def mutate(self, request: AdmissionRequest) -> AdmissionResponse:
        try:
            diff = build_diff(request)
            patches, notes = self.shield.protect(diff.new, request.operation, self.cache.bind(request.deadline))
        except KubeGateError as e:
            return self._fail_closed(request, "Mutation", e)

        for note in notes:
            logger.debug(note)
        return AdmissionResponse(uid=request.uid, allowed=True, patches=patches)
