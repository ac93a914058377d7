#!/usr/bin/env python3
"""
KUBEGATE CLI - Offline Admission Review
---------------------------------------
Runs the admission pipeline against files on disk: either a Kubernetes
AdmissionReview document, or a new manifest with an optional old manifest.
Mutation runs first and its patch is applied before validation, the same
order the API server uses for mutating and validating webhooks.

Author: KubeGate Team
Date: 2026-10-17
"""

import argparse
import logging
import sys
import time
from dataclasses import replace
from pathlib import Path
from typing import List

from rich.console import Console
from rich.panel import Panel

from kubegate.admission.adapter import load_document, request_from_review, supported_kinds
from kubegate.capabilities.cache import CapabilityCache
from kubegate.capabilities.provider import StaticCapabilityProvider
from kubegate.cli.formatter import GateFormatter
from kubegate.core.engine import AdmissionEngine
from kubegate.core.errors import KubeGateError
from kubegate.core.models import AdmissionRequest, Operation
from kubegate.core.settings import load_settings
from kubegate.mutator.patch import apply_patches

# Global console for consistent styling across the application
console = Console()

EXIT_ALLOWED = 0
EXIT_DENIED = 1
EXIT_USAGE = 2


class KubeGateCLI:
    """
    CLI wrapper that translates user commands into Engine actions.
    """

    def __init__(self):
        self.parser = argparse.ArgumentParser(
            prog="kubegate",
            description="KubeGate - Admission policies for Cluster API Azure resources",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self.formatter = GateFormatter()
        self._setup_args()

    def _setup_args(self):
        """Configures the command-line flags and subcommands."""
        self.parser.add_argument("-v", "--version", action="version", version="kubegate v1.0.0")
        self.parser.add_argument("--log-level", default="WARNING",
                                 choices=["DEBUG", "INFO", "WARNING", "ERROR"])
        subparsers = self.parser.add_subparsers(dest="command", metavar="Command")

        def add_source_flags(p: argparse.ArgumentParser):
            p.add_argument("--config", help="Settings file (YAML)")
            p.add_argument("--capabilities", help="Capability table file, overrides the config")
            p.add_argument("--timeout", type=float, help="Seconds to wait for capability lookups")

        review_parser = subparsers.add_parser("review", help="Run mutation and validation for a request")
        review_parser.add_argument("path", help="AdmissionReview or new manifest (JSON/YAML)")
        review_parser.add_argument("--old", help="Old manifest; turns the request into an UPDATE")
        review_parser.add_argument("--kind", choices=supported_kinds(), help="Resource kind if the manifest has none")
        review_parser.add_argument("--releases", help="Release registry file, overrides the config")
        review_parser.add_argument("--diff", action="store_true", help="Show the object before and after mutation")
        add_source_flags(review_parser)

        caps_parser = subparsers.add_parser("capabilities", help="Show capability records for instance types")
        caps_parser.add_argument("instance_types", nargs="+", metavar="INSTANCE_TYPE")
        add_source_flags(caps_parser)

    def print_header(self, subtitle: str):
        console.print(Panel.fit("[bold cyan]KubeGate v1.0.0[/bold cyan]",
                                title=f"[bold white]{subtitle}[/bold white]", border_style="cyan"))

    def _build_request(self, args: argparse.Namespace, deadline: float) -> AdmissionRequest:
        source = Path(args.path)
        document = load_document(source.read_text(encoding="utf-8-sig"))

        if isinstance(document, dict) and "request" in document:
            return request_from_review(document, deadline=deadline)

        kind = args.kind or (document.get("kind") if isinstance(document, dict) else None)
        if not kind:
            raise KubeGateError(f"{source.name} has no kind; pass --kind")

        old = None
        if args.old:
            old = load_document(Path(args.old).read_text(encoding="utf-8-sig"))

        return AdmissionRequest(
            kind=kind,
            operation=Operation.UPDATE if old is not None else Operation.CREATE,
            new_payload=document,
            old_payload=old,
            uid=source.name,
            deadline=deadline,
        )

    def _run_review(self, args: argparse.Namespace) -> int:
        settings = load_settings(args.config).override(
            capabilities=args.capabilities, releases=args.releases, fetch_timeout=args.timeout,
        )
        engine = AdmissionEngine.from_settings(settings)
        try:
            request = self._build_request(args, time.monotonic() + settings.fetch_timeout)

            mutation = engine.mutate(request)
            if not mutation.allowed:
                self.formatter.show_decision(mutation, "Mutation")
                return EXIT_DENIED
            self.formatter.show_patches(mutation.patches)

            if mutation.patches:
                submitted = load_document(request.new_payload)
                patched = apply_patches(submitted, mutation.patches)
                if args.diff:
                    self.formatter.display_diff(submitted, patched, args.path)
                request = replace(request, new_payload=patched)

            validation = engine.validate(request)
            self.formatter.show_decision(validation, f"{request.operation.value} {request.kind}")
            return EXIT_ALLOWED if validation.allowed else EXIT_DENIED
        finally:
            engine.close()

    def _run_capabilities(self, args: argparse.Namespace) -> int:
        settings = load_settings(args.config).override(capabilities=args.capabilities, fetch_timeout=args.timeout)
        if not settings.capabilities:
            raise KubeGateError("no capability table configured; pass --capabilities")

        provider = StaticCapabilityProvider.from_file(settings.capabilities)
        records, errors = [], {}
        with CapabilityCache(provider, fetch_timeout=settings.fetch_timeout) as cache:
            for instance_type in args.instance_types:
                try:
                    records.append(cache.get(instance_type))
                except KubeGateError as e:
                    errors[instance_type] = str(e)

        if records:
            self.formatter.show_capabilities(records)
        self.formatter.show_errors(errors)
        return EXIT_DENIED if errors else EXIT_ALLOWED

    def run(self, argv: List[str] = None) -> int:
        """Primary routing entry point."""
        args = self.parser.parse_args(argv)
        logging.basicConfig(level=getattr(logging, args.log_level))

        try:
            if args.command == "review":
                self.print_header("Admission Review")
                return self._run_review(args)
            if args.command == "capabilities":
                self.print_header("Capability Lookup")
                return self._run_capabilities(args)
        except (KubeGateError, OSError) as e:
            console.print(f"[bold red]Error:[/bold red] {e}")
            return EXIT_USAGE

        self.parser.print_help()
        return EXIT_USAGE


def main():
    """Application entry point with interrupt handling."""
    try:
        sys.exit(KubeGateCLI().run())
    except KeyboardInterrupt:
        console.print("\n[bold red]Terminated by user.[/bold red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
