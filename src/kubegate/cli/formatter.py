# src/kubegate/cli/formatter.py
import difflib
import io
from typing import Any, Dict, List

from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from ruamel.yaml import YAML

from kubegate.core.models import AdmissionResponse, CapabilityRecord, PatchOp

# Initialize the Rich console for high-quality terminal output
console = Console()


def to_yaml(document: Any) -> str:
    yaml = YAML()
    # Standard K8s indentation, same as kubectl output
    yaml.indent(mapping=2, sequence=4, offset=2)
    yaml.width = 4096
    stream = io.StringIO()
    yaml.dump(document, stream)
    return stream.getvalue()


class GateFormatter:
    """
    GateFormatter: renders admission outcomes for humans.
    Decisions, patch lists, capability tables and before/after diffs.
    """

    def show_decision(self, response: AdmissionResponse, title: str):
        if response.allowed:
            console.print(Panel("[bold green]ALLOWED[/bold green]", title=title, border_style="green", expand=False))
            return

        body = (
            f"[bold red]DENIED[/bold red]  [white]{response.reason_code}[/white]\n"
            f"{response.reason}"
        )
        console.print(Panel(body, title=title, border_style="red", expand=False))

    def show_patches(self, patches: List[PatchOp]):
        if not patches:
            console.print("[dim]ℹ No mutation needed.[/dim]")
            return

        table = Table(title="Mutation Patch", show_header=True, header_style="bold magenta")
        table.add_column("Op", style="cyan")
        table.add_column("Path", style="white")
        table.add_column("Value")
        for patch in patches:
            table.add_row(patch.op, patch.path, "" if patch.op == "remove" else repr(patch.value))
        console.print(table)

    def show_capabilities(self, records: List[CapabilityRecord]):
        table = Table(title="Instance Type Capabilities", show_lines=True, header_style="bold magenta")
        table.add_column("Instance Type", style="cyan")
        table.add_column("Capability", style="white")
        table.add_column("Value", justify="right")
        for record in records:
            for name, value in sorted(record.capabilities.items()):
                table.add_row(record.instance_type, name, str(value))
        console.print(table)

    def show_errors(self, errors: Dict[str, str]):
        for subject, error in errors.items():
            console.print(f"[bold red]Error for {subject}:[/bold red] {error}")

    def display_diff(self, original: Any, patched: Any, file_name: str):
        """Unified diff between the submitted object and the object after the patch."""
        diff_list = list(difflib.unified_diff(
            to_yaml(original).splitlines(),
            to_yaml(patched).splitlines(),
            fromfile=f"Submitted: {file_name}",
            tofile="Admitted",
            lineterm=""
        ))
        if not diff_list:
            return

        syntax = Syntax("\n".join(diff_list), "diff", theme="monokai", line_numbers=True)
        console.print(Panel(syntax, title=f"Mutated: {file_name}", border_style="green"))
