import json
import typer
from typing import Any, Dict, List
from pydantic import BaseModel
from rich.console import Console
from rich.table import Table
from vibe_usage_agent.runtime.contracts import SyncOutcome
from vibe_usage_agent.utils.diagnostics import AgentDiagnostic

# Create a stderr console for logging
error_console = Console(stderr=True)

class OutputFormatter:
    """
    Handles output formatting for the agent CLI.
    Ensures separation of concerns between System Logs (stderr) and Data (stdout).
    """

    @staticmethod
    def log(message: str, severity: str = "info") -> None:
        """
        Print system messages to stderr with color coding.
        """
        style = "white"
        prefix = "[AGENT]"

        if severity == "warning":
            style = "yellow"
        elif severity == "error":
            style = "red"
        elif severity == "critical":
            style = "bold red"
        elif severity == "success":
            style = "green"

        error_console.print(f"[{style}]{prefix} {message}[/{style}]", highlight=False)

    @staticmethod
    def log_outcome(outcome: SyncOutcome) -> None:
        OutputFormatter.log(outcome.description, severity="success" if outcome.ok else "error")

    @staticmethod
    def print_diagnostics(diagnostics: List[AgentDiagnostic]) -> None:
        """
        Prints a table of problems the agent skipped over.
        """
        if not diagnostics:
            return

        table = Table(title="Agent Diagnostics", border_style="yellow", header_style="bold yellow")
        table.add_column("Severity", style="bold")
        table.add_column("Source")
        table.add_column("Code")
        table.add_column("Message")
        table.add_column("Location")

        for diag in diagnostics:
            color = "yellow"
            if diag.severity == "error":
                color = "red"
            elif diag.severity == "info":
                color = "white"

            table.add_row(
                f"[{color}]{diag.severity.upper()}[/{color}]",
                diag.source,
                diag.error_code,
                diag.message,
                diag.file_path or "",
            )

        error_console.print(table)
        error_console.print() # spacing

    @staticmethod
    def print_status(rows: Dict[str, str]) -> None:
        table = Table(title="vibe-usage agent", show_header=False)
        table.add_column("Key", style="bold")
        table.add_column("Value")
        for key, value in rows.items():
            table.add_row(key, value)
        error_console.print(table)

    @staticmethod
    def print_data(data: Any) -> None:
        """
        Print a result to stdout.
        Handles Pydantic models and complex types.
        """
        if isinstance(data, str):
            typer.echo(data)
            return

        def json_serializer(obj):
            if isinstance(obj, BaseModel):
                return obj.model_dump(mode='json')
            if hasattr(obj, "isoformat"):
                return obj.isoformat()
            return str(obj)

        try:
            output = json.dumps(data, indent=2, default=json_serializer)
            typer.echo(output)
        except TypeError as e:
            OutputFormatter.log(f"JSON Serialization failed: {e}", severity="error")
            typer.echo(str(data))
