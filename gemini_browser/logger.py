"""
Console output and run logs for Gemini Browser.

RunLogger renders agent progress events with rich and, when a log
directory is configured, appends every tool call to a JSONL file.
"""

import json
import re
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .agent import AgentObserver, TaskResult
from .types import CapabilityInvocationRequest, CapabilityInvocationResult
from .utils import truncate_text

if TYPE_CHECKING:
    from .config import AgentConfig


RESULT_PREVIEW_CHARS = 200


def slugify(text: str, max_length: int = 30) -> str:
    """Convert text to a filesystem-safe slug."""
    slug = re.sub(r'[^\w\s-]', '', text.lower())
    slug = re.sub(r'[-\s]+', '_', slug).strip('_')
    return slug[:max_length]


def format_result(result: TaskResult) -> str:
    """Render a task result as text (structured answers as indented JSON)."""
    if isinstance(result, str):
        return result
    return json.dumps(result, indent=2, ensure_ascii=False)


class RunLogger(AgentObserver):
    """Renders agent progress for a terminal session."""

    def __init__(
        self,
        enable_console: bool = True,
        log_dir: Optional[Path] = None,
        console: Optional[Console] = None,
    ):
        """Initialize the run logger.

        Args:
            enable_console: Whether to print to console
            log_dir: Directory for per-task JSONL logs (disabled if None)
            console: Console to print to (a new one if None)
        """
        self.console = (console or Console()) if enable_console else None
        self.log_dir = Path(log_dir) if log_dir else None
        self.steps_file: Optional[Path] = None
        self.step_count = 0
        self._pending: Optional[CapabilityInvocationRequest] = None

    def print_header(self, config: "AgentConfig") -> None:
        """Print the configuration banner."""
        if not self.console:
            return

        if config.thinking_budget == -1:
            thinking = "Dynamic"
        elif config.thinking_budget == 0:
            thinking = "Disabled"
        else:
            thinking = str(config.thinking_budget)

        table = Table(show_header=False, box=None)
        table.add_column("Property", style="dim")
        table.add_column("Value")
        table.add_row("Model", config.model)
        table.add_row("Max Steps", str(config.max_steps))
        table.add_row("Thinking Budget", thinking)
        if config.response_schema is not None:
            table.add_row("Response Schema", str(config.schema or "Enabled"))

        self.console.print(Panel(table, title="Gemini Browser", border_style="cyan"))

    def print_response(self, result: TaskResult) -> None:
        """Print the final result of a task."""
        if not self.console:
            return
        self.console.print()
        self.console.print(Panel(format_result(result), title="Agent Response", border_style="green"))

    def print_error(self, error: str) -> None:
        """Print an error message to console."""
        if not self.console:
            return
        self.console.print(Panel(error, title="Error", border_style="red"))

    def on_connected(self, tool_count: int) -> None:
        if self.console:
            self.console.print(f"[dim]Loaded {tool_count} tools from Chrome DevTools MCP[/dim]")

    def on_task_started(self, query: str) -> None:
        self.step_count = 0
        if self.log_dir:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            run_dir = self.log_dir / f"{timestamp}_{slugify(query)}"
            run_dir.mkdir(parents=True, exist_ok=True)
            self.steps_file = run_dir / "steps.jsonl"
            self.steps_file.touch()

        if self.console:
            self.console.print()
            self.console.print(f"[bold cyan]Task:[/bold cyan] {query}")

    def on_step(self, step: int, ceiling: int, rationale: Optional[str]) -> None:
        self.step_count = step
        if not self.console:
            return
        self.console.print()
        self.console.rule(f"Step {step}/{ceiling}")
        if rationale:
            self.console.print(f"  [dim]Agent thinking:[/dim] {rationale}")

    def on_tool_call(self, request: CapabilityInvocationRequest) -> None:
        self._pending = request
        if not self.console:
            return

        text = Text()
        text.append("→ ", style="bold")
        text.append(request.name, style="bold cyan")
        args_str = ", ".join(f"{k}={v!r}" for k, v in request.arguments.items())
        if args_str:
            text.append(f"({truncate_text(args_str, 300)})", style="dim")
        self.console.print(text)

    def on_tool_result(self, result: CapabilityInvocationResult) -> None:
        preview = truncate_text(result.result_text, RESULT_PREVIEW_CHARS)
        if self.console:
            if result.is_error:
                self.console.print(Text.assemble(("  ✗ ", "red"), preview))
            else:
                self.console.print(Text.assemble(("  ✓ ", "green"), preview))

        request = self._pending
        self._pending = None
        self.log_step(
            request.arguments if request and request.name == result.capability_name else {},
            result,
        )

    def on_answer(self, value: TaskResult) -> None:
        if self.console:
            self.console.print()
            self.console.print("[bold green]✓ Task completed[/bold green]")

    def on_exhausted(self, steps: int) -> None:
        if self.console:
            self.console.print()
            self.console.print(f"[yellow]Maximum steps reached ({steps}). Task incomplete.[/yellow]")

    def on_cleanup(self) -> None:
        if self.console:
            self.console.print("[dim]Browser connection closed[/dim]")

    def log_step(self, arguments: dict[str, Any], result: CapabilityInvocationResult) -> None:
        """Append one tool call to the JSONL log, if enabled."""
        if not self.steps_file:
            return

        step_data = {
            "step": self.step_count,
            "timestamp": datetime.now().isoformat(),
            "tool": result.capability_name,
            "arguments": arguments,
            "result": truncate_text(result.result_text, 2000),
            "error": result.is_error,
        }

        with open(self.steps_file, "a", encoding="utf-8") as f:
            f.write(json.dumps(step_data, default=str) + "\n")
