"""
CLI for Gemini Browser.

Provides the command-line interface using argparse.
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.prompt import Prompt

from . import __version__
from .agent import AgentLoop, TaskResult
from .config import DEFAULTS, AgentConfig, parse_positive_int, resolve_config
from .errors import AgentError, ConfigError
from .logger import RunLogger, format_result


logger = logging.getLogger(__name__)


EXIT_COMMANDS = {"exit", "quit"}

INTERACTIVE_HELP = """[bold]Commands:[/bold]
  exit, quit  End the session
  help        Show this message

Anything else is sent to the agent. Follow-ups share the conversation,
so you can refer to earlier results."""


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="gemini-browser",
        description="Gemini Browser - a Gemini agent that drives Chrome through DevTools MCP.",
        epilog="""
Examples:
  # Ask a question and keep chatting
  gemini-browser "What is the weather in Paris?"

  # One-shot run for scripts
  gemini-browser "Find the price of an iPhone 16 on apple.com" --no-interactive --quiet

  # Structured output
  gemini-browser "Top 3 results for python httpx" --schema schemas/examples/search_results.json

  # Use a preset from .gemini-browserrc.json
  gemini-browser "Summarize news.ycombinator.com" --preset fast
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Gemini Browser {__version__}",
    )

    parser.add_argument(
        "task",
        nargs="*",
        help="The task to accomplish in natural language",
    )

    parser.add_argument(
        "--schema",
        type=str,
        default=None,
        help="Path to a JSON schema file for structured output",
    )

    parser.add_argument(
        "--max-steps",
        type=str,
        default=None,
        help=f"Maximum steps per task (default: {DEFAULTS['max_steps']})",
    )

    parser.add_argument(
        "--no-interactive",
        action="store_true",
        default=False,
        help="Exit after the task instead of waiting for follow-ups",
    )

    parser.add_argument(
        "--preset",
        type=str,
        default=None,
        help="Apply a named preset from .gemini-browserrc.json",
    )

    parser.add_argument(
        "--model",
        type=str,
        default=None,
        help=f"Gemini model name (default: {DEFAULTS['model']})",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Print only the final result",
    )

    parser.add_argument(
        "-d", "--debug",
        action="store_true",
        default=False,
        help="Enable debug logging",
    )

    return parser


def setup_logging(debug: bool = False) -> None:
    """Route library logging through rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    if not debug:
        # httpx logs every request at INFO
        logging.getLogger("httpx").setLevel(logging.WARNING)


def build_cli_config(args: argparse.Namespace) -> dict:
    """Collect the configuration values given on the command line."""
    return {
        "model": args.model,
        "max_steps": parse_positive_int(args.max_steps, "max-steps") if args.max_steps else None,
        "schema": args.schema,
        "interactive": False if args.no_interactive else None,
    }


def emit_result(result: TaskResult, config: AgentConfig, run_logger: RunLogger) -> None:
    """Write a task result to the terminal."""
    if config.quiet:
        print(format_result(result))
    else:
        run_logger.print_response(result)


def report_error(error: Exception, config: AgentConfig, run_logger: RunLogger) -> None:
    """Show an error in a panel, or on stderr when quiet."""
    if config.quiet:
        print(f"Error: {error}", file=sys.stderr)
    else:
        run_logger.print_error(str(error))


async def run_task(
    agent: AgentLoop,
    text: str,
    config: AgentConfig,
    run_logger: RunLogger,
    follow_up: bool = False,
) -> TaskResult:
    """Run one task and print its result."""
    if follow_up:
        result = await agent.continue_conversation(text)
    else:
        result = await agent.execute_task(text)
    emit_result(result, config, run_logger)
    return result


async def interactive_loop(
    agent: AgentLoop,
    config: AgentConfig,
    run_logger: RunLogger,
    console: Console,
) -> None:
    """Read follow-up tasks until the user exits.

    Errors from a single task are reported and the session continues.
    """
    console.print()
    console.print("[dim]Interactive mode. Type 'help' for commands, 'exit' to quit.[/dim]")

    while True:
        try:
            text = await asyncio.to_thread(Prompt.ask, "\n[bold cyan]>[/bold cyan]", console=console)
        except EOFError:
            break

        text = text.strip()
        if not text:
            continue
        if text.lower() in EXIT_COMMANDS:
            break
        if text.lower() == "help":
            console.print(INTERACTIVE_HELP)
            continue

        try:
            await run_task(agent, text, config, run_logger, follow_up=True)
        except Exception as e:
            logger.debug("Task failed", exc_info=True)
            report_error(e, config, run_logger)


async def run_session(
    config: AgentConfig,
    task: Optional[str],
    run_logger: RunLogger,
    console: Console,
) -> int:
    """Connect the agent, run the initial task and the interactive loop."""
    async with AgentLoop.from_config(config, observer=run_logger) as agent:
        if task:
            try:
                await run_task(agent, task, config, run_logger)
            except Exception as e:
                if not config.interactive:
                    raise
                logger.debug("Task failed", exc_info=True)
                report_error(e, config, run_logger)

        if config.interactive:
            await interactive_loop(agent, config, run_logger, console)

    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point.

    Args:
        argv: Command line arguments (uses sys.argv if None)

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.debug)
    console = Console()

    try:
        config = resolve_config(
            build_cli_config(args),
            preset_name=args.preset,
            quiet=args.quiet,
            debug=args.debug,
        )
        config.validate()
    except ConfigError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        return 1

    if config.debug and not args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    task = " ".join(args.task).strip() or None
    if not task and not config.interactive:
        console.print("[bold red]Error:[/bold red] A task is required in non-interactive mode")
        return 1

    run_logger = RunLogger(
        enable_console=not config.quiet,
        log_dir=config.log_dir,
        console=console,
    )
    run_logger.print_header(config)

    try:
        return asyncio.run(run_session(config, task, run_logger, console))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        return 130
    except AgentError as e:
        report_error(e, config, run_logger)
        return 1
    except Exception as e:
        logger.debug("Fatal error", exc_info=True)
        console.print(f"[bold red]Fatal error: {e}[/bold red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
