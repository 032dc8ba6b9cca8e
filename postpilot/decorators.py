"""Decorators for postpilot CLI commands."""

import functools
import logging
from typing import Callable, Any
import typer
from rich.console import Console

from .exceptions import PostPilotError

logger = logging.getLogger(__name__)
console = Console()


def handle_errors(func: Callable) -> Callable:
    """
    Decorator to turn errors raised by a command into exit codes.

    - FileNotFoundError: content or config file missing
    - ValueError: invalid option values or configuration
    - PostPilotError: provider, credential or rate-limit failure
    - General exceptions: unexpected errors
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> Any:
        try:
            return func(*args, **kwargs)
        except typer.Exit:
            raise
        except FileNotFoundError as e:
            console.print(f"[bold red]Error:[/bold red] File not found: {e}")
            raise typer.Exit(code=1)
        except ValueError as e:
            console.print(f"[bold red]Error:[/bold red] Invalid input: {e}")
            raise typer.Exit(code=1)
        except PostPilotError as e:
            console.print(f"[bold red]Error:[/bold red] {e.message}")
            if e.retryable:
                console.print("[yellow]Tip: This error is temporary, try again later[/yellow]")
            raise typer.Exit(code=2)
        except KeyboardInterrupt:
            console.print("\n[yellow]Operation cancelled by user[/yellow]")
            raise typer.Exit(code=130)
        except Exception as e:
            logger.error(f"Unexpected error in {func.__name__}: {e}", exc_info=True)
            console.print(f"[bold red]Unexpected error:[/bold red] {e}")
            console.print("[dim]Run with --verbose for details[/dim]")
            raise typer.Exit(code=1)

    return wrapper
