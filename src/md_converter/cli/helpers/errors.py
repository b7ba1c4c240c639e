"""
Error handling utilities for CLI commands.
"""

import functools
import sys

import click
from rich.console import Console

from md_converter.core.exceptions import MDConverterError

console = Console()


def handle_errors(func):
    """Decorator to handle common CLI errors."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except click.ClickException:
            raise
        except KeyboardInterrupt:
            console.print("\n[yellow]Operation cancelled by user[/yellow]")
            sys.exit(1)
        except MDConverterError as e:
            console.print(f"[red]Error: {e.message}[/red]")
            if e.error_code:
                console.print(f"[dim]Code: {e.error_code}. Use --debug for more details[/dim]")
            sys.exit(1)
        except Exception as e:
            console.print(f"[red]Error: {e}[/red]")
            console.print("[dim]Use --debug for more details[/dim]")
            sys.exit(1)

    return wrapper
