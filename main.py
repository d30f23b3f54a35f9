#!/usr/bin/env python3
"""
LabDesk - Main Entry Point
Console for clinical laboratory operations: patients, orders, worklist,
protocols and result reports.
"""

import asyncio
import logging
import sys

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from labdesk.api.client import LabApiClient
from labdesk.core.config import settings
from labdesk.core.session import SessionContext, TokenStore
from labdesk.ui.screens import LabConsole

console = Console()
logger = logging.getLogger(__name__)


def setup_logging():
    """Log to file and stderr using the configured format"""
    settings.create_log_directory()
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format=settings.log_format,
        handlers=[
            logging.FileHandler(settings.log_file),
            logging.StreamHandler()
        ]
    )
    # keep request lines out of the console
    logging.getLogger("httpx").setLevel(logging.WARNING)


def display_welcome():
    """Display welcome message and system information"""

    welcome_text = Text()
    welcome_text.append(f"🏥 {settings.app_name}\n", style="bold blue")
    welcome_text.append(f"Version: {settings.app_version}\n", style="green")
    welcome_text.append(f"Environment: {settings.environment}\n", style="yellow")
    welcome_text.append(f"Backend: {settings.api_url}\n", style="cyan")

    panel = Panel(
        welcome_text,
        title="[bold]LabDesk Status[/bold]",
        border_style="blue"
    )

    console.print(panel)


async def run():
    session = SessionContext(TokenStore(settings.token_path))
    if session.restore():
        console.print("✅ Session restored")

    async with LabApiClient(session) as client:
        await LabConsole(session, client, console).interactive_menu()


def main():
    """Main entry point for LabDesk"""
    try:
        setup_logging()
        display_welcome()
        asyncio.run(run())

    except KeyboardInterrupt:
        console.print("\n\n[bold yellow]Shutdown requested...[/bold yellow]")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Fatal error in main: {str(e)}")
        console.print(f"❌ Fatal error: {str(e)}")
        sys.exit(1)


if __name__ == "__main__":
    main()
