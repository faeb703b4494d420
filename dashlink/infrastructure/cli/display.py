import logging
from typing import Any, Optional

from rich.console import Console
from rich.json import JSON
from rich.panel import Panel
from rich.box import ROUNDED

from dashlink.domain.interfaces.user_interface import UserInterface
from dashlink.domain.models.api import ResponseEnvelope

logger = logging.getLogger(__name__)


class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def display_envelope(self, envelope: ResponseEnvelope[Any], **kwargs: Any) -> None:
        """Renders a response envelope.

        Successful responses are shown as highlighted JSON in a panel; failed
        ones as an error line.

        Args:
            envelope: The envelope returned by the client.
            **kwargs: Additional arguments including:
                - title: Panel title (default: "Response")
        """
        title = kwargs.get("title", "Response")
        if not envelope.success:
            self.display_error(envelope.error or "Request failed")
            return

        if envelope.data is None:
            self.console.print(f"[green]OK[/green] {title}")
            return

        logger.debug(f"display_envelope called: title={title}, data_type={type(envelope.data).__name__}")
        body = JSON.from_data(envelope.data, default=str)
        self.console.print(
            Panel(body, title=f"[bold green]{title}[/bold green]", box=ROUNDED, expand=False)
        )

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        self.console.print(f"[bold red]Error:[/bold red] {error_message}")

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        self.console.print(f"[bold yellow]Warning:[/bold yellow] {warning_message}")

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        self.console.print(f"[blue]Info:[/blue] {info_message}")
