"""Rich console UI for coder-cli."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.history import FileHistory
from prompt_toolkit.styles import Style as PTStyle
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.text import Text

from coder_cli.client.models import AiResponse
from coder_cli.executor.models import ModificationResult

HISTORY_FILE = Path.home() / ".coder-cli" / "history"

# Lines containing these are shown dimmed as model reasoning
REASONING_MARKERS = (
    "I need to", "Let me", "I remember", "I should", "I think", "Okay, so",
    "Another thing", "What about", "Wait,", "In summary", "First, I", "So, I",
    "I was thinking",
)


def is_reasoning_line(line: str) -> bool:
    stripped = line.strip()
    if stripped.startswith("[") and stripped.endswith("]"):
        return True
    return any(marker in line for marker in REASONING_MARKERS)


def token_warnings(response: AiResponse) -> list[tuple[str, str]]:
    """(style, message) pairs for low rate-limit / token balances."""
    warnings: list[tuple[str, str]] = []
    remaining = response.header_int("x-ratelimit-remaining")
    limit = response.header_int("x-ratelimit-limit")
    tokens = response.header_int("x-tokens-remaining")
    free = response.header_int("x-daily-free-generations-remaining")

    if remaining is not None and limit:
        if 0 < remaining <= 10:
            warnings.append((
                "yellow",
                f"You have {remaining} remaining requests before reaching the rate limit. "
                "Consider purchasing tokens.",
            ))
        elif remaining == 0:
            warnings.append(("red", "You have reached your rate limit. Please purchase tokens to continue."))

    if tokens is not None and 0 < tokens <= 200:
        warnings.append(("yellow", f"You have {tokens} tokens remaining. Consider purchasing more tokens."))
    elif tokens == 0 and free == 0:
        warnings.append((
            "red",
            "You have no free tokens or free generations remaining. Please purchase tokens to continue.",
        ))
    elif free == 1:
        warnings.append(("yellow", "You have 1 free generation remaining. Consider purchasing tokens."))

    return warnings


class CoderConsole:
    """Rich console for coder-cli."""

    def __init__(self, console: Optional[Console] = None, verbose: bool = False):
        self.console = console or Console()
        self.verbose = verbose
        self._prompt_session: Optional[PromptSession] = None

    def _session(self) -> PromptSession:
        """Prompt session with persistent history (↑/↓, Ctrl+R)."""
        if self._prompt_session is None:
            HISTORY_FILE.parent.mkdir(parents=True, exist_ok=True)
            self._prompt_session = PromptSession(
                history=FileHistory(str(HISTORY_FILE)),
                style=PTStyle.from_dict({"prompt": "bold cyan"}),
                enable_history_search=True,
            )
        return self._prompt_session

    def thinking(self, message: str = "AI is thinking..."):
        """Return a spinner context for thinking state."""
        return self.console.status(f"[bold cyan]{message}[/]", spinner="dots")

    def print_error(self, error: str, recoverable: bool = True):
        """Print an error message."""
        style = "yellow" if recoverable else "red"
        icon = "⚠" if recoverable else "✗"
        self.console.print(f"[{style}]{icon} {escape(error)}[/{style}]")

    def print_success(self, message: str):
        """Print a success message."""
        self.console.print(f"[green]✓ {message}[/green]")

    def print_info(self, message: str):
        """Print an info message."""
        self.console.print(f"[blue]ℹ {message}[/blue]")

    def print_warning(self, message: str):
        """Print a warning message."""
        self.console.print(f"[yellow]⚠ {escape(message)}[/yellow]")

    def print_summary(self, summary: str, title: str = "Project Summary"):
        self.console.print(Panel(Text(summary), title=f"[bold]{title}[/]", border_style="blue"))

    def print_ai_response(self, message: str):
        """Print a reply, dimming lines that read like reasoning."""
        text = Text()
        for line in message.replace("\\n", "\n").split("\n"):
            style = "dim" if line.strip() and is_reasoning_line(line) else "bright_green"
            text.append(line + "\n", style=style)
        self.console.print(Panel(text, title="[bold green]AI[/]", border_style="green"))

    def start_stream(self):
        self.console.print("\n[bold green]AI:[/] ", end="")

    def stream_fragment(self, fragment: str):
        """Echo one streamed fragment without a trailing newline."""
        self.console.print(fragment, end="", markup=False, highlight=False, soft_wrap=True)

    def end_stream(self):
        self.console.print()

    def print_usage(self, usage: Dict[str, Any]):
        self.console.print(
            f"[yellow][Tokens] Total: {usage.get('total_tokens')} "
            f"(Prompt: {usage.get('prompt_tokens')}, Completion: {usage.get('completion_tokens')})[/]"
        )

    def print_token_warnings(self, response: AiResponse):
        for style, message in token_warnings(response):
            icon = "❌" if style == "red" else "⚠️"
            self.console.print(f"[{style}]{icon}  Warning: {message}[/{style}]")

    def print_modification_result(self, result: ModificationResult):
        if result.success:
            self.print_success(result.message)
        else:
            self.print_error(result.message, recoverable=False)
        for path in result.modified_files:
            self.console.print(f"  [green]✓[/green] {path}")
        for warning in result.warnings:
            self.print_warning(warning)
        for error in result.errors:
            self.console.print(f"  [red]✗[/red] {escape(error)}")

    def confirm(self, message: str, default: bool = True) -> bool:
        """Ask for confirmation."""
        return Confirm.ask(message, console=self.console, default=default)

    def ask_text(self, message: str, default: Optional[str] = None, password: bool = False) -> str:
        """Ask for a line of text. Empty input returns ``default`` or ""."""
        if default is None:
            return Prompt.ask(message, console=self.console, default="", show_default=False, password=password)
        return Prompt.ask(message, console=self.console, default=default, password=password)

    async def prompt_input_async(self) -> str:
        """
        Get user input with history (async version).

        Ctrl+C / Ctrl+D propagate as KeyboardInterrupt / EOFError.
        """
        return await self._session().prompt_async("You> ")

    def print_goodbye(self):
        """Print goodbye message."""
        self.console.print("\n[bold cyan]👋 Goodbye![/bold cyan]\n")
