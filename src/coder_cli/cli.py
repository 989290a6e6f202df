"""
coder-cli - AI coding assistant with rich terminal UI.

The CLI collects local project context and applies file edits; the hosted
backend generates the replies.

Usage:
    coder-cli init                             # Configure API key
    coder-cli chat -p .                        # Interactive chat
    coder-cli fix . -i "login button broken"   # Fix an issue
    coder-cli new my-app -t react              # Scaffold a project
"""
from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Awaitable, Optional

import click
from rich.logging import RichHandler

from coder_cli import __version__
from coder_cli.client import AiClient
from coder_cli.client.models import ChatMode
from coder_cli.context.analyzer import ProjectAnalysis, analyze_project
from coder_cli.core.config import API_KEY_PAGE, CoderConfig, get_config_path, load_config, save_config
from coder_cli.core.errors import CoderCliError, format_user_error
from coder_cli.core.git import clone_repository
from coder_cli.core.project import ProjectGenerator, RedesignSession
from coder_cli.core.session import ChatSession, ChatSessionOptions
from coder_cli.ui import CoderConsole

logger = logging.getLogger(__name__)

# Global console instance
console: Optional[CoderConsole] = None


def get_console(verbose: bool = False) -> CoderConsole:
    """Get or create console instance."""
    global console
    if console is None:
        console = CoderConsole(verbose=verbose)
    return console


def setup_logging(verbose: bool):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=verbose, show_path=verbose)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def execute(operation: Awaitable):
    """Run a command coroutine; tool errors print and exit with status 1."""
    ui = get_console()
    try:
        return asyncio.run(operation)
    except CoderCliError as e:
        ui.print_error(format_user_error(e), recoverable=False)
        logger.debug("Command failed", exc_info=True)
        sys.exit(1)
    except KeyboardInterrupt:
        ui.print_warning("Interrupted.")
        sys.exit(130)


def load_client() -> AiClient:
    config = load_config()
    if not config.api_key:
        get_console().print_warning("No API key configured. Run `coder-cli init` to configure your API key.")
    return AiClient(config)


def analyze(path: Path) -> ProjectAnalysis:
    ui = get_console()
    with ui.thinking(f"Analyzing project at {path}..."):
        analysis = analyze_project(path)
    ui.print_summary(analysis.summary)
    return analysis


async def run_chat(
    options: ChatSessionOptions,
    project_path: Optional[Path] = None,
    streaming: bool = True,
):
    ui = get_console()
    analysis = analyze(project_path) if project_path else None
    session = ChatSession(
        client=load_client(),
        ui=ui,
        options=options,
        analysis=analysis,
        project_path=project_path,
        streaming=streaming,
    )
    if options.mode == ChatMode.SCRIPT:
        await session.generate_script()
    else:
        await session.run()


@click.group()
@click.version_option(version=__version__, prog_name="coder-cli")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool):
    """
    coder-cli - AI-powered coding assistant.

    Quick start:
        coder-cli init
        coder-cli chat -p .
    """
    setup_logging(verbose)
    get_console(verbose)


@cli.command()
@click.option("--api-key", "-k", help="API key for the AI backend")
@click.option("--api-url", "-u", help="Custom backend URL")
def init(api_key: Optional[str], api_url: Optional[str]):
    """
    Configure the AI backend connection.

    Without options the values are asked for interactively.
    """
    ui = get_console()
    config = load_config()

    if not api_key and not api_url:
        ui.print_info(f"Get an API key at {API_KEY_PAGE}")
        api_url = ui.ask_text("API URL", default=config.api_url)
        api_key = ui.ask_text("API key", password=True) or config.api_key

    updated = CoderConfig(
        api_url=api_url or config.api_url,
        api_key=api_key or config.api_key,
        timeout=config.timeout,
    )
    path = save_config(updated)
    ui.print_success(f"Configuration saved to {path}")


@cli.command()
def status():
    """Show current configuration."""
    ui = get_console()
    config = load_config()
    key_status = "[green]✓ configured[/]" if config.api_key else "[red]✗ not set[/]"

    ui.console.print(f"\n[bold]coder-cli Configuration[/] ({get_config_path()})")
    ui.console.print("─" * 50)
    ui.console.print(f"API URL:   {config.api_url}")
    ui.console.print(f"API key:   {key_status}")
    ui.console.print(f"Timeout:   {config.timeout_for():g}s")
    ui.console.print()


@cli.command(name="analyze")
@click.argument("path", default=".", type=click.Path(path_type=Path))
def analyze_command(path: Path):
    """Analyze a local project directory."""
    try:
        analyze(path)
    except CoderCliError as e:
        get_console().print_error(format_user_error(e), recoverable=False)
        sys.exit(1)


@cli.command()
@click.option("--project", "-p", type=click.Path(path_type=Path), help="Project directory")
@click.option("--repo", "-r", help="URL of a public repository to clone")
@click.option("--no-stream", is_flag=True, help="Disable streaming responses")
def chat(project: Optional[Path], repo: Optional[str], no_stream: bool):
    """Start an interactive chat session with code context."""
    async def start():
        project_path = project
        if repo:
            with get_console().thinking(f"Cloning {repo}..."):
                project_path = clone_repository(repo)
        await run_chat(ChatSessionOptions(mode=ChatMode.CHAT), project_path, streaming=not no_stream)

    execute(start())


@cli.command()
@click.argument("path", default=".", type=click.Path(path_type=Path))
@click.option("--issue", "-i", help="Describe the issue to fix")
def fix(path: Path, issue: Optional[str]):
    """Fix code issues in a project."""
    execute(run_chat(ChatSessionOptions(mode=ChatMode.FIX, issue_description=issue), path))


@cli.command()
@click.argument("path", default=".", type=click.Path(path_type=Path))
@click.option("--spec", "-s", "specification", help="What to create")
def create(path: Path, specification: Optional[str]):
    """Create new code in a project."""
    execute(run_chat(ChatSessionOptions(mode=ChatMode.CREATE, specification=specification), path))


@cli.command()
@click.argument("name")
@click.option("--tech", "-t", "technology", help="Technology stack (nextjs, vite, react, vue, ...)")
@click.option("--spec", "-s", "specification", help="Features to include")
def new(name: str, technology: Optional[str], specification: Optional[str]):
    """Create a new project with the given technology stack."""
    ui = get_console()
    execute(ProjectGenerator(load_client(), ui).create(name, technology, specification))


def explanation_context(file_path: Path, line: Optional[int]) -> str:
    """Prompt text for ``explain``: the whole file or a single line."""
    if not file_path.is_file():
        raise CoderCliError(f"File not found: {file_path}")
    content = file_path.read_text(encoding="utf-8")

    if line is None:
        return f"Explain the following code from file '{file_path}':\n\n```\n{content}\n```"

    lines = content.split("\n")
    if line < 1 or line > len(lines):
        raise CoderCliError(f"Invalid line number: {line}")
    return f"Explain line {line} from file '{file_path}':\n\n```\n{lines[line - 1]}\n```"


@cli.command()
@click.argument("path", type=click.Path(path_type=Path))
@click.option("--line", "-l", type=int, help="Line number to explain")
def explain(path: Path, line: Optional[int]):
    """Get an AI explanation for a file or a single line."""
    async def start():
        context = explanation_context(path, line)
        options = ChatSessionOptions(
            mode=ChatMode.EXPLAIN,
            explanation_request=str(path) if line is None else f"{path}:{line}",
            system_prompt=context,
        )
        await run_chat(options)

    execute(start())


@cli.command(name="create-script")
@click.argument("script_name")
@click.argument("path", default=".", type=click.Path(path_type=Path))
@click.option("--spec", "-s", "specification", required=True, help="What the script should do")
def create_script(script_name: str, path: Path, specification: str):
    """Generate a script file tailored to the project."""
    ui = get_console()
    ui.print_info(f"Generating script: {script_name} in {path}")
    options = ChatSessionOptions(
        mode=ChatMode.SCRIPT,
        script_name=script_name,
        script_specification=specification,
    )
    execute(run_chat(options, path))


@cli.command()
@click.argument("url")
def redesign(url: str):
    """Re-design a web page from a URL."""
    ui = get_console()
    execute(RedesignSession(load_client(), ui).run(url))


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
