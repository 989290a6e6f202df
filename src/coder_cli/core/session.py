"""
Chat session - the interactive conversation loop.

Owns the transcript: every request resends the full ordered history and a
turn is appended only once the backend answered. File edits found in a
reply are applied after confirmation.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from coder_cli.client.api_client import AiClient
from coder_cli.client.models import AiResponse, ChatMessage, ChatMode
from coder_cli.context.analyzer import ProjectAnalysis, prepare_file_context
from coder_cli.core.errors import AiCommunicationError, CoderCliError, format_user_error
from coder_cli.executor.applier import ModificationApplier
from coder_cli.executor.models import (
    CodeModification,
    ModificationResult,
    ModificationType,
)
from coder_cli.executor.parser import parse_modifications
from coder_cli.ui.console import CoderConsole

logger = logging.getLogger(__name__)

BASE_SYSTEM_PROMPT = """You are an AI coding assistant. Help with analyzing, creating, and fixing code.

Be concise but thorough in your responses. When providing code, use proper syntax highlighting.
If you're asked to analyze a project, focus on the architecture, key components, and potential issues.
If you're asked to fix code, identify the issue and provide corrected code with explanations.
If you're asked to create code, implement the requested functionality following best practices."""

EXIT_WORDS = {"exit", "quit"}

# Config files longer than this are not sent as context
MAX_CONFIG_CONTEXT_CHARS = 2000

THINK_BLOCK_PATTERN = re.compile(r"<think>.*?</think>", re.DOTALL)
CODE_BLOCK_PATTERN = re.compile(r"```(?:\w+)?\n(.*?)\n```", re.DOTALL)


class ChatSessionOptions(BaseModel):
    """Mode and mode-specific inputs. Fixed for the life of a session."""
    model_config = ConfigDict(frozen=True)

    mode: ChatMode = ChatMode.CHAT
    issue_description: Optional[str] = None
    specification: Optional[str] = None
    explanation_request: Optional[str] = None
    script_name: Optional[str] = None
    script_specification: Optional[str] = None
    script_context: Optional[str] = None
    system_prompt: Optional[str] = None


def _mode_instructions(options: ChatSessionOptions) -> str:
    if options.mode == ChatMode.FIX:
        return f"The user wants to fix an issue: {options.issue_description or 'Unknown issue'}"
    if options.mode == ChatMode.CREATE:
        return f"The user wants to create: {options.specification or 'Something unspecified'}"
    if options.mode == ChatMode.EXPLAIN:
        return (
            "The user wants an explanation for the following code: "
            f"{options.explanation_request or 'a piece of code'}"
        )
    if options.mode == ChatMode.SCRIPT:
        return (
            f'The user wants to generate a script file named "{options.script_name or "unknown.js"}" '
            f'with the following specification: "{options.script_specification or "unspecified functionality"}". '
            "Analyze the provided project context and generate the script content. "
            "Output ONLY the script content, no additional text or markdown."
        )
    return ""


def prepare_initial_context(
    analysis: Optional[ProjectAnalysis],
    options: ChatSessionOptions,
) -> Tuple[str, List[ChatMessage]]:
    """System prompt and the opening context messages for a session."""
    system_prompt = BASE_SYSTEM_PROMPT
    messages: List[ChatMessage] = []

    if analysis is not None:
        messages.append(ChatMessage(
            role="user",
            content=(
                "I'm working on a project with the following structure:\n\n"
                f"{analysis.summary}\n\nHere are some key files:"
            ),
        ))
        for config_file in analysis.config_files:
            if len(config_file.content) < MAX_CONFIG_CONTEXT_CHARS:
                messages.append(ChatMessage(
                    role="user",
                    content=f"File: {config_file.path}\n\n{config_file.content}",
                ))
        if analysis.code_files:
            messages.append(ChatMessage(
                role="user",
                content=(
                    f"The project contains {len(analysis.code_files)} code files. "
                    "I can provide specific files if needed."
                ),
            ))

    instructions = _mode_instructions(options)
    if instructions:
        system_prompt += f"\n\n{instructions}"
    if options.system_prompt:
        system_prompt += f"\n\n{options.system_prompt}"

    return system_prompt, messages


def unwrap_response_content(content: str) -> Tuple[str, Optional[Dict[str, Any]]]:
    """
    Unwrap replies that arrive as (possibly nested) ``{"response": "..."}`` JSON.

    Returns the innermost message and the last ``usage`` object seen.
    Plain-text content is returned unchanged.
    """
    try:
        data = json.loads(content)
    except ValueError:
        return content, None

    message = content
    usage: Optional[Dict[str, Any]] = None
    while True:
        if not isinstance(data, dict):
            return message, usage
        if isinstance(data.get("usage"), dict):
            usage = data["usage"]
        if not isinstance(data.get("response"), str):
            return json.dumps(data), usage
        message = data["response"]
        try:
            data = json.loads(message)
        except ValueError:
            return message, usage


def clean_script_response(raw: str) -> str:
    """Drop ``<think>`` blocks and keep the first fenced code block, if any."""
    cleaned = THINK_BLOCK_PATTERN.sub("", raw).strip()
    match = CODE_BLOCK_PATTERN.search(cleaned)
    if match and match.group(1):
        cleaned = match.group(1).strip()
    return cleaned


@dataclass
class ChatSession:
    """
    One conversation with the backend.

    Usage:
        session = ChatSession(client, ui, options, analysis=analysis, project_path=path)
        await session.run()
    """

    client: AiClient
    ui: CoderConsole
    options: ChatSessionOptions = field(default_factory=ChatSessionOptions)
    analysis: Optional[ProjectAnalysis] = None
    project_path: Optional[Path] = None
    streaming: bool = True
    messages: List[ChatMessage] = field(default_factory=list)
    system_prompt: str = ""

    def __post_init__(self):
        system_prompt, initial_messages = prepare_initial_context(self.analysis, self.options)
        self.system_prompt = system_prompt
        self.messages = initial_messages + self.messages

    @property
    def can_modify(self) -> bool:
        return self.project_path is not None and self.analysis is not None

    async def request(self) -> AiResponse:
        """Send the transcript; streamed with fallback, or buffered with retry."""
        if self.streaming:
            self.ui.start_stream()
            try:
                return await self.client.send_streamed(
                    self.messages, self.system_prompt, self.options.mode, self.ui.stream_fragment,
                )
            finally:
                self.ui.end_stream()

        with self.ui.thinking():
            return await self.client.send_with_retry(
                self.messages, self.system_prompt, self.options.mode,
            )

    async def run_turn(self, user_input: str) -> str:
        """
        Run one user turn and return the assistant text.

        On failure the user message is dropped so the transcript only holds
        completed turns.
        """
        self.messages.append(ChatMessage(role="user", content=user_input))
        try:
            response = await self.request()
        except Exception:
            self.messages.pop()
            raise

        message, usage = unwrap_response_content(response.content)
        if not self.streaming or message != response.content:
            self.ui.print_ai_response(message)
        if usage:
            self.ui.print_usage(usage)

        self.messages.append(ChatMessage(role="assistant", content=message))
        self.ui.print_token_warnings(response)
        return message

    def handle_modifications(self, content: str) -> Optional[ModificationResult]:
        """Offer to apply the file edits found in ``content``."""
        if not self.can_modify:
            return None

        modifications = parse_modifications(content)
        if not modifications:
            return None

        self.ui.print_info(f"Found {len(modifications)} potential code modifications.")
        if not self.ui.confirm(f"Apply these {len(modifications)} modifications?", default=True):
            return None

        result = ModificationApplier(self.project_path).apply(modifications)
        self.ui.print_modification_result(result)
        return result

    async def run(self):
        """Interactive loop until exit/quit, Ctrl+C or Ctrl+D."""
        self.ui.print_info('AI Assistant is ready! Type your message (or "exit" to quit).')

        while True:
            try:
                user_input = await self.ui.prompt_input_async()
            except (KeyboardInterrupt, EOFError):
                self.ui.print_warning("Chat session ended by user.")
                break

            user_input = user_input.strip()
            if not user_input:
                continue
            if user_input.lower() in EXIT_WORDS:
                self.ui.print_goodbye()
                break

            try:
                content = await self.run_turn(user_input)
            except AiCommunicationError as e:
                self.ui.print_error(f"[AI Communication Error]\n{e.message}", recoverable=False)
                continue
            except CoderCliError as e:
                self.ui.print_error(format_user_error(e), recoverable=False)
                continue
            except Exception as e:
                logger.exception("Unexpected error during chat turn")
                self.ui.print_error(f"An unexpected error occurred: {e}", recoverable=False)
                continue

            self.handle_modifications(content)

    async def generate_script(self) -> ModificationResult:
        """Non-interactive script mode: ask once and write the cleaned script."""
        if self.project_path is None or not self.options.script_name:
            raise CoderCliError("Script generation needs a project path and a script name")

        request = (
            f'Generate a script file named "{self.options.script_name}" that does the following: '
            f'"{self.options.script_specification or "unspecified functionality"}".'
        )
        script_context = self.options.script_context
        if script_context is None and self.analysis is not None:
            script_context = prepare_file_context(self.analysis)
        if script_context:
            request += f"\n\nProject context:\n{script_context}"
        self.messages.append(ChatMessage(role="user", content=request))

        with self.ui.thinking(f"Generating script {self.options.script_name}..."):
            response = await self.client.send_with_retry(
                self.messages, self.system_prompt, ChatMode.SCRIPT,
            )

        message, _ = unwrap_response_content(response.content)
        self.messages.append(ChatMessage(role="assistant", content=message))
        self.ui.print_token_warnings(response)

        script = clean_script_response(message)
        result = ModificationApplier(self.project_path).apply([
            CodeModification(
                type=ModificationType.CREATE,
                file_path=self.options.script_name,
                content=script,
            )
        ])
        self.ui.print_modification_result(result)
        return result
