"""System prompt templates and request preparation.

Each conversation mode maps to one fixed template. Before every dispatch the
orchestrator materializes the template into a system message and prepends it
unless the conversation already carries one.
"""

import logging
from dataclasses import dataclass, replace

from helium_server.inference.types import (
    AIMode,
    InferenceRequest,
    Message,
    MessageRole,
)
from helium_server.services.context_builder import (
    DEFAULT_MAX_CONTEXT_CHARS,
    build_file_system_context,
    truncate_context,
)

logger = logging.getLogger(__name__)

NO_CONTEXT_TEXT = "No file system context available."
NO_TOOLS_TEXT = "No tools are available."


@dataclass(frozen=True)
class PromptTemplate:
    """A system prompt template for one conversation mode."""

    template_id: str
    name: str
    mode: AIMode
    system_prompt: str
    variables: tuple[str, ...]


QA_TEMPLATE = PromptTemplate(
    template_id="qa-default",
    name="File System QA",
    mode=AIMode.QA,
    system_prompt="""You are a helpful file system expert assistant. Your role is to answer questions about the user's files and folders based on the provided context.

Guidelines:
- Provide clear, concise answers based on the file system data
- If you don't have enough information, say so
- Reference specific files and folders by their paths
- Format file sizes in human-readable format (KB, MB, GB)
- Be helpful and friendly

File System Context:
{fs_context}""",
    variables=("fs_context",),
)

SUMMARIZE_TEMPLATE = PromptTemplate(
    template_id="summarize-default",
    name="File System Summarization",
    mode=AIMode.SUMMARIZE,
    system_prompt="""You are a file system analyzer. Provide concise, insightful summaries of file and folder information.

Guidelines:
- Highlight key insights and patterns
- Identify largest files and folders
- Note file type distributions
- Keep summaries brief (2-4 sentences)
- Use bullet points for clarity when appropriate

File System Context:
{fs_context}""",
    variables=("fs_context",),
)

AGENT_TEMPLATE = PromptTemplate(
    template_id="agent-default",
    name="File System Agent",
    mode=AIMode.AGENT,
    system_prompt="""You are an AI agent with access to file system operations via tools. You can help users manage, analyze, and organize their files.

Available Tools:
{tools}

Guidelines:
- Think step-by-step before using tools
- Use tools to gather information before answering
- Explain what you're doing and why
- Be cautious with destructive operations

Current Directory: {current_path}
File System Context: {fs_context}""",
    variables=("tools", "current_path", "fs_context"),
)

PROMPT_TEMPLATES: dict[str, PromptTemplate] = {
    template.template_id: template
    for template in (QA_TEMPLATE, SUMMARIZE_TEMPLATE, AGENT_TEMPLATE)
}


def get_template_for_mode(mode: AIMode) -> PromptTemplate:
    """Get the template for a conversation mode.

    Raises:
        ValueError: If the mode has no template
    """
    if mode is AIMode.QA:
        return QA_TEMPLATE
    elif mode is AIMode.SUMMARIZE:
        return SUMMARIZE_TEMPLATE
    elif mode is AIMode.AGENT:
        return AGENT_TEMPLATE
    raise ValueError(f"No prompt template for mode: {mode}")


def build_prompt(template: str, variables: dict[str, str]) -> str:
    """Substitute every {name} placeholder for which a value is supplied.

    Placeholders without a value are left verbatim.
    """
    result = template
    for key, value in variables.items():
        result = result.replace(f"{{{key}}}", value)
    return result


def build_system_prompt(
    request: InferenceRequest,
    tools_description: str | None = None,
    max_context_chars: int = DEFAULT_MAX_CONTEXT_CHARS,
) -> str:
    """Materialize the system prompt for a request's mode and context."""
    template = get_template_for_mode(request.mode)

    if request.fs_context is not None:
        fs_context = truncate_context(
            build_file_system_context(request.fs_context), max_context_chars
        )
    else:
        fs_context = NO_CONTEXT_TEXT

    return build_prompt(
        template.system_prompt,
        {
            "fs_context": fs_context or NO_CONTEXT_TEXT,
            "current_path": request.fs_context.current_path
            if request.fs_context
            else "/",
            "tools": tools_description or NO_TOOLS_TEXT,
        },
    )


def prepare_request(
    request: InferenceRequest,
    tools_description: str | None = None,
    max_context_chars: int = DEFAULT_MAX_CONTEXT_CHARS,
) -> InferenceRequest:
    """Return the request a provider should see.

    A system message is prepended only when the conversation has none;
    existing system messages are never duplicated or replaced.
    """
    if request.has_system_message():
        return request

    system_message = Message.create(
        MessageRole.SYSTEM,
        build_system_prompt(request, tools_description, max_context_chars),
    )
    logger.debug(f"Prepended {request.mode.value} system prompt")
    return replace(request, messages=(system_message, *request.messages))
