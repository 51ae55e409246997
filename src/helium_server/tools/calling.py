"""Detection, extraction and formatting of text-based tool calls.

Models request tools by embedding JSON objects in tool_call tags:

    <tool_call>{"name": "list_directory", "arguments": {"path": "/"}}</tool_call>

Detection is a cheap substring check that runs on every reply. Extraction
only runs when detection is positive and tolerates malformed entries by
skipping them.
"""

import json
import logging
import re
import uuid
from typing import Any, Iterable

from helium_server.inference.types import ToolCall

logger = logging.getLogger(__name__)

TOOL_CALL_OPEN = "<tool_call>"
TOOL_CALL_CLOSE = "</tool_call>"
TOOL_USE_PLACEHOLDER = "(Using tools...)"

# An unclosed block ends at the next opening tag or at the end of the reply.
_TOOL_CALL_PATTERN = re.compile(
    r"<tool_call>\s*(.*?)\s*(?:</tool_call>|(?=<tool_call>)|\Z)",
    re.DOTALL,
)
_BLANK_RUNS = re.compile(r"\n{3,}")
_DECODER = json.JSONDecoder()


def detect_tool_call(text: str) -> bool:
    """Return True if the text contains tool call markup."""
    return TOOL_CALL_OPEN in text


def _parse_arguments(payload: dict[str, Any]) -> dict[str, Any] | None:
    raw = payload.get("arguments", payload.get("parameters", {}))
    if raw is None:
        return {}
    if isinstance(raw, str):
        # OpenAI-style JSON-encoded arguments
        try:
            raw = json.loads(raw) if raw.strip() else {}
        except json.JSONDecodeError:
            return None
    if not isinstance(raw, dict):
        return None
    return raw


def _markup_spans(text: str) -> list[tuple[int, int, str]]:
    """Return (start, end, body) for every tool call block in the text.

    An unclosed block covers its leading JSON value if one decodes, otherwise
    the rest of its first line. Whatever follows is narrative text.
    """
    spans: list[tuple[int, int, str]] = []
    for match in _TOOL_CALL_PATTERN.finditer(text):
        body = match.group(1)
        if match.group(0).endswith(TOOL_CALL_CLOSE):
            spans.append((match.start(), match.end(), body))
            continue

        try:
            _, cut = _DECODER.raw_decode(body)
        except json.JSONDecodeError:
            cut = body.find("\n")
            if cut == -1:
                cut = len(body)
        spans.append((match.start(), match.start(1) + cut, body[:cut]))
    return spans


def extract_tool_calls(text: str) -> list[ToolCall]:
    """Extract all well-formed tool calls from a reply, in textual order.

    Entries with invalid JSON, a missing name or non-object arguments are
    skipped; the remaining calls are still returned.

    Args:
        text: Raw assistant reply

    Returns:
        list[ToolCall]: Parsed tool calls (possibly empty)
    """
    calls: list[ToolCall] = []

    for _, _, body in _markup_spans(text):
        blob = body.strip()
        if not blob:
            continue

        try:
            payload = json.loads(blob)
        except json.JSONDecodeError as e:
            logger.debug(f"Skipping tool call with invalid JSON: {e}")
            continue

        if not isinstance(payload, dict):
            logger.debug("Skipping tool call whose payload is not an object")
            continue

        name = payload.get("name")
        if not isinstance(name, str) or not name.strip():
            logger.debug("Skipping tool call without a name")
            continue

        arguments = _parse_arguments(payload)
        if arguments is None:
            logger.debug(f"Skipping tool call {name}: arguments are not an object")
            continue

        call_id = payload.get("id")
        if not isinstance(call_id, str) or not call_id:
            call_id = f"call-{uuid.uuid4().hex[:10]}"

        calls.append(ToolCall(call_id=call_id, name=name.strip(), arguments=arguments))

    return calls


def format_tool_result(tool_name: str, result_text: str, is_error: bool) -> str:
    """Render a tool outcome as a turn body the model can read back."""
    if is_error:
        return (
            f'<tool_result name="{tool_name}" status="error">\n'
            f"Error: {result_text}\n"
            f"</tool_result>"
        )
    return (
        f'<tool_result name="{tool_name}" status="success">\n'
        f"{result_text}\n"
        f"</tool_result>"
    )


def strip_markup(text: str) -> str:
    """Remove tool call markup from the display copy of a reply.

    Narrative text is kept. If nothing but markup was present, the tool-use
    placeholder is returned instead of an empty string.
    """
    pieces: list[str] = []
    position = 0
    for start, end, _ in _markup_spans(text):
        pieces.append(text[position:start])
        position = end
    pieces.append(text[position:])

    cleaned = _BLANK_RUNS.sub("\n\n", "".join(pieces)).strip()
    return cleaned or TOOL_USE_PLACEHOLDER


def format_tool_instructions(tools: Iterable[Any]) -> str:
    """Describe the available tools and the markup contract for the model.

    Args:
        tools: Tool definitions exposing name, description and input_schema()

    Returns:
        str: Text block for the agent system prompt
    """
    lines: list[str] = []
    for tool in tools:
        schema = json.dumps(tool.input_schema(), separators=(",", ":"))
        lines.append(f"- {tool.name}: {tool.description}")
        lines.append(f"  Arguments schema: {schema}")

    if not lines:
        return "No tools are available."

    lines.append("")
    lines.append(
        "To use a tool, reply with one block per call in exactly this format:"
    )
    lines.append(
        f'{TOOL_CALL_OPEN}{{"name": "<tool name>", "arguments": {{...}}}}{TOOL_CALL_CLOSE}'
    )
    lines.append(
        "Tool results are sent back to you in tool_result blocks. "
        "When you have enough information, answer without any tool_call block."
    )
    return "\n".join(lines)
