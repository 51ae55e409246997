"""File-system context rendering for system prompts.

Builds a bounded, human-readable text snapshot of what the user is looking
at: current path, selection, visible entries and an optional scan summary.
"""

from helium_server.inference.types import FileMetadata, FileSystemContext

MAX_VISIBLE_ENTRIES = 50
MAX_LARGEST_FILES = 10
MAX_FILE_TYPES = 10
DEFAULT_MAX_CONTEXT_CHARS = 4000
TRUNCATION_MARKER = "\n\n[Context truncated...]"

_SIZE_UNITS = ["B", "KB", "MB", "GB", "TB"]


def format_file_size(size_bytes: int) -> str:
    """Format a byte count in human-readable units (e.g., "1.50 MB")."""
    size = float(size_bytes)
    unit_index = 0
    while size >= 1024 and unit_index < len(_SIZE_UNITS) - 1:
        size /= 1024
        unit_index += 1
    return f"{size:.2f} {_SIZE_UNITS[unit_index]}"


def _describe_entry(entry: FileMetadata) -> str:
    if entry.is_dir:
        if entry.file_count is not None:
            return f"- {entry.name} (Folder, {entry.file_count} items)"
        return f"- {entry.name} (Folder)"
    return f"- {entry.name} (File, {format_file_size(entry.size)})"


def build_file_system_context(context: FileSystemContext) -> str:
    """Render a file-system snapshot as prompt text.

    Args:
        context: The file-system state to describe

    Returns:
        str: Multi-line description. Visible entries are capped at 50, the
        scan summary at the 10 largest files and the 10 most common types.
    """
    parts: list[str] = []

    if context.current_path:
        parts.append(f"Current Directory: {context.current_path}")

    if context.selected_paths:
        parts.append("\nSelected Items:")
        parts.extend(f"- {path}" for path in context.selected_paths)

    if context.visible_files:
        parts.append("\nVisible Files in Current Directory:")
        shown = context.visible_files[:MAX_VISIBLE_ENTRIES]
        parts.extend(_describe_entry(entry) for entry in shown)
        hidden = len(context.visible_files) - len(shown)
        if hidden > 0:
            parts.append(f"...and {hidden} more")

    scan = context.scan_data
    if scan is not None:
        parts.append("\nFile System Summary:")
        parts.append(f"- Total Files: {scan.total_files:,}")
        parts.append(f"- Total Size: {format_file_size(scan.total_size)}")

        if scan.largest_files:
            parts.append("\nLargest Files:")
            for index, largest in enumerate(scan.largest_files[:MAX_LARGEST_FILES], 1):
                parts.append(
                    f"{index}. {largest.path} - {format_file_size(largest.size)}"
                )

        if scan.file_types:
            parts.append("\nFile Type Distribution:")
            by_count = sorted(scan.file_types.items(), key=lambda item: -item[1])
            for file_type, count in by_count[:MAX_FILE_TYPES]:
                parts.append(f"- {file_type}: {count:,} files")

    return "\n".join(parts)


def truncate_context(context: str, max_chars: int = DEFAULT_MAX_CONTEXT_CHARS) -> str:
    """Truncate context text to at most max_chars characters.

    The cut happens at the last newline before the limit and a truncation
    marker is appended. The result never exceeds max_chars, so truncating it
    again at the same limit returns it unchanged.
    """
    if len(context) <= max_chars:
        return context

    budget = max_chars - len(TRUNCATION_MARKER)
    if budget <= 0:
        return context[:max_chars]

    truncated = context[:budget]
    last_newline = truncated.rfind("\n")
    if last_newline > 0:
        truncated = truncated[:last_newline]

    return truncated + TRUNCATION_MARKER
