"""
Display Helpers - Convert conversation state to human-readable format

Used by the web surface and the console harness. Sorting by ordinal lives
here, just before display: stored options keep server order.
"""

from typing import Any, Dict, Iterable, List

from menuchat.contracts import Document, MenuOption, Turn


def sort_menu_options(options: Iterable[MenuOption]) -> List[MenuOption]:
    """
    Order options for display (ascending ordinal, stable for ties)

    Args:
        options: Options in server order

    Returns:
        list: New sorted list; the input is not modified
    """
    return sorted(options, key=lambda option: option.ordinal)


def format_option_label(option: MenuOption) -> str:
    """Button label, e.g. '1. Leave applications'"""
    return f"{option.ordinal}. {option.title}"


def format_file_size(size_bytes: int) -> str:
    """
    Human-readable file size

    Examples:
        >>> format_file_size(512)
        '512 B'
        >>> format_file_size(2048)
        '2.00 KB'
        >>> format_file_size(3 * 1024 * 1024)
        '3.00 MB'
    """
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.2f} KB"
    return f"{size_bytes / (1024 * 1024):.2f} MB"


def format_document(document: Document) -> str:
    label = document.title or document.file_name or document.id
    if document.file_size:
        return f"{label} ({format_file_size(document.file_size)})"
    return label


def option_view(option: MenuOption) -> Dict[str, Any]:
    """Display dict for one option (label plus its attachments)"""
    return {
        'id': option.id,
        'option_number': option.ordinal,
        'label': format_option_label(option),
        'documents': [
            {
                'id': doc.id,
                'label': format_document(doc),
                'file_path': doc.file_path,
                'mime_type': doc.mime_type,
            }
            for doc in option.documents
        ],
    }


def turn_view(turn: Turn) -> Dict[str, Any]:
    """Display dict for one transcript turn, options sorted for display"""
    return {
        'id': turn.id,
        'side': turn.side.value,
        'text': turn.text,
        'time': turn.timestamp.strftime('%H:%M'),
        'timestamp': turn.timestamp.isoformat(),
        'options': [option_view(option) for option in sort_menu_options(turn.options)],
        'is_error': turn.failure_kind is not None,
    }


def render_turn(turn: Turn) -> str:
    """
    Render one turn as console text

    Example:
        [10:42] Bot: Pick one
            1. Leave applications
            2. Job status
    """
    speaker = "You" if turn.is_user else "Bot"
    lines = [f"[{turn.timestamp.strftime('%H:%M')}] {speaker}: {turn.text}"]

    for option in sort_menu_options(turn.options):
        lines.append(f"    {format_option_label(option)}")
        for document in option.documents:
            lines.append(f"        [doc] {format_document(document)}")

    return "\n".join(lines)


def render_transcript(turns: Iterable[Turn]) -> str:
    return "\n".join(render_turn(turn) for turn in turns)
