"""Apply server-described edits to the active document.

Every edit offset is resolved against the current buffer before anything
is mutated, the batch is ordered by descending start offset and handed to
the view as a single change set. Either the whole batch lands or none of it.
"""

from typing import Iterable, List, Optional, Tuple

from editor_lsp.lsp.types import Position, Range, TextEdit, WorkspaceEdit
from editor_lsp.session.positions import (
    TextBuffer,
    pos_to_offset,
    pos_to_offset_or_zero,
)
from editor_lsp.session.view import ChangeSpec, EditorView
from editor_lsp.utils.logging_utils import Logger, logging_func

MULTI_FILE_UNSUPPORTED = "Multi-file edits are not supported yet"
RESOURCE_OPERATION_UNSUPPORTED = "File creation, deletion, or renaming operations are not supported yet"
NO_EDIT = "No edit returned from language server"
NO_CHANGES = "No changes to apply"


def resolve_range(doc: TextBuffer, rng: Range) -> Tuple[int, int]:
    """Offsets for a server range; malformed ends degrade to offset 0.

    An end that resolves before its start collapses onto the start.
    """
    start = pos_to_offset_or_zero(doc, rng["start"])
    end = pos_to_offset_or_zero(doc, rng["end"])
    return start, max(start, end)


def text_edits_to_changes(doc: TextBuffer, edits: Iterable[TextEdit]) -> List[ChangeSpec]:
    """Resolve TextEdits to ChangeSpecs sorted by descending start offset."""
    changes = []
    for edit in edits:
        start, end = resolve_range(doc, edit["range"])
        changes.append(ChangeSpec(start, end, edit["newText"]))
    changes.sort(key=lambda c: (c.start, c.end), reverse=True)
    return changes


def apply_text_edits(view: EditorView, edits: Iterable[TextEdit]) -> bool:
    """Apply same-document edits as one atomic batch.

    Returns:
        False (with a message shown) if the view rejected the batch
    """
    changes = text_edits_to_changes(TextBuffer(view.text), edits)
    if not changes:
        return False
    try:
        view.apply_changes(changes)
    except ValueError as e:
        Logger.instance().error(f"edit batch rejected: {e}")
        view.show_message(f"Failed to apply edits: {e}")
        return False
    return True


@logging_func("apply workspace edit to the active document")
def apply_workspace_edit(view: EditorView, document_uri: str, edit: Optional[WorkspaceEdit]) -> bool:
    """Apply the part of a WorkspaceEdit that targets ``document_uri``.

    ``documentChanges`` wins over ``changes`` when present. Entries for other
    documents and resource operations are reported and skipped.

    Returns:
        True if edits were applied to the active document
    """
    if not edit:
        view.show_message(NO_EDIT)
        return False

    changes_map = edit.get("changes") or {}
    document_changes = edit.get("documentChanges") or []
    if not changes_map and not document_changes:
        view.show_message(NO_CHANGES)
        return False

    own_edits: List[TextEdit] = []
    if document_changes:
        for doc_change in document_changes:
            if "textDocument" not in doc_change:
                view.show_message(RESOURCE_OPERATION_UNSUPPORTED, "warning")
                continue
            uri = doc_change["textDocument"]["uri"]
            if uri != document_uri:
                view.show_message(f"{MULTI_FILE_UNSUPPORTED}: {uri}", "warning")
                continue
            own_edits.extend(doc_change.get("edits") or [])
    else:
        for uri, text_edits in changes_map.items():
            if uri != document_uri:
                view.show_message(f"{MULTI_FILE_UNSUPPORTED}: {uri}", "warning")
                continue
            own_edits.extend(text_edits or [])

    if not own_edits:
        return False
    return apply_text_edits(view, own_edits)


def shift_offset(offset: int, changes: Iterable[ChangeSpec]) -> int:
    """Where ``offset`` ends up after ``changes`` (all relative to the same text)."""
    shifted = offset
    for change in changes:
        if change.end <= offset:
            shifted += len(change.insert) - (change.end - change.start)
    return shifted


def word_range_at(doc: TextBuffer, pos: Position) -> Optional[Range]:
    """Range of the identifier touching ``pos``, or None.

    The cursor counts as on a word when it sits inside it or at either edge.
    """
    line = pos["line"]
    if line < 0 or line >= doc.line_count:
        return None
    text = doc.line_text(line)
    character = pos["character"]
    if character < 0 or character > len(text):
        return None

    start = character
    while start > 0 and (text[start - 1].isalnum() or text[start - 1] == "_"):
        start -= 1
    end = character
    while end < len(text) and (text[end].isalnum() or text[end] == "_"):
        end += 1
    if start == end:
        return None
    return {
        "start": {"line": line, "character": start},
        "end": {"line": line, "character": end},
    }


def range_text(doc: TextBuffer, rng: Range) -> Optional[str]:
    start = pos_to_offset(doc, rng["start"])
    end = pos_to_offset(doc, rng["end"])
    if start is None or end is None:
        return None
    return doc.slice(start, end)
