"""Completion engine: token extraction, filtering, ranking, lazy resolution.

The server returns candidates for the cursor position; the editor still
needs to know which text before the cursor is the token being completed.
prefix_match() builds a regex from the candidates themselves so tokens
containing punctuation (``foo.py``, ``$var``, ``a/b``) are recognised.
"""

import re
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, NamedTuple, Optional, Pattern, Sequence, Tuple

from editor_lsp.lsp.types import (
    COMPLETION_ITEM_KINDS,
    CompletionItem,
    CompletionTriggerKind,
    is_text_edit,
)
from editor_lsp.session.content import format_contents, is_empty_documentation
from editor_lsp.session.edits import resolve_range, shift_offset, text_edits_to_changes
from editor_lsp.session.positions import TextBuffer
from editor_lsp.session.view import ChangeSpec, EditorView
from editor_lsp.utils.logging_utils import Logger

# how far back match_before looks, in characters
MATCH_BEFORE_LIMIT = 250

# a word, a word followed by a dot, or a slash
DEFAULT_MATCH_BEFORE = re.compile(r"(?:\w+\.|/|\w+)$")

_WORD = re.compile(r"^\w+$")

ResolveItem = Callable[[CompletionItem], Awaitable[CompletionItem]]


class Token(NamedTuple):
    start: int
    end: int
    text: str


# ═══════════════════════════════════════════════════════════════════════════
# Prefix pattern
# ═══════════════════════════════════════════════════════════════════════════


def _char_class(chars: Sequence[str]) -> str:
    """Regex character class for ``chars``; word characters fold into \\w."""
    flat = "".join(sorted(set(chars)))
    preamble = ""
    if re.search(r"\w", flat):
        preamble = r"\w"
        flat = re.sub(r"\w", "", flat)
    return f"[{preamble}{re.escape(flat)}]"


def prefix_match(items: Sequence[CompletionItem]) -> Optional[Pattern]:
    """Build the token pattern for a candidate list.

    The pattern is one character from the set of first characters followed
    by any run of characters seen anywhere else in the candidates, anchored
    at the end of the searched text.

    Returns:
        None when there is nothing to build a pattern from
    """
    first = set()
    rest = set()
    for item in items:
        text_edit = item.get("textEdit")
        text = (text_edit or {}).get("newText") or item.get("label") or ""
        if not text:
            continue
        first.add(text[0])
        rest.update(text[1:])

    if not first:
        return None
    source = _char_class(first)
    if rest:
        source += _char_class(rest) + "*"
    return re.compile(source + "$")


compute_prefix_pattern = prefix_match


def _line_start(text: str, offset: int) -> int:
    return max(text.rfind("\n", 0, offset), text.rfind("\r", 0, offset)) + 1


def match_before(text: str, offset: int, pattern: Pattern) -> Optional[Token]:
    """Match ``pattern`` against the text just before ``offset`` on its line."""
    line_start = _line_start(text, offset)
    start = max(line_start, offset - MATCH_BEFORE_LIMIT)
    match = pattern.search(text[start:offset])
    if match is None:
        return None
    return Token(start + match.start(), offset, match.group(0))


# ═══════════════════════════════════════════════════════════════════════════
# Filtering and ranking
# ═══════════════════════════════════════════════════════════════════════════


def _python_assignment_first(item: CompletionItem) -> int:
    # keyword arguments ("name=") before everything else
    return 0 if item.get("label", "").endswith("=") else 1


LANGUAGE_HEURISTICS: Dict[str, Callable[[CompletionItem], int]] = {
    "python": _python_assignment_first,
}


def sort_key_text(item: CompletionItem) -> str:
    return item.get("sortText") or item.get("label", "")


def _is_underscored(item: CompletionItem) -> bool:
    return item.get("label", "").startswith("_") or sort_key_text(item).startswith("_")


def filter_items(items: Sequence[CompletionItem], token: Optional[str]) -> List[CompletionItem]:
    """Keep items matching a word token; punctuation tokens filter nothing."""
    if not token or not _WORD.match(token):
        return list(items)
    word = token.lower()
    return [
        item
        for item in items
        if (item.get("filterText") or item.get("label", "")).lower().startswith(word)
    ]


def sort_completion_items(
    items: Sequence[CompletionItem],
    token: Optional[str],
    language_id: Optional[str] = None,
) -> List[CompletionItem]:
    """Filter by ``token`` and rank.

    Order of precedence: sort key starting with the exact-case token, then
    the language heuristic, then non-underscore before underscore names,
    then the sort key itself. A server sortText compares as plain strings;
    labels standing in for a missing sortText compare case-insensitively.
    Ties keep server order.
    """
    filtered = filter_items(items, token)
    heuristic = LANGUAGE_HEURISTICS.get(language_id or "")

    def key(item: CompletionItem) -> Tuple:
        text = sort_key_text(item)
        return (
            0 if token and text.startswith(token) else 1,
            heuristic(item) if heuristic else 0,
            1 if _is_underscored(item) else 0,
            text if item.get("sortText") else text.lower(),
        )

    return sorted(filtered, key=key)


def completion_trigger_kind(
    text: str,
    offset: int,
    trigger_characters: Sequence[str],
    explicit: bool = False,
    match_before_pattern: Optional[Pattern] = None,
) -> Optional[Tuple[int, Optional[str]]]:
    """Decide whether (and how) completion should be requested at ``offset``.

    Returns:
        (trigger kind, trigger character) or None when completion should
        not be shown
    """
    line_start = _line_start(text, offset)
    prev_char = text[offset - 1] if offset > line_start else ""

    if not explicit and prev_char and prev_char in trigger_characters:
        return CompletionTriggerKind.TRIGGER_CHARACTER, prev_char

    if match_before(text, offset, match_before_pattern or DEFAULT_MATCH_BEFORE) is None:
        return None
    return CompletionTriggerKind.INVOKED, None


# ═══════════════════════════════════════════════════════════════════════════
# Candidates
# ═══════════════════════════════════════════════════════════════════════════


@dataclass
class Completion:
    """One candidate as handed to the editor."""

    item: CompletionItem
    label: str
    detail: Optional[str] = None
    type: Optional[str] = None
    allow_html: bool = False
    resolve_item: Optional[ResolveItem] = None

    def apply(self, view: EditorView, start: int, end: int) -> bool:
        """Insert this candidate, replacing ``[start, end)`` unless it carries a textEdit.

        additionalTextEdits (e.g. auto-imports) go into the same batch.
        """
        doc = TextBuffer(view.text)
        text_edit = self.item.get("textEdit")
        if text_edit and is_text_edit(text_edit):
            edit_start, edit_end = resolve_range(doc, text_edit["range"])
            insert = text_edit["newText"]
        else:
            edit_start, edit_end = start, end
            insert = self.item.get("insertText") or self.label

        extra = text_edits_to_changes(doc, self.item.get("additionalTextEdits") or [])
        changes = [ChangeSpec(edit_start, edit_end, insert)] + extra
        changes.sort(key=lambda c: (c.start, c.end), reverse=True)
        try:
            view.apply_changes(changes)
        except ValueError as e:
            Logger.instance().error(f"completion apply failed for {self.label!r}: {e}")
            view.show_message(f"Failed to apply completion: {e}")
            return False

        view.set_selection(shift_offset(edit_start, extra) + len(insert))
        return True

    async def info(self) -> Optional[str]:
        """Documentation for the detail pane, resolved on demand."""
        documentation = self.item.get("documentation")
        if self.resolve_item is not None:
            try:
                resolved = await self.resolve_item(self.item)
                content = (resolved or {}).get("documentation") or documentation
            except Exception as e:  # fall back to what we already have
                Logger.instance().warning(f"failed to resolve completion item {self.label!r}: {e}")
                content = documentation
        else:
            content = documentation

        if is_empty_documentation(content):
            return None
        return format_contents(content, self.allow_html)


@dataclass
class CompletionResult:
    start: int
    options: List[Completion] = field(default_factory=list)


def convert_completion_item(
    item: CompletionItem,
    allow_html: bool = False,
    resolve_item: Optional[ResolveItem] = None,
) -> Completion:
    kind = item.get("kind")
    label_details = item.get("labelDetails") or {}
    return Completion(
        item=item,
        label=item["label"],
        detail=label_details.get("detail") or item.get("detail"),
        type=COMPLETION_ITEM_KINDS.get(kind) if kind else None,
        allow_html=allow_html,
        resolve_item=resolve_item,
    )


def build_completion_result(
    items: Sequence[CompletionItem],
    text: str,
    offset: int,
    language_id: Optional[str] = None,
    allow_html: bool = False,
    resolve_item: Optional[ResolveItem] = None,
) -> CompletionResult:
    """Extract the typed token, filter, rank and convert the candidates."""
    pattern = prefix_match(items)
    token = match_before(text, offset, pattern) if pattern is not None else None

    start = offset
    token_text = None
    if token is not None:
        start = token.start
        token_text = token.text

    ranked = sort_completion_items(items, token_text, language_id)
    return CompletionResult(
        start=start,
        options=[convert_completion_item(item, allow_html, resolve_item) for item in ranked],
    )
