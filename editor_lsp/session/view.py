"""The editor collaborator.

The engine never renders anything. It reads the buffer through an
EditorView and hands back mutations, selections, diagnostics and messages.
MemoryView is a headless implementation used for tests and for embedding
the engine in tools that have no real editor.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, List, NamedTuple, Optional, Protocol, Sequence, Tuple

from editor_lsp.utils.logging_utils import Logger


class ChangeSpec(NamedTuple):
    """Replace ``[start, end)`` of the pre-change text with ``insert``."""

    start: int
    end: int
    insert: str


@dataclass
class PresentedAction:
    name: str
    apply: Callable[[], Any]


@dataclass
class PresentedDiagnostic:
    start: int
    end: int
    severity: str
    message: str
    source: Optional[str] = None
    code: Any = None
    actions: List[PresentedAction] = field(default_factory=list)


class EditorView(Protocol):
    """What the engine needs from the editor widget."""

    @property
    def text(self) -> str:
        ...

    def apply_changes(self, changes: Sequence[ChangeSpec]) -> None:
        """Apply a batch atomically; offsets refer to the text before the batch.

        Raises ValueError without mutating anything if the batch is invalid.
        """
        ...

    def set_selection(self, anchor: int, head: Optional[int] = None) -> None:
        ...

    def set_diagnostics(self, diagnostics: List[PresentedDiagnostic]) -> None:
        ...

    def show_message(self, message: str, level: str = "error") -> None:
        ...


def apply_change_specs(text: str, changes: Sequence[ChangeSpec]) -> str:
    """Apply non-overlapping changes, all relative to ``text``.

    Raises:
        ValueError: a change falls outside the text or has start > end
    """
    length = len(text)
    for change in changes:
        if not (0 <= change.start <= change.end <= length):
            raise ValueError(f"change {change.start}..{change.end} outside text of length {length}")

    # highest offset first so earlier offsets stay valid
    for change in sorted(changes, key=lambda c: (c.start, c.end), reverse=True):
        text = text[: change.start] + change.insert + text[change.end :]
    return text


ChangeListener = Callable[[str, List[ChangeSpec]], Any]


class MemoryView:
    """Headless EditorView over an in-memory string."""

    def __init__(self, text: str = ""):
        self._text = text
        self.selection: Tuple[int, int] = (0, 0)
        self.diagnostics: List[PresentedDiagnostic] = []
        self.messages: List[Tuple[str, str]] = []
        self._listeners: List[ChangeListener] = []

    @property
    def text(self) -> str:
        return self._text

    def add_listener(self, listener: ChangeListener) -> None:
        """Call ``listener(new_text, changes)`` after every applied batch."""
        self._listeners.append(listener)

    def apply_changes(self, changes: Sequence[ChangeSpec]) -> None:
        changes = list(changes)
        self._text = apply_change_specs(self._text, changes)
        for listener in list(self._listeners):
            listener(self._text, changes)

    def replace_text(self, text: str) -> None:
        """Replace the whole buffer, as a user paste-over would."""
        self.apply_changes([ChangeSpec(0, len(self._text), text)])

    def set_selection(self, anchor: int, head: Optional[int] = None) -> None:
        self.selection = (anchor, anchor if head is None else head)

    def set_diagnostics(self, diagnostics: List[PresentedDiagnostic]) -> None:
        self.diagnostics = list(diagnostics)

    def show_message(self, message: str, level: str = "error") -> None:
        self.messages.append((level, message))
        if level == "error":
            Logger.instance().error(message)
        else:
            Logger.instance().warning(message)
