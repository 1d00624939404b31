"""Editor-facing side: document sync and language features."""

from editor_lsp.session.document import DefinitionResult, DocumentSession, RenameTarget, Tooltip
from editor_lsp.session.features import FeatureToggles
from editor_lsp.session.view import ChangeSpec, EditorView, MemoryView, PresentedAction, PresentedDiagnostic

__all__ = [
    "DefinitionResult",
    "DocumentSession",
    "RenameTarget",
    "Tooltip",
    "FeatureToggles",
    "ChangeSpec",
    "EditorView",
    "MemoryView",
    "PresentedAction",
    "PresentedDiagnostic",
]
