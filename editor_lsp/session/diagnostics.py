"""Diagnostics rendering and the code actions attached to them."""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Union

from editor_lsp.lsp.types import CodeAction, Command, Diagnostic, DiagnosticSeverity, Range
from editor_lsp.session.edits import apply_workspace_edit
from editor_lsp.session.positions import TextBuffer, pos_to_offset_or_zero
from editor_lsp.session.view import EditorView, PresentedAction, PresentedDiagnostic
from editor_lsp.utils.logging_utils import Logger

SEVERITY_NAMES: Dict[int, str] = {
    DiagnosticSeverity.ERROR: "error",
    DiagnosticSeverity.WARNING: "warning",
    DiagnosticSeverity.INFORMATION: "info",
    DiagnosticSeverity.HINT: "info",
}

ActionOrCommand = Union[CodeAction, Command]
FetchActions = Callable[[Range, List[Any]], Awaitable[Optional[List[ActionOrCommand]]]]


def severity_name(severity: Optional[int]) -> str:
    """Editor severity for an LSP severity; missing means error."""
    if severity is None:
        return "error"
    return SEVERITY_NAMES.get(severity, "error")


def _action_title(action: ActionOrCommand) -> str:
    command = action.get("command")
    if isinstance(command, dict):
        return command.get("title") or action.get("title", "")
    return action.get("title", "")


def present_action(view: EditorView, document_uri: str, action: ActionOrCommand) -> PresentedAction:
    """Wrap a CodeAction (or bare Command) as a named, applicable action."""

    def apply() -> bool:
        applied = False
        edit = action.get("edit")
        if edit:
            applied = apply_workspace_edit(view, document_uri, edit)
        command = action.get("command")
        if command:
            # commands run on the server side; nothing to execute here
            Logger.instance().info(f"code action command not executed: {command}")
        return applied

    return PresentedAction(name=_action_title(action), apply=apply)


async def _fetch_actions_safely(
    fetch_actions: FetchActions, diagnostic: Diagnostic
) -> Optional[List[ActionOrCommand]]:
    try:
        return await fetch_actions(diagnostic["range"], [diagnostic.get("code")])
    except Exception as e:  # only this diagnostic loses its actions
        Logger.instance().warning(f"code actions failed for {diagnostic.get('message', '')!r}: {e}")
        return None


async def present_diagnostics(
    view: EditorView,
    document_uri: str,
    diagnostics: Sequence[Diagnostic],
    fetch_actions: Optional[FetchActions] = None,
    source: Optional[str] = None,
    superseded: Optional[Callable[[], bool]] = None,
) -> Optional[List[PresentedDiagnostic]]:
    """Fetch code actions for every diagnostic concurrently and render them together.

    Args:
        view: Editor to render into
        document_uri: URI of the document shown in ``view``
        diagnostics: Diagnostics published for that document
        fetch_actions: Coroutine returning code actions for a range and codes,
                       or None when code actions are unavailable
        source: Fallback diagnostic source (usually the language id)
        superseded: Called once the actions are in; True means a newer publish
                    owns the view and this one is dropped

    Returns:
        The diagnostics handed to view.set_diagnostics, or None when superseded
    """
    if fetch_actions is not None:
        action_lists = await asyncio.gather(
            *(_fetch_actions_safely(fetch_actions, d) for d in diagnostics)
        )
    else:
        action_lists = [None] * len(diagnostics)

    if superseded is not None and superseded():
        return None

    # offsets against the text as it is once all actions are in
    doc = TextBuffer(view.text)
    presented = []
    for diagnostic, actions in zip(diagnostics, action_lists):
        rng = diagnostic["range"]
        start = pos_to_offset_or_zero(doc, rng["start"])
        end = max(start, pos_to_offset_or_zero(doc, rng["end"]))
        presented.append(
            PresentedDiagnostic(
                start=start,
                end=end,
                severity=severity_name(diagnostic.get("severity")),
                message=diagnostic.get("message", ""),
                source=diagnostic.get("source") or source,
                code=diagnostic.get("code"),
                actions=[present_action(view, document_uri, a) for a in actions or []],
            )
        )

    view.set_diagnostics(presented)
    return presented
