"""Signature help presentation."""

from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from editor_lsp.lsp.types import SignatureHelp
from editor_lsp.session.content import format_contents
from editor_lsp.session.view import ChangeSpec

DEFAULT_TRIGGER_CHARACTERS = ["(", ","]

UNAVAILABLE = "Signature information unavailable"


@dataclass
class SignatureView:
    """The active signature, ready to display at ``pos``."""

    pos: int
    label: str
    active_parameter: Optional[Tuple[int, int]] = None
    documentation: Optional[str] = None
    parameter_documentation: Optional[str] = None

    def highlighted(self, left: str = "«", right: str = "»") -> str:
        """Label with the active parameter wrapped in ``left``/``right``."""
        if self.active_parameter is None:
            return self.label
        start, end = self.active_parameter
        return f"{self.label[:start]}{left}{self.label[start:end]}{right}{self.label[end:]}"


def _parameter_span(label: str, parameter_label) -> Optional[Tuple[int, int]]:
    if isinstance(parameter_label, str):
        index = label.find(parameter_label)
        if index < 0:
            return None
        return index, index + len(parameter_label)
    if isinstance(parameter_label, (list, tuple)) and len(parameter_label) == 2:
        start, end = parameter_label
        if 0 <= start <= end <= len(label):
            return start, end
    return None


def build_signature_view(signature_help: Optional[SignatureHelp], pos: int, allow_html: bool = False) -> Optional[SignatureView]:
    """Pick the active signature and parameter out of a SignatureHelp.

    Returns:
        None if the server sent no signatures
    """
    if not signature_help or not signature_help.get("signatures"):
        return None

    signatures = signature_help["signatures"]
    active_signature = signature_help.get("activeSignature") or 0
    if not 0 <= active_signature < len(signatures):
        active_signature = 0
    signature = signatures[active_signature]

    label = signature.get("label")
    if not label or not isinstance(label, str):
        return SignatureView(pos=pos, label=UNAVAILABLE)

    active_parameter = signature_help.get("activeParameter")
    if active_parameter is None:
        active_parameter = signature.get("activeParameter") or 0

    parameters = signature.get("parameters") or []
    parameter = parameters[active_parameter] if 0 <= active_parameter < len(parameters) else None

    documentation = None
    if signature.get("documentation"):
        documentation = format_contents(signature["documentation"], allow_html)

    span = None
    parameter_documentation = None
    if parameter is not None:
        span = _parameter_span(label, parameter.get("label"))
        if parameter.get("documentation"):
            parameter_documentation = format_contents(parameter["documentation"], allow_html)

    return SignatureView(
        pos=pos,
        label=label,
        active_parameter=span,
        documentation=documentation,
        parameter_documentation=parameter_documentation,
    )


def find_signature_trigger(
    changes: Sequence[ChangeSpec],
    trigger_characters: Optional[Sequence[str]] = None,
) -> Optional[Tuple[int, str]]:
    """First inserted trigger character in an applied batch.

    Returns:
        (offset just after the inserted text in the new document, character)
    """
    trigger_characters = trigger_characters or DEFAULT_TRIGGER_CHARACTERS
    delta = 0
    for change in sorted(changes, key=lambda c: (c.start, c.end)):
        end_after = change.start + delta + len(change.insert)
        delta += len(change.insert) - (change.end - change.start)
        if not change.insert:
            continue
        for char in trigger_characters:
            if char in change.insert:
                return end_after, char
    return None
