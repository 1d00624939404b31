"""LSP payload types and the client's closed method map.

Only the structures this client reads or writes are declared. Shapes follow
https://microsoft.github.io/language-server-protocol/specifications/lsp/3.17/specification/
"""

from typing import Any, Dict, List, Literal, Optional, Tuple, TypedDict, Union


# ═══════════════════════════════════════════════════════════════════════════
# Basic structures
# ═══════════════════════════════════════════════════════════════════════════


class Position(TypedDict):
    """Zero-based line and character offset; a position sits between two characters."""

    line: int
    character: int


class Range(TypedDict):
    """A range in a text document; ``end`` is exclusive."""

    start: Position
    end: Position


class Location(TypedDict):
    uri: str
    range: Range


class LocationLink(TypedDict, total=False):
    originSelectionRange: Range
    targetUri: str
    targetRange: Range
    targetSelectionRange: Range


class TextDocumentIdentifier(TypedDict):
    uri: str


class VersionedTextDocumentIdentifier(TextDocumentIdentifier):
    version: int


class OptionalVersionedTextDocumentIdentifier(TypedDict):
    uri: str
    version: Optional[int]


class TextDocumentItem(TypedDict):
    uri: str
    languageId: str
    version: int
    text: str


class TextDocumentPositionParams(TypedDict):
    textDocument: TextDocumentIdentifier
    position: Position


class MarkupContent(TypedDict):
    kind: Literal["plaintext", "markdown"]
    value: str


class _MarkedStringObject(TypedDict):
    language: str
    value: str


MarkedString = Union[str, _MarkedStringObject]
Documentation = Union[MarkupContent, MarkedString, List[MarkedString]]


class TextEdit(TypedDict):
    """Replace ``range`` with ``newText``. Edits on one document must not overlap."""

    range: Range
    newText: str


class InsertReplaceEdit(TypedDict):
    newText: str
    insert: Range
    replace: Range


class TextDocumentEdit(TypedDict):
    textDocument: OptionalVersionedTextDocumentIdentifier
    edits: List[TextEdit]


class _ResourceOperation(TypedDict, total=False):
    kind: Literal["create", "rename", "delete"]
    uri: str
    oldUri: str
    newUri: str


DocumentChange = Union[TextDocumentEdit, _ResourceOperation]


class WorkspaceEdit(TypedDict, total=False):
    changes: Dict[str, List[TextEdit]]
    documentChanges: List[DocumentChange]


class Command(TypedDict, total=False):
    title: str
    command: str
    arguments: List[Any]


# ═══════════════════════════════════════════════════════════════════════════
# Capabilities and lifecycle
# ═══════════════════════════════════════════════════════════════════════════


class CompletionOptions(TypedDict, total=False):
    triggerCharacters: List[str]
    resolveProvider: bool


class SignatureHelpOptions(TypedDict, total=False):
    triggerCharacters: List[str]
    retriggerCharacters: List[str]


class ServerCapabilities(TypedDict, total=False):
    positionEncoding: str
    textDocumentSync: Union[int, Dict[str, Any]]
    hoverProvider: Union[bool, Dict[str, Any]]
    completionProvider: CompletionOptions
    definitionProvider: Union[bool, Dict[str, Any]]
    codeActionProvider: Union[bool, Dict[str, Any]]
    renameProvider: Union[bool, Dict[str, Any]]
    signatureHelpProvider: SignatureHelpOptions


class WorkspaceFolder(TypedDict):
    uri: str
    name: str


class InitializeParams(TypedDict, total=False):
    processId: Optional[int]
    rootUri: Optional[str]
    workspaceFolders: Optional[List[WorkspaceFolder]]
    capabilities: Dict[str, Any]
    initializationOptions: Any


class ServerInfo(TypedDict, total=False):
    name: str
    version: str


class InitializeResult(TypedDict, total=False):
    capabilities: ServerCapabilities
    serverInfo: ServerInfo


# ═══════════════════════════════════════════════════════════════════════════
# Document synchronization
# ═══════════════════════════════════════════════════════════════════════════


class TextDocumentContentChangeEventFull(TypedDict):
    text: str


class TextDocumentContentChangeEventIncremental(TypedDict):
    range: Range
    text: str


TextDocumentContentChangeEvent = Union[
    TextDocumentContentChangeEventFull,
    TextDocumentContentChangeEventIncremental,
]


class DidOpenTextDocumentParams(TypedDict):
    textDocument: TextDocumentItem


class DidChangeTextDocumentParams(TypedDict):
    textDocument: VersionedTextDocumentIdentifier
    contentChanges: List[TextDocumentContentChangeEvent]


# ═══════════════════════════════════════════════════════════════════════════
# Language features
# ═══════════════════════════════════════════════════════════════════════════


class Hover(TypedDict, total=False):
    contents: Documentation
    range: Range


class CompletionContext(TypedDict, total=False):
    triggerKind: int
    triggerCharacter: str


class CompletionParams(TextDocumentPositionParams, total=False):
    context: CompletionContext


class CompletionItemLabelDetails(TypedDict, total=False):
    detail: str
    description: str


class CompletionItem(TypedDict, total=False):
    label: str
    labelDetails: CompletionItemLabelDetails
    kind: int
    detail: str
    documentation: Union[str, MarkupContent]
    sortText: str
    filterText: str
    insertText: str
    textEdit: Union[TextEdit, InsertReplaceEdit]
    additionalTextEdits: List[TextEdit]
    data: Any


class CompletionList(TypedDict):
    isIncomplete: bool
    items: List[CompletionItem]


class Diagnostic(TypedDict, total=False):
    range: Range
    severity: int
    code: Union[int, str]
    source: str
    message: str


class PublishDiagnosticsParams(TypedDict, total=False):
    uri: str
    version: int
    diagnostics: List[Diagnostic]


class CodeActionContext(TypedDict, total=False):
    diagnostics: List[Diagnostic]
    only: List[str]


class CodeActionParams(TypedDict):
    textDocument: TextDocumentIdentifier
    range: Range
    context: CodeActionContext


class CodeAction(TypedDict, total=False):
    title: str
    kind: str
    diagnostics: List[Diagnostic]
    edit: WorkspaceEdit
    command: Command


class RenameParams(TextDocumentPositionParams):
    newName: str


class PrepareRenameResult(TypedDict, total=False):
    range: Range
    placeholder: str
    defaultBehavior: bool


class ParameterInformation(TypedDict, total=False):
    label: Union[str, Tuple[int, int], List[int]]
    documentation: Union[str, MarkupContent]


class SignatureInformation(TypedDict, total=False):
    label: str
    documentation: Union[str, MarkupContent]
    parameters: List[ParameterInformation]
    activeParameter: int


class SignatureHelpContext(TypedDict, total=False):
    triggerKind: int
    triggerCharacter: str
    isRetrigger: bool


class SignatureHelpParams(TextDocumentPositionParams, total=False):
    context: SignatureHelpContext


class SignatureHelp(TypedDict, total=False):
    signatures: List[SignatureInformation]
    activeSignature: int
    activeParameter: int


# ═══════════════════════════════════════════════════════════════════════════
# Enumerations
# ═══════════════════════════════════════════════════════════════════════════


class DiagnosticSeverity:
    ERROR = 1
    WARNING = 2
    INFORMATION = 3
    HINT = 4


class CompletionTriggerKind:
    INVOKED = 1
    TRIGGER_CHARACTER = 2
    TRIGGER_FOR_INCOMPLETE_COMPLETIONS = 3


class SignatureHelpTriggerKind:
    INVOKED = 1
    TRIGGER_CHARACTER = 2
    CONTENT_CHANGE = 3


COMPLETION_ITEM_KINDS: Dict[int, str] = {
    1: "text",
    2: "method",
    3: "function",
    4: "constructor",
    5: "field",
    6: "variable",
    7: "class",
    8: "interface",
    9: "module",
    10: "property",
    11: "unit",
    12: "value",
    13: "enum",
    14: "keyword",
    15: "snippet",
    16: "color",
    17: "file",
    18: "reference",
    19: "folder",
    20: "enummember",
    21: "constant",
    22: "struct",
    23: "event",
    24: "operator",
    25: "typeparameter",
}


# ═══════════════════════════════════════════════════════════════════════════
# Method map
# ═══════════════════════════════════════════════════════════════════════════

RequestMethod = Literal[
    "initialize",
    "textDocument/hover",
    "textDocument/completion",
    "completionItem/resolve",
    "textDocument/definition",
    "textDocument/codeAction",
    "textDocument/rename",
    "textDocument/prepareRename",
    "textDocument/signatureHelp",
]

NotifyMethod = Literal[
    "initialized",
    "textDocument/didOpen",
    "textDocument/didChange",
]

EventMethod = Literal["textDocument/publishDiagnostics"]

# client -> server requests: method -> (params type, result type)
REQUEST_TYPES: Dict[str, Tuple[Any, Any]] = {
    "initialize": (InitializeParams, InitializeResult),
    "textDocument/hover": (TextDocumentPositionParams, Optional[Hover]),
    "textDocument/completion": (
        CompletionParams,
        Union[List[CompletionItem], CompletionList, None],
    ),
    "completionItem/resolve": (CompletionItem, CompletionItem),
    "textDocument/definition": (
        TextDocumentPositionParams,
        Union[Location, List[Location], List[LocationLink], None],
    ),
    "textDocument/codeAction": (
        CodeActionParams,
        Optional[List[Union[Command, CodeAction]]],
    ),
    "textDocument/rename": (RenameParams, Optional[WorkspaceEdit]),
    "textDocument/prepareRename": (
        TextDocumentPositionParams,
        Union[Range, PrepareRenameResult, None],
    ),
    "textDocument/signatureHelp": (SignatureHelpParams, Optional[SignatureHelp]),
}

# client -> server notifications: method -> params type
NOTIFY_TYPES: Dict[str, Any] = {
    "initialized": Dict[str, Any],
    "textDocument/didOpen": DidOpenTextDocumentParams,
    "textDocument/didChange": DidChangeTextDocumentParams,
}

# server -> client notifications the sessions understand
EVENT_TYPES: Dict[str, Any] = {
    "textDocument/publishDiagnostics": PublishDiagnosticsParams,
}


def is_text_edit(edit: Any) -> bool:
    """True for a plain TextEdit (as opposed to an InsertReplaceEdit)."""
    return isinstance(edit, dict) and "range" in edit


def is_markup_content(contents: Any) -> bool:
    return isinstance(contents, dict) and "kind" in contents
