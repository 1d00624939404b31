"""Document session: one open document bound to a language server client.

The session
1. Opens the document once the handshake is done
2. Debounces edits into didChange notifications with increasing versions
3. Turns hover, completion, definition, rename, signature help and code
   action requests into editor-level results
4. Renders published diagnostics for its own URI
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

from editor_lsp.lsp.client import LanguageServerClient
from editor_lsp.lsp.errors import LSPError, LSPResponseError
from editor_lsp.lsp.types import (
    CompletionTriggerKind,
    Diagnostic,
    Position,
    PublishDiagnosticsParams,
    Range,
    SignatureHelpTriggerKind,
    TextDocumentContentChangeEvent,
    TextDocumentPositionParams,
)
from editor_lsp.session.completion import CompletionResult, build_completion_result, completion_trigger_kind
from editor_lsp.session.content import format_contents, is_empty_documentation
from editor_lsp.session.debounce import DebouncedTask
from editor_lsp.session.diagnostics import present_diagnostics
from editor_lsp.session.edits import apply_workspace_edit, range_text, word_range_at
from editor_lsp.session.features import FeatureToggles
from editor_lsp.session.positions import TextBuffer, offset_to_pos, pos_to_offset, pos_to_offset_or_zero
from editor_lsp.session.signature import SignatureView, build_signature_view, find_signature_trigger
from editor_lsp.session.view import ChangeSpec, EditorView, PresentedDiagnostic, apply_change_specs
from editor_lsp.utils.config_utils import get_config_bool, get_config_int, get_config_value
from editor_lsp.utils.logging_utils import Logger

CHANGE_DEBOUNCE_MS = 500

SYNC_FULL = "full"
SYNC_INCREMENTAL = "incremental"

# TextDocumentSyncKind.Incremental
SERVER_SYNC_INCREMENTAL = 2

NOT_READY = "Language server not ready"
RENAME_UNSUPPORTED = "Rename not supported by language server"
CANNOT_RENAME = "Cannot rename this symbol"
EMPTY_NAME = "New name cannot be empty"


@dataclass
class Tooltip:
    start: int
    end: Optional[int]
    content: str
    above: bool = True


@dataclass
class DefinitionResult:
    uri: str
    range: Range
    is_external_document: bool


@dataclass
class RenameTarget:
    """The symbol prepareRename agreed to rename."""

    start: int
    end: int
    placeholder: str
    range: Range


class DocumentSession:
    """Keeps one document in sync with the server and serves its features."""

    def __init__(
        self,
        client: LanguageServerClient,
        document_uri: str,
        language_id: str,
        view: EditorView,
        allow_html_content: bool = False,
        on_go_to_definition: Optional[Callable[[DefinitionResult], Any]] = None,
        on_signature_help: Optional[Callable[[SignatureView], Any]] = None,
        features: Optional[FeatureToggles] = None,
        sync_mode: Optional[str] = None,
        debounce_ms: Optional[int] = None,
        stale_guard: Optional[bool] = None,
    ):
        """Create the session and attach it to ``client``. Call open() next.

        Args:
            client: Shared language server client
            document_uri: URI of the document shown in ``view``
            language_id: LSP language identifier (e.g. "python")
            view: Editor collaborator
            allow_html_content: Render markdown documentation to HTML
            on_go_to_definition: Called with every DefinitionResult
            on_signature_help: Called with signature help shown while typing
            features: Feature switches ([features] section by default)
            sync_mode: "full" or "incremental" ([lsp] sync_mode)
            debounce_ms: Delay before edits are sent ([lsp] change_debounce_ms)
            stale_guard: Drop responses superseded by a newer request
                         of the same kind ([lsp] stale_guard)
        """
        self.client = client
        self.document_uri = document_uri
        self.language_id = language_id
        self.view = view
        self.allow_html_content = allow_html_content
        self.on_go_to_definition = on_go_to_definition
        self.on_signature_help = on_signature_help
        self.features = features or FeatureToggles.from_config()
        self.sync_mode = sync_mode or get_config_value("lsp", "sync_mode", SYNC_FULL)
        if debounce_ms is None:
            debounce_ms = get_config_int("lsp", "change_debounce_ms", CHANGE_DEBOUNCE_MS)
        if stale_guard is None:
            stale_guard = get_config_bool("lsp", "stale_guard", True)
        self.stale_guard = stale_guard

        self.version = 0
        self.opened = False
        self.closed = False
        self.signature: Optional[SignatureView] = None

        self._text = view.text
        # last text the server has seen, plus edits made since (None: untracked)
        self._shadow: Optional[TextBuffer] = None
        self._pending_events: Optional[List[TextDocumentContentChangeEvent]] = None
        self._debounce = DebouncedTask(debounce_ms / 1000)
        self._generations: Dict[str, int] = {}
        self._tasks: set = set()

        client.attach(self)

    @property
    def text(self) -> str:
        """Latest text known to the session."""
        return self._text

    @property
    def change_pending(self) -> bool:
        return self._debounce.pending

    # ═══════════════════════════════════════════════════════════════════
    # Synchronization
    # ═══════════════════════════════════════════════════════════════════

    async def open(self, text: Optional[str] = None) -> bool:
        """Wait for the handshake, then send didOpen (version 0, full text).

        Returns:
            False if the handshake failed or the session was closed meanwhile
        """
        if text is not None:
            self._text = text
        try:
            await self.client.wait_ready()
        except LSPError as e:
            Logger.instance().error(f"cannot open {self.document_uri}: {e}")
            return False
        if self.closed:
            return False

        sent = self._text
        await self.client.text_document_did_open(
            {
                "textDocument": {
                    "uri": self.document_uri,
                    "languageId": self.language_id,
                    "version": self.version,
                    "text": sent,
                }
            }
        )
        self.opened = True
        self._reset_sync_state(sent)
        if self._text != sent:
            # edited while didOpen was in flight
            self._pending_events = None
            self._debounce.schedule(self.flush)
        Logger.instance().debug(f"opened {self.document_uri}")
        return True

    def schedule_change(self, text: str, changes: Optional[Sequence[ChangeSpec]] = None) -> asyncio.Task:
        """Record the newest text and (re)schedule the debounced flush.

        Args:
            text: Full document text after the edit
            changes: The edit batch, with offsets into the previous text;
                     needed for incremental sync only
        """
        self._text = text
        if changes is not None and self._track_incremental():
            self._record_changes(text, changes)
        else:
            self._pending_events = None
        return self._debounce.schedule(self.flush)

    async def flush(self, text: Optional[str] = None) -> bool:
        """Send didChange now. Dropped while the server is not ready.

        Returns:
            True if a didChange was sent
        """
        if text is not None and text != self._text:
            self._text = text
            self._pending_events = None
        if not (self.client.ready and self.opened) or self.closed:
            return False

        text = self._text
        events = self._pending_events
        if events and self._use_incremental():
            content_changes = events
        else:
            content_changes = [{"text": text}]

        self.version += 1
        self._reset_sync_state(text)
        await self.client.text_document_did_change(
            {
                "textDocument": {"uri": self.document_uri, "version": self.version},
                "contentChanges": content_changes,
            }
        )
        return True

    async def flush_pending(self) -> bool:
        """Send a debounced change right away, if one is waiting."""
        if self._debounce.cancel():
            return await self.flush()
        return False

    def close(self) -> None:
        """Cancel pending work and detach from the client."""
        if self.closed:
            return
        self.closed = True
        self._debounce.cancel()
        for task in list(self._tasks):
            task.cancel()
        self.client.detach(self)

    async def drain(self) -> None:
        """Wait for background work started by notifications and typing."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def on_view_changed(self, text: str, changes: Sequence[ChangeSpec]) -> Optional[asyncio.Task]:
        """Editor change hook: schedule the sync and open signature help on a trigger character.

        Returns:
            The signature help task, if one was started
        """
        self.schedule_change(text, changes)
        if not self._available("signature_help", "signatureHelpProvider"):
            return None

        options = self._capabilities().get("signatureHelpProvider")
        trigger_characters = options.get("triggerCharacters") if isinstance(options, dict) else None
        trigger = find_signature_trigger(changes, trigger_characters)
        if trigger is None:
            return None
        offset, character = trigger
        pos = offset_to_pos(TextBuffer(text), offset)
        return self._spawn(self._show_signature_help(pos, character))

    def _track_incremental(self) -> bool:
        return (
            self.sync_mode == SYNC_INCREMENTAL
            and self._shadow is not None
            and self._pending_events is not None
        )

    def _use_incremental(self) -> bool:
        if self.sync_mode != SYNC_INCREMENTAL:
            return False
        sync = self._capabilities().get("textDocumentSync")
        kind = sync.get("change") if isinstance(sync, dict) else sync
        return kind == SERVER_SYNC_INCREMENTAL

    def _record_changes(self, text: str, changes: Sequence[ChangeSpec]) -> None:
        try:
            shadow_text = apply_change_specs(self._shadow.text, changes)
        except ValueError:
            shadow_text = None
        if shadow_text != text:
            Logger.instance().debug("edit batch does not match the synced text, sending full text")
            self._pending_events = None
            return

        # descending start: each range stays valid after the ones before it apply
        for change in sorted(changes, key=lambda c: (c.start, c.end), reverse=True):
            self._pending_events.append(
                {
                    "range": {
                        "start": offset_to_pos(self._shadow, change.start),
                        "end": offset_to_pos(self._shadow, change.end),
                    },
                    "text": change.insert,
                }
            )
        self._shadow = TextBuffer(shadow_text)

    def _reset_sync_state(self, text: str) -> None:
        if self.sync_mode == SYNC_INCREMENTAL:
            self._shadow = TextBuffer(text)
            self._pending_events = []
        else:
            self._shadow = None
            self._pending_events = None

    # ═══════════════════════════════════════════════════════════════════
    # Notifications and diagnostics
    # ═══════════════════════════════════════════════════════════════════

    def process_notification(self, method: str, params: Any) -> None:
        if method == "textDocument/publishDiagnostics":
            self._spawn(self.process_diagnostics(params))

    async def process_diagnostics(self, params: PublishDiagnosticsParams) -> Optional[List[PresentedDiagnostic]]:
        """Render diagnostics published for this document; other URIs are ignored."""
        if not params or params.get("uri") != self.document_uri:
            return None
        generation = self._begin("diagnostics")
        if not self.features.diagnostics:
            self.view.set_diagnostics([])
            return []

        diagnostics: List[Diagnostic] = params.get("diagnostics") or []
        return await present_diagnostics(
            self.view,
            self.document_uri,
            diagnostics,
            self.request_code_actions,
            self.language_id,
            superseded=lambda: self._is_stale("diagnostics", generation),
        )

    async def request_code_actions(self, rng: Range, codes: Optional[List[Any]] = None) -> Optional[List[Any]]:
        """Code actions for ``rng``, or None when unavailable.

        Request failures propagate to the caller.
        """
        if not self._available("code_actions", "codeActionProvider"):
            return None

        diagnostic: Diagnostic = {"range": rng, "source": self.language_id, "message": ""}
        if codes and codes[0] is not None:
            diagnostic["code"] = codes[0]
        return await self.client.text_document_code_action(
            {
                "textDocument": {"uri": self.document_uri},
                "range": rng,
                "context": {"diagnostics": [diagnostic]},
            }
        )

    # ═══════════════════════════════════════════════════════════════════
    # Language features
    # ═══════════════════════════════════════════════════════════════════

    async def request_hover(self, pos: Position) -> Optional[Tooltip]:
        if not self._available("hover", "hoverProvider"):
            return None
        generation = self._begin("hover")
        await self.flush_pending()

        try:
            result = await self.client.text_document_hover(self._position_params(pos))
        except LSPError as e:
            Logger.instance().warning(f"hover failed: {e}")
            return None
        if self._is_stale("hover", generation) or not result:
            return None

        doc = TextBuffer(self.view.text)
        start = pos_to_offset(doc, pos)
        end = None
        rng = result.get("range")
        if rng:
            start = pos_to_offset(doc, rng["start"])
            end = pos_to_offset(doc, rng["end"])
        if start is None:
            return None

        contents = result.get("contents")
        if is_empty_documentation(contents):
            return None
        return Tooltip(start=start, end=end, content=format_contents(contents, self.allow_html_content))

    async def request_completion(
        self,
        pos: Position,
        trigger_kind: int = CompletionTriggerKind.INVOKED,
        trigger_character: Optional[str] = None,
    ) -> Optional[CompletionResult]:
        if not self._available("completion", "completionProvider"):
            return None
        generation = self._begin("completion")
        await self.flush_pending()

        context: Dict[str, Any] = {"triggerKind": trigger_kind}
        if trigger_character is not None:
            context["triggerCharacter"] = trigger_character
        params = dict(self._position_params(pos), context=context)
        try:
            result = await self.client.text_document_completion(params)
        except LSPError as e:
            Logger.instance().warning(f"completion failed: {e}")
            return None
        if self._is_stale("completion", generation) or not result:
            return None

        items = (result.get("items") or []) if isinstance(result, dict) else result
        if not items:
            return None

        text = self.view.text
        offset = pos_to_offset(TextBuffer(text), pos)
        if offset is None:
            return None

        options = self._capabilities().get("completionProvider")
        resolve_item = None
        if isinstance(options, dict) and options.get("resolveProvider"):
            resolve_item = self.client.completion_item_resolve
        return build_completion_result(
            items,
            text,
            offset,
            language_id=self.language_id,
            allow_html=self.allow_html_content,
            resolve_item=resolve_item,
        )

    async def complete_at(self, offset: int, explicit: bool = False) -> Optional[CompletionResult]:
        """Request completion at ``offset`` if the text before it calls for it."""
        options = self._capabilities().get("completionProvider")
        trigger_characters = (options.get("triggerCharacters") if isinstance(options, dict) else None) or []
        text = self.view.text
        trigger = completion_trigger_kind(text, offset, trigger_characters, explicit)
        if trigger is None:
            return None
        kind, character = trigger
        return await self.request_completion(offset_to_pos(TextBuffer(text), offset), kind, character)

    async def request_definition(self, pos: Position) -> Optional[DefinitionResult]:
        """Go to the first definition; same-document targets move the selection."""
        if not self._available("definition", "definitionProvider"):
            return None
        try:
            result = await self.client.text_document_definition(self._position_params(pos))
        except LSPError as e:
            Logger.instance().warning(f"definition failed: {e}")
            return None
        if not result:
            return None

        locations = result if isinstance(result, list) else [result]
        if not locations or not locations[0]:
            return None
        location = locations[0]
        if "targetUri" in location:
            uri, rng = location["targetUri"], location["targetRange"]
        else:
            uri, rng = location["uri"], location["range"]

        definition = DefinitionResult(uri=uri, range=rng, is_external_document=uri != self.document_uri)
        if not definition.is_external_document:
            doc = TextBuffer(self.view.text)
            anchor = pos_to_offset_or_zero(doc, rng["start"])
            head = pos_to_offset(doc, rng["end"])
            self.view.set_selection(anchor, anchor if head is None else head)

        if self.on_go_to_definition is not None:
            self.on_go_to_definition(definition)
        return definition

    async def prepare_rename(self, pos: Position) -> Optional[RenameTarget]:
        """Ask whether the symbol at ``pos`` can be renamed.

        A server that rejects prepareRename, or asks for default behavior,
        gets the identifier under the cursor instead.
        """
        if not self._rename_available():
            return None

        doc = TextBuffer(self.view.text)
        try:
            result = await self.client.text_document_prepare_rename(self._position_params(pos))
        except LSPError as e:
            Logger.instance().debug(f"prepareRename failed, using the word at the cursor: {e}")
            result = {"defaultBehavior": True}
        if result and result.get("defaultBehavior"):
            result = word_range_at(doc, pos)
        if not result:
            self.view.show_message(CANNOT_RENAME)
            return None

        rng = result["range"] if "range" in result else result
        start = pos_to_offset(doc, rng["start"])
        end = pos_to_offset(doc, rng["end"])
        if start is None or end is None or end < start:
            self.view.show_message(CANNOT_RENAME)
            return None
        placeholder = result.get("placeholder") or range_text(doc, rng)
        return RenameTarget(start=start, end=end, placeholder=placeholder, range=rng)

    async def rename(self, pos: Position, new_name: str, current_name: Optional[str] = None) -> bool:
        """Rename the symbol at ``pos`` and apply the returned edit.

        Returns:
            True if the active document was edited
        """
        if not self._rename_available():
            return False
        new_name = new_name.strip()
        if not new_name:
            self.view.show_message(EMPTY_NAME)
            return False
        if current_name is not None and new_name == current_name:
            return False

        params = dict(self._position_params(pos), newName=new_name)
        try:
            edit = await self.client.text_document_rename(params)
        except LSPError as e:
            reason = e.message if isinstance(e, LSPResponseError) else str(e)
            self.view.show_message(f"Rename failed: {reason}")
            return False
        return apply_workspace_edit(self.view, self.document_uri, edit)

    async def request_rename(self, pos: Position, new_name: str) -> bool:
        """prepare_rename() followed by rename()."""
        target = await self.prepare_rename(pos)
        if target is None:
            return False
        return await self.rename(pos, new_name, target.placeholder)

    async def request_signature_help(
        self, pos: Position, trigger_character: Optional[str] = None
    ) -> Optional[SignatureView]:
        if not self._available("signature_help", "signatureHelpProvider"):
            return None
        generation = self._begin("signature_help")
        await self.flush_pending()

        context: Dict[str, Any] = {"isRetrigger": False, "triggerKind": SignatureHelpTriggerKind.INVOKED}
        if trigger_character is not None:
            context["triggerKind"] = SignatureHelpTriggerKind.TRIGGER_CHARACTER
            context["triggerCharacter"] = trigger_character
        params = dict(self._position_params(pos), context=context)
        try:
            result = await self.client.text_document_signature_help(params)
        except LSPError as e:
            Logger.instance().warning(f"signature help failed: {e}")
            return None
        if self._is_stale("signature_help", generation):
            return None

        offset = pos_to_offset(TextBuffer(self.view.text), pos)
        if offset is None:
            return None
        return build_signature_view(result, offset, self.allow_html_content)

    def _rename_available(self) -> bool:
        """Rename switched on, server ready and advertising renameProvider.

        The user asked for the rename, so a missing server or capability is
        reported through the view.
        """
        if not self.features.rename:
            return False
        if not self.client.ready:
            self.view.show_message(NOT_READY)
            return False
        if not self._capabilities().get("renameProvider"):
            self.view.show_message(RENAME_UNSUPPORTED)
            return False
        return True

    async def _show_signature_help(self, pos: Position, trigger_character: str) -> None:
        signature = await self.request_signature_help(pos, trigger_character)
        if signature is None:
            return
        self.signature = signature
        if self.on_signature_help is not None:
            self.on_signature_help(signature)

    # ═══════════════════════════════════════════════════════════════════
    # Internal helpers
    # ═══════════════════════════════════════════════════════════════════

    def _capabilities(self) -> Dict[str, Any]:
        return self.client.capabilities or {}

    def _available(self, feature: str, provider: str) -> bool:
        """Feature switched on, server ready, capability advertised."""
        if not getattr(self.features, feature):
            return False
        if not self.client.ready:
            return False
        return bool(self._capabilities().get(provider))

    def _position_params(self, pos: Position) -> TextDocumentPositionParams:
        return {"textDocument": {"uri": self.document_uri}, "position": pos}

    def _begin(self, feature: str) -> int:
        generation = self._generations.get(feature, 0) + 1
        self._generations[feature] = generation
        return generation

    def _is_stale(self, feature: str, generation: int) -> bool:
        if self.stale_guard and self._generations.get(feature) != generation:
            Logger.instance().debug(f"discarding superseded {feature} response")
            return True
        return False

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            Logger.instance().error(f"{self.document_uri}: background task failed: {error}")
