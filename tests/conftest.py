"""shared fixtures: fake server connections and document sessions"""

import pytest
import pytest_asyncio

from editor_lsp.lsp.client import LanguageServerClient
from editor_lsp.session.document import DocumentSession
from editor_lsp.session.features import FeatureToggles
from editor_lsp.session.view import MemoryView
from fake_server import DOC_URI, ROOT_URI, FakeLanguageServer, transport_pair


@pytest_asyncio.fixture
async def connect():
    """factory: connect(handlers=..., capabilities=..., **client_kwargs) -> (client, server)

    ``capabilities`` are the server's. the client is created but not started.
    """
    created = []

    async def factory(handlers=None, capabilities=None, **client_kwargs):
        client_end, server_end = transport_pair()
        server = FakeLanguageServer(server_end, handlers=handlers, capabilities=capabilities)
        server.start()
        client_kwargs.setdefault("auto_close", False)
        client = LanguageServerClient(client_end, root_uri=ROOT_URI, **client_kwargs)
        created.append((client, server))
        return client, server

    yield factory

    for client, server in created:
        await client.close()
        await server.stop()


@pytest_asyncio.fixture
async def ready_client(connect):
    """factory: started and initialized client"""

    async def factory(handlers=None, capabilities=None, **client_kwargs):
        client, server = await connect(handlers, capabilities, **client_kwargs)
        client.start()
        await client.wait_ready()
        return client, server

    return factory


@pytest_asyncio.fixture
async def open_session(ready_client):
    """factory: opened DocumentSession over a MemoryView

    returns (session, view, client, server)
    """
    sessions = []

    async def factory(text="", handlers=None, capabilities=None, language_id="python", **session_kwargs):
        client, server = await ready_client(handlers, capabilities)
        view = MemoryView(text)
        session_kwargs.setdefault("debounce_ms", 10)
        session_kwargs.setdefault("features", FeatureToggles())
        session_kwargs.setdefault("stale_guard", True)
        session = DocumentSession(client, DOC_URI, language_id, view, **session_kwargs)
        sessions.append(session)
        assert await session.open()
        await server.wait_for_notification("textDocument/didOpen")
        return session, view, client, server

    yield factory

    for session in sessions:
        session.close()


@pytest.fixture
def view():
    return MemoryView("hello world\nsecond line\n")
