"""
Shared pytest fixtures for the nearauth test suite.
"""

import asyncio
import logging

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from nearauth_core.config import NetworkConfig
from nearauth_core.connection import Connection, InMemorySigner, JsonRpcProvider
from nearauth_core.keys import derive_keypair

# RFC 8032 section 7.1, TEST 1
RFC8032_SEED = "9d61b19deffd5a60ba844af492ec2cc44449c5697b326919703bac031cae7f60"
RFC8032_PUBLIC = "d75a980182b10ab7d54bfed3c964073a0ee172f3daa62325af021a68f707511a"

# RFC 8032 section 7.1, TEST 2
RFC8032_SEED_2 = "4ccd089b28ff96da9db6c346ec114e0f5b8a319f35aba624da8cf6ed4fb8a6fb"
RFC8032_PUBLIC_2 = "3d4017c3e843895a92b70aa74d1b7ebc9c982ccf2ec4968cc0cd55f12af4660c"


class FakeHandle:
    def __init__(self, provider, login_provider):
        self.provider = provider
        self.login_provider = login_provider

    async def request(self, method, params=None):
        self.provider.calls.append(("request", method))
        if self.provider.request_error is not None:
            raise self.provider.request_error
        return self.provider.raw_key


class FakeProvider:
    """Identity-provider double; set the ``*_error`` / ``*_gate`` attributes to steer it."""

    def __init__(self, raw_key=RFC8032_SEED):
        self.raw_key = raw_key
        self.connected = False
        self.calls = []
        self.init_error = None
        self.connect_error = None
        self.request_error = None
        self.logout_error = None
        self.init_gate = None
        self.connect_gate = None

    async def init(self):
        self.calls.append(("init",))
        if self.init_gate is not None:
            await self.init_gate.wait()
        if self.init_error is not None:
            raise self.init_error

    async def connect_to(self, adapter, *, login_provider):
        self.calls.append(("connect_to", adapter, login_provider))
        if self.connect_gate is not None:
            await self.connect_gate.wait()
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True
        return FakeHandle(self, login_provider)

    async def logout(self):
        self.calls.append(("logout",))
        self.connected = False
        if self.logout_error is not None:
            raise self.logout_error


class FakeConnector:
    """Stands in for ``connect``; records bindings and never touches the network."""

    def __init__(self):
        self.error = None
        self.gate = None
        self.bindings = []
        self.connections = []

    async def __call__(self, network, binding):
        self.bindings.append(binding)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        conn = Connection(network, JsonRpcProvider(network.node_url),
                          InMemorySigner(binding.keystore), network.network_id)
        self.connections.append(conn)
        return conn


class FakeNode:
    """Programmable NEAR JSON-RPC endpoint served by aiohttp."""

    def __init__(self):
        self.requests = []
        self.results = {
            "status": {
                "chain_id": "testnet",
                "sync_info": {"latest_block_height": 1234},
            },
            "query": {"amount": "0", "block_height": 1234},
        }
        self.errors = {}
        self.http_status = 200
        self.url = ""

    async def handle(self, request):
        body = await request.json()
        self.requests.append(body)
        if self.http_status != 200:
            return web.Response(status=self.http_status, text="unavailable")
        method = body["method"]
        if method in self.errors:
            return web.json_response(
                {"jsonrpc": "2.0", "id": body["id"], "error": self.errors[method]})
        return web.json_response(
            {"jsonrpc": "2.0", "id": body["id"], "result": self.results.get(method, {})})


@pytest.fixture
def raw_key():
    """Raw provider key whose ed25519 public key is known."""
    return RFC8032_SEED


@pytest.fixture
def key_pair(raw_key):
    return derive_keypair(raw_key)


@pytest.fixture
def network():
    return NetworkConfig(network_id="testnet", node_url="http://127.0.0.1:3030")


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def fake_connector():
    return FakeConnector()


@pytest.fixture
def gate():
    return asyncio.Event()


@pytest_asyncio.fixture
async def rpc_node():
    """A running fake NEAR node; ``rpc_node.url`` is its JSON-RPC endpoint."""
    node = FakeNode()
    app = web.Application()
    app.router.add_post("/", node.handle)
    server = TestServer(app)
    await server.start_server()
    node.url = str(server.make_url("/"))
    try:
        yield node
    finally:
        await server.close()


@pytest.fixture
def restore_logging():
    """Undo root-logger changes made by setup_logging()."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
