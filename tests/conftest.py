"""Shared fixtures: client/node keypairs, a simulated weave node and fake transports."""

from __future__ import annotations

import asyncio
import base64
import json
import os

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from websockets.exceptions import ConnectionClosed

from weaveclient.core.config import ClientConfig
from weaveclient.core.exceptions import IntegrityError
from weaveclient.core.hashing import hmac_sha256_b64
from weaveclient.security.agreement import compute_shared_secret
from weaveclient.security.context import ApiContext
from weaveclient.security.crypto import decrypt, encrypt
from weaveclient.security.keys import ClientKeyPair, decode_key, encode_key
from weaveclient.security.session import Session
from weaveclient.security.signer import message_string_to_sign, path_string_to_sign

SEED_HEX = "92f30f0b6be2732cb817c19839b0940c"


def make_keypair():
    """Return (encoded public, encoded private, raw private) for a fresh secp256k1 key."""
    key = ec.generate_private_key(ec.SECP256K1())
    point = key.public_key().public_bytes(
        serialization.Encoding.X962, serialization.PublicFormat.CompressedPoint
    )
    scalar = key.private_numbers().private_value.to_bytes(32, "big")
    return encode_key(point), encode_key(scalar, prefix=False), scalar


def make_key_pairs_with_full_secret():
    # A shared secret with a leading zero byte is 31 bytes long and not an AES
    # key; retry so tests are not flaky (1 in 256 chance per attempt).
    while True:
        client = make_keypair()
        node = make_keypair()
        secret = compute_shared_secret(client[2], decode_key(node[0]))
        if len(secret) == 32:
            return client, node


class FakeNode:
    """Enough of a weave node to log in, verify signatures and record requests."""

    def __init__(self, encoded_public, private, seed_hex=SEED_HEX, integrity_checks=False):
        self.encoded_public = encoded_public
        self.private = private
        self.seed_hex = seed_hex
        self.integrity_checks = integrity_checks
        self.api_key = "api-key-1"
        self.session_secret = os.urandom(32)
        self.expire = "2999-01-01T00:00:00Z"
        self.layout = {"id": "LONG", "name": "STRING", "ts": "TIMESTAMP"}
        self.last_nonce = 0
        self.requests = []
        self.login_payloads = []
        self.omit_fields = ()

    def shared_secret(self, client_public: str) -> bytes:
        return compute_shared_secret(self.private, decode_key(client_public))

    def login(self, payload):
        self.login_payloads.append(payload)
        key = self.shared_secret(payload["account"])
        to_sign = f"{payload['organization']}\n{payload['account']}\n{payload['scopes']}"
        iv = bytes.fromhex(payload["x-iv"])
        try:
            opened = decrypt(bytes.fromhex(payload["signature"]), key, iv, self.seed_hex)
        except IntegrityError:
            opened = None
        if opened != to_sign:
            return {"res": "err", "message": "bad login signature"}

        reply_iv = os.urandom(16)
        secret_text = base64.b64encode(self.session_secret).decode("ascii")
        data = {
            "organization": payload["organization"],
            "account": payload["account"],
            "publicKey": self.encoded_public,
            "scopes": payload["scopes"],
            "apiKey": self.api_key,
            "secret": encrypt(secret_text, key, reply_iv, self.seed_hex).hex(),
            "x-iv": reply_iv.hex(),
            "secretExpireUTC": self.expire,
            "integrityChecks": "true" if self.integrity_checks else "false",
        }
        for name in self.omit_fields:
            data.pop(name, None)
        return {"data": json.dumps(data)}

    def check_nonce(self, nonce: str) -> bool:
        value = int(nonce)
        if value <= self.last_nonce:
            return False
        self.last_nonce = value
        return True

    def verify_path_request(self, url: str, headers, body: str) -> bool:
        expected = hmac_sha256_b64(
            self.session_secret, path_string_to_sign(url, headers["x-api-key"], headers["x-nonce"], body)
        )
        return headers["x-sig"] == expected and self.check_nonce(headers["x-nonce"])

    def verify_message(self, message) -> bool:
        unsigned = {k: v for k, v in message.items() if k not in ("x-sig", "type", "id")}
        expected = hmac_sha256_b64(self.session_secret, message_string_to_sign(unsigned))
        return message["x-sig"] == expected and self.check_nonce(message["x-nonce"])

    def table_definition(self):
        return {"data": json.dumps({"layout": json.dumps({"layout": self.layout})})}


@pytest.fixture
def key_pairs():
    return make_key_pairs_with_full_secret()


@pytest.fixture
def client_keys(key_pairs):
    return key_pairs[0]


@pytest.fixture
def node(key_pairs):
    encoded_public, _, private = key_pairs[1]
    return FakeNode(encoded_public, private)


@pytest.fixture
def config(client_keys):
    encoded_public, encoded_private, _ = client_keys
    return ClientConfig(
        host="node.test",
        port="18080",
        client_public_key=encoded_public,
        client_private_key=encoded_private,
        seed_hex=SEED_HEX,
        use_tls=False,
    )


@pytest.fixture
def context(config, node):
    ctx = ApiContext.from_config(config)
    ctx.set_server_public_key({"data": node.encoded_public})
    ctx.compute_shared_secret()
    return ctx


@pytest.fixture
def session():
    return Session(
        organization="acme",
        account="weaveAAAA",
        public_key="weaveNODE",
        scopes="shared",
        api_key="api-key-1",
        secret=b"s" * 32,
        secret_expire_utc="2999-01-01T00:00:00Z",
        integrity_checks=True,
    )


@pytest.fixture
def client_key_pair(client_keys) -> ClientKeyPair:
    return ClientKeyPair.from_encoded(client_keys[0], client_keys[1])


def node_http_handler(node):
    """httpx.MockTransport handler that routes path-style calls to ``node``."""

    def handler(request: httpx.Request) -> httpx.Response:
        name = request.url.path.rsplit("/", 1)[-1]
        body = request.content.decode("utf-8")
        node.requests.append((name, json.loads(body) if body else None, dict(request.headers)))

        if name == "public_key":
            return httpx.Response(200, json={"data": node.encoded_public})
        if name == "version":
            return httpx.Response(200, text="1.0.0")
        if name in ("ping", "sig_key"):
            return httpx.Response(200, json={"res": "ok"})
        if name == "login":
            return httpx.Response(200, json=node.login(json.loads(body)))
        if "x-sig" not in request.headers or not node.verify_path_request(str(request.url), request.headers, body):
            return httpx.Response(401, text="Unauthorized")
        if name == "get_table_definition":
            return httpx.Response(200, json=node.table_definition())
        return httpx.Response(200, json={"res": "ok", "data": name})

    return handler


def node_ws_responder(node):
    """FakeWebSocket responder that answers message-style calls from ``node``."""

    def respond(message):
        name = message["type"]
        node.requests.append((name, message, None))
        if name == "public_key":
            return json.dumps({"data": node.encoded_public})
        if name == "login":
            return json.dumps(node.login(message))
        if "x-sig" not in message or not node.verify_message(message):
            return json.dumps({"res": "err", "message": "Unauthorized"})
        if name == "get_table_definition":
            return json.dumps(node.table_definition())
        return json.dumps({"res": "ok", "data": name})

    return respond


class FakeWebSocket:
    """In-memory websocket. Sent frames go to ``responder``; replies are queued back."""

    def __init__(self, responder=None):
        self.responder = responder
        self.sent = []
        self.closed = False
        self._incoming = asyncio.Queue()

    async def send(self, text):
        if self.closed:
            raise ConnectionClosed(None, None)
        message = json.loads(text)
        self.sent.append(message)
        if self.responder is not None:
            reply = self.responder(message)
            if reply is not None:
                self.push({"id": message["id"], "reply": reply})

    def push(self, message):
        self._incoming.put_nowait(message if isinstance(message, str) else json.dumps(message))

    def drop(self):
        # simulate the peer going away without a close handshake
        self._incoming.put_nowait(ConnectionClosed(None, None))

    async def close(self):
        self.closed = True
        self._incoming.put_nowait(None)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._incoming.get()
        if item is None:
            raise StopAsyncIteration
        if isinstance(item, Exception):
            raise item
        return item


def connector_for(ws):
    async def connect(url):
        connect.urls.append(url)
        return ws

    connect.urls = []
    return connect


async def wait_for(predicate, rounds=200):
    for _ in range(rounds):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


@pytest.fixture
def node_session(node):
    """A session the simulated node accepts without a login round trip."""
    return Session(
        organization="acme",
        account="weaveAAAA",
        public_key=node.encoded_public,
        scopes="shared",
        api_key=node.api_key,
        secret=node.session_secret,
        secret_expire_utc=node.expire,
    )
