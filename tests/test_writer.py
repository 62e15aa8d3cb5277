"""Tests for index record persistence."""

import re
from unittest.mock import AsyncMock, Mock

import pytest

from komichi.client.writer import Credentials, IndexRecordWriter
from komichi.core.errors import WriteError, XrpcError

POST_URI = "at://did:plc:someoneelse/app.bsky.feed.post/3jzfcijpj2z2b"


class TestCredentials:

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("KOMICHI_DID", "did:plc:localactor")
        monkeypatch.setenv("KOMICHI_ACCESS_TOKEN", "secret-token")
        monkeypatch.setenv("KOMICHI_PDS", "https://pds.example")

        creds = Credentials.from_env()
        assert creds == Credentials("did:plc:localactor", "secret-token", "https://pds.example")

    def test_from_env_incomplete(self, monkeypatch):
        monkeypatch.setenv("KOMICHI_DID", "did:plc:localactor")
        monkeypatch.delenv("KOMICHI_ACCESS_TOKEN", raising=False)
        monkeypatch.setenv("KOMICHI_PDS", "https://pds.example")

        assert Credentials.from_env() is None

    def test_repr_hides_token(self, credentials):
        assert "secret-token" not in repr(credentials)
        assert credentials.did in repr(credentials)


class TestIndexRecordWriter:
    """Test the putRecord call made for each write."""

    @pytest.fixture
    def client(self):
        client = Mock()
        client.procedure = AsyncMock(return_value={"uri": "at://x", "cid": "bafy"})
        client.close = AsyncMock()
        return client

    @pytest.fixture
    def index_writer(self, client, credentials):
        writer = IndexRecordWriter()
        writer._clients[credentials] = client
        return writer

    @pytest.mark.asyncio
    async def test_put_record_body(self, index_writer, client, credentials):
        await index_writer.write("3jzfcijpj2z2a", [POST_URI], credentials)

        nsid, body = client.procedure.await_args.args
        assert nsid == "com.atproto.repo.putRecord"
        assert body["repo"] == credentials.did
        assert body["collection"] == "blue.maril.komichi.index"
        assert body["rkey"] == "3jzfcijpj2z2a"
        assert body["record"]["$type"] == "blue.maril.komichi.index"
        assert body["record"]["subjects"] == [POST_URI]
        assert re.match(r"^\d{4}-\d\d-\d\dT\d\d:\d\d:\d\d\.\d{3}Z$", body["record"]["createdAt"])

    @pytest.mark.asyncio
    async def test_empty_subjects(self, index_writer, client, credentials):
        await index_writer.write("3jzfcijpj2z2a", [], credentials)

        _, body = client.procedure.await_args.args
        assert body["record"]["subjects"] == []

    @pytest.mark.asyncio
    async def test_rejected_write(self, index_writer, client, credentials):
        client.procedure.side_effect = XrpcError(
            "putRecord failed", nsid="com.atproto.repo.putRecord", status=401)

        with pytest.raises(WriteError) as exc_info:
            await index_writer.write("3jzfcijpj2z2a", [POST_URI], credentials)

        assert exc_info.value.key == "3jzfcijpj2z2a"
        assert exc_info.value.status == 401

    def test_client_per_credentials(self, credentials):
        writer = IndexRecordWriter()
        client = writer._client(credentials)

        assert writer._client(credentials) is client
        assert client.service == credentials.pds
        assert client.access_token == credentials.access_token

    @pytest.mark.asyncio
    async def test_close(self, index_writer, client):
        await index_writer.close()
        client.close.assert_awaited_once()
