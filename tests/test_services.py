"""Tests for dvupload services."""
import hashlib
import io
import json
from unittest.mock import AsyncMock, Mock

import httpx
import pytest

from dvupload.errors import (
    ApiResponseError,
    IncompleteBodyError,
    MultipartUploadNotSupported,
    ResponseDecodeError,
    StorageUploadError,
    TransportError,
)
from dvupload.identifier import Identifier
from dvupload.models import Checksum, DirectUploadBody, FileDescriptor, UploadConfig, UploadTicket
from dvupload.services.api_client import API_TOKEN_HEADER, HTTPAPIClient, evaluate_response
from dvupload.services.checksum import md5_file, md5_stream
from dvupload.services.repository import RegistrationRepository
from dvupload.services.request import FileRequest, JsonRequest, MultipartRequest, PlainRequest
from dvupload.services.storage import STORAGE_TAGGING_HEADER, StorageService
from dvupload.services.tickets import TicketBroker
from dvupload.utils.progress import CountingSink, ProgressSink

from conftest import PID, form_fields


class TestChecksum:
    @pytest.mark.asyncio
    async def test_known_digest(self, make_file):
        checksum = await md5_file(make_file("hello.txt", b"hello world"))
        assert checksum.value == "5eb63bbbe01eeed093cb22bb8f5acdc3"
        assert checksum.type == "MD5"

    @pytest.mark.asyncio
    async def test_empty_file(self, make_file):
        checksum = await md5_file(make_file("empty.txt", b""))
        assert checksum.value == "d41d8cd98f00b204e9800998ecf8427e"

    @pytest.mark.asyncio
    async def test_deterministic_and_sensitive(self, make_file):
        first = await md5_file(make_file("a.bin", b"abc" * 1000))
        again = await md5_file(make_file("b.bin", b"abc" * 1000))
        changed = await md5_file(make_file("c.bin", b"abc" * 999 + b"abd"))
        assert first == again
        assert first != changed

    def test_chunk_size_does_not_matter(self):
        data = bytes(range(256)) * 50
        expected = hashlib.md5(data).hexdigest()
        for chunk_size in (1, 7, 4096, 1_000_000):
            assert md5_stream(io.BytesIO(data), chunk_size) == expected

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            await md5_file(tmp_path / "missing.bin")


class TestRequestBuilder:
    def test_plain(self):
        client = httpx.Client(base_url="https://dataverse.test")
        with PlainRequest().to_request(client, "GET", "api/info", params={"a": "1"}) as request:
            assert request.method == "GET"
            assert str(request.url) == "https://dataverse.test/api/info?a=1"
            assert request.read() == b""

    def test_json(self):
        client = httpx.Client()
        with JsonRequest('{"a": 1}').to_request(client, "POST", "https://x.test/") as request:
            assert request.headers["content-type"] == "application/json"
            assert json.loads(request.read()) == {"a": 1}

    def test_multipart_text_only_is_form_data(self):
        client = httpx.Client()
        context = MultipartRequest(bodies={"jsonData": '{"fileName": "a.txt"}'})
        with context.to_request(client, "POST", "https://x.test/") as request:
            request.read()
            fields = form_fields(request)
        assert json.loads(fields["jsonData"]) == {"fileName": "a.txt"}

    def test_multipart_file_part(self, make_file):
        path = make_file("data.bin", b"payload-bytes")
        increments = []
        context = MultipartRequest(
            bodies={"jsonData": "{}"},
            files={"file": path},
            callbacks={"file": ProgressSink(increments.append)},
        )
        client = httpx.Client()
        with context.to_request(client, "POST", "https://x.test/") as request:
            content = request.read()

        assert b'filename="data.bin"' in content
        assert b"Content-Type: application/octet-stream" in content
        assert b"payload-bytes" in content
        assert sum(increments) == len(b"payload-bytes")
        assert all(n > 0 for n in increments)

    def test_multipart_file_replaces_text_field(self, make_file):
        path = make_file("data.bin", b"file wins")
        context = MultipartRequest(bodies={"file": "text"}, files={"file": path})
        with context.to_request(httpx.Client(), "POST", "https://x.test/") as request:
            content = request.read()
        assert b"file wins" in content
        assert b"\r\n\r\ntext\r\n" not in content

    @pytest.mark.asyncio
    async def test_file_request_streams_with_progress(self, make_file):
        data = b"z" * 2500
        path = make_file("blob.bin", data)
        increments = []
        context = FileRequest(path, ProgressSink(increments.append), chunk_size=1000)

        async with httpx.AsyncClient() as client:
            with context.to_request(
                client, "PUT", "https://storage.test/b", headers={"Content-Length": "2500"}
            ) as request:
                assert "transfer-encoding" not in request.headers
                body = await request.aread()

        assert body == data
        assert increments == [1000, 1000, 500]

    def test_files_closed_after_request(self, make_file):
        path = make_file("data.bin", b"x")
        context = MultipartRequest(files={"file": path})
        with context.to_request(httpx.Client(), "POST", "https://x.test/") as request:
            pass
        with pytest.raises(ValueError):
            request.read()


class TestApiClient:
    @pytest.mark.asyncio
    async def test_token_header_and_base_url(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"status": "OK"})

        async with HTTPAPIClient(
            "https://dataverse.test", api_token="secret", transport=httpx.MockTransport(handler)
        ) as client:
            await client.get("api/info/version")

        assert seen[0].headers[API_TOKEN_HEADER] == "secret"
        assert seen[0].url.path == "/api/info/version"

    @pytest.mark.asyncio
    async def test_no_token_header_without_token(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200)

        async with HTTPAPIClient(transport=httpx.MockTransport(handler)) as client:
            await client.put("https://storage.test/b", context=PlainRequest())

        assert API_TOKEN_HEADER not in seen[0].headers

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        async with HTTPAPIClient("https://dataverse.test", transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(TransportError, match="connection refused"):
                await client.get("api/info/version")

    @pytest.mark.asyncio
    async def test_requires_context_manager(self):
        client = HTTPAPIClient("https://dataverse.test")
        with pytest.raises(RuntimeError, match="not initialized"):
            await client.get("api/info/version")

    def test_evaluate_response_decode_error_keeps_raw(self):
        response = httpx.Response(502, text="<html>Bad Gateway</html>")
        with pytest.raises(ResponseDecodeError) as exc_info:
            evaluate_response(response)
        assert "<html>Bad Gateway</html>" in str(exc_info.value)
        assert exc_info.value.raw == "<html>Bad Gateway</html>"

    def test_evaluate_response_error_status_is_not_raised(self):
        response = httpx.Response(400, json={"status": "ERROR", "message": "nope"})
        result = evaluate_response(response)
        assert result.is_ok is False
        assert result.message == "nope"


def _api_returning(response: httpx.Response):
    api = Mock()
    api.get = AsyncMock(return_value=response)
    api.post = AsyncMock(return_value=response)
    api.put = AsyncMock(return_value=response)
    return api


class TestTicketBroker:
    @pytest.mark.asyncio
    async def test_single_part_ticket(self):
        api = _api_returning(
            httpx.Response(
                200,
                json={"status": "OK", "data": {"url": "https://s3/put", "storageIdentifier": "s3://b:1"}},
            )
        )
        ticket = await TicketBroker(api).get_ticket(Identifier.persistent_id(PID), 10240)

        assert ticket.is_multipart is False
        assert ticket.url == "https://s3/put"
        path = api.get.call_args.args[0]
        params = api.get.call_args.kwargs["params"]
        assert path == "api/datasets/:persistentId/uploadurls"
        assert params == {"persistentId": PID, "size": "10240"}

    @pytest.mark.asyncio
    async def test_multipart_ticket(self):
        api = _api_returning(
            httpx.Response(
                200,
                json={
                    "status": "OK",
                    "data": {"urls": {"1": "p1", "2": "p2"}, "partSize": 5, "storageIdentifier": "s3://b:2"},
                },
            )
        )
        ticket = await TicketBroker(api).get_ticket(Identifier.numeric(3), 10)

        assert ticket.is_multipart is True
        assert ticket.urls == ("p1", "p2")
        assert api.get.call_args.args[0] == "api/datasets/3/uploadurls"
        assert api.get.call_args.kwargs["params"] == {"size": "10"}

    @pytest.mark.asyncio
    async def test_error_envelope(self):
        api = _api_returning(
            httpx.Response(403, json={"status": "ERROR", "message": "Direct upload not enabled"})
        )
        with pytest.raises(ApiResponseError, match="Direct upload not enabled"):
            await TicketBroker(api).get_ticket(Identifier.persistent_id(PID), 1)

    @pytest.mark.asyncio
    async def test_missing_data(self):
        api = _api_returning(httpx.Response(200, json={"status": "OK"}))
        with pytest.raises(ResponseDecodeError):
            await TicketBroker(api).get_ticket(Identifier.persistent_id(PID), 1)


class TestStorageService:
    @pytest.mark.asyncio
    async def test_put_headers_and_body(self, make_file):
        path = make_file("data.csv", b"a,b\n1,2\n")
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200)

        ticket = UploadTicket(storage_identifier="s3://b:1", url="https://storage.test/b/1?sig=x")
        sink = CountingSink()
        async with HTTPAPIClient(transport=httpx.MockTransport(handler)) as client:
            sid = await StorageService(client).upload(FileDescriptor.from_path(path), ticket, sink)

        request = seen[0]
        assert sid == "s3://b:1"
        assert request.method == "PUT"
        assert request.url.params["sig"] == "x"
        assert request.headers["content-length"] == "8"
        assert request.headers[STORAGE_TAGGING_HEADER] == "dv-state=temp"
        assert "transfer-encoding" not in request.headers
        assert request.content == b"a,b\n1,2\n"
        assert sink.total == 8

    @pytest.mark.asyncio
    async def test_custom_tagging(self, make_file):
        path = make_file("data.csv", b"x")
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(204)

        ticket = UploadTicket(storage_identifier="s3://b:1", url="https://storage.test/b/1")
        async with HTTPAPIClient(transport=httpx.MockTransport(handler)) as client:
            service = StorageService(client, UploadConfig(storage_tagging="state=staging"))
            await service.upload(FileDescriptor.from_path(path), ticket)

        assert seen[0].headers[STORAGE_TAGGING_HEADER] == "state=staging"

    @pytest.mark.asyncio
    async def test_rejected_put(self, make_file):
        path = make_file("data.csv", b"x")
        transport = httpx.MockTransport(lambda request: httpx.Response(403, text="AccessDenied"))
        ticket = UploadTicket(storage_identifier="s3://b:1", url="https://storage.test/b/1")

        async with HTTPAPIClient(transport=transport) as client:
            with pytest.raises(StorageUploadError) as exc_info:
                await StorageService(client).upload(FileDescriptor.from_path(path), ticket)

        assert exc_info.value.status_code == 403
        assert "AccessDenied" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_multipart_ticket_is_not_uploaded(self, make_file):
        path = make_file("big.bin", b"x")
        client = Mock()
        client.put = AsyncMock()
        ticket = UploadTicket(storage_identifier="s3://b:1", urls=("p1", "p2"), part_size=1)

        with pytest.raises(MultipartUploadNotSupported, match="not supported"):
            await StorageService(client).upload(FileDescriptor.from_path(path), ticket)

        client.put.assert_not_called()


def _stored_body(name: str) -> DirectUploadBody:
    return DirectUploadBody(
        file_name=name,
        storage_identifier=f"s3://b:{name}",
        checksum=Checksum("d41d8cd98f00b204e9800998ecf8427e"),
    )


class TestRegistrationRepository:
    @pytest.mark.asyncio
    async def test_register_one(self):
        api = _api_returning(httpx.Response(200, json={"status": "OK", "data": {"files": [{}]}}))
        body = _stored_body("a.txt")

        result = await RegistrationRepository(api).register_one(Identifier.persistent_id(PID), body)

        assert result.is_ok is True
        call = api.post.call_args
        assert call.args[0] == "api/datasets/:persistentId/add"
        assert call.kwargs["params"] == {"persistentId": PID}
        context = call.kwargs["context"]
        assert isinstance(context, MultipartRequest)
        assert not context.files
        assert json.loads(context.bodies["jsonData"]) == body.to_payload()

    @pytest.mark.asyncio
    async def test_register_many_preserves_order(self):
        api = _api_returning(httpx.Response(200, json={"status": "OK", "data": {"files": []}}))
        bodies = [_stored_body(name) for name in ("c.txt", "a.txt", "b.txt")]

        await RegistrationRepository(api).register_many(Identifier.numeric(9), bodies)

        call = api.post.call_args
        assert call.args[0] == "api/datasets/9/addFiles"
        payload = json.loads(call.kwargs["context"].bodies["jsonData"])
        assert [item["fileName"] for item in payload] == ["c.txt", "a.txt", "b.txt"]

    @pytest.mark.asyncio
    async def test_error_is_returned(self):
        api = _api_returning(httpx.Response(400, json={"status": "ERROR", "message": "Dataset is locked"}))

        result = await RegistrationRepository(api).register_one(
            Identifier.persistent_id(PID), _stored_body("a.txt")
        )

        assert result.is_ok is False
        assert result.message == "Dataset is locked"

    @pytest.mark.asyncio
    async def test_body_without_checksum_is_refused(self):
        api = _api_returning(httpx.Response(200, json={"status": "OK", "data": {}}))
        body = DirectUploadBody(file_name="a.txt", storage_identifier="s3://b:1")

        with pytest.raises(IncompleteBodyError, match="a.txt"):
            await RegistrationRepository(api).register_one(Identifier.persistent_id(PID), body)

        api.post.assert_not_called()

    @pytest.mark.asyncio
    async def test_batch_with_one_incomplete_body_is_refused(self):
        api = _api_returning(httpx.Response(200, json={"status": "OK", "data": {}}))
        bodies = [_stored_body("a.txt"), DirectUploadBody(file_name="b.txt")]

        with pytest.raises(IncompleteBodyError, match="b.txt"):
            await RegistrationRepository(api).register_many(Identifier.numeric(9), bodies)

        api.post.assert_not_called()
