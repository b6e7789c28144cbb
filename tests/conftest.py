"""Shared fixtures: an in-memory Dataverse and object store behind httpx.MockTransport."""
import itertools
import json
import re
from typing import Dict, List, Optional

import httpx
import pytest

BASE_URL = "https://dataverse.test"
STORAGE_HOST = "storage.test"
PID = "doi:10.5072/FK2/ABC123"


def form_fields(request: httpx.Request) -> Dict[str, bytes]:
    """Split a multipart/form-data body into ``{field name: raw value}``."""
    content_type = request.headers["content-type"]
    assert content_type.startswith("multipart/form-data")
    boundary = content_type.split("boundary=", 1)[1].encode("ascii")

    fields = {}
    for part in request.content.split(b"--" + boundary):
        part = part.strip(b"\r\n")
        if not part or part == b"--":
            continue
        head, _, value = part.partition(b"\r\n\r\n")
        name = re.search(rb'name="([^"]+)"', head).group(1).decode()
        fields[name] = value
    return fields


class FakeDataverse:
    """
    Origin service plus object store.

    Tickets are single part unless the announced size reaches
    ``multipart_threshold``. PUTs whose body equals ``reject_content`` are
    answered with ``reject_status``.
    """

    def __init__(
        self,
        multipart_threshold: Optional[int] = None,
        reject_content: Optional[bytes] = None,
        reject_status: int = 403,
        register_status: str = "OK",
    ):
        self.multipart_threshold = multipart_threshold
        self.reject_content = reject_content
        self.reject_status = reject_status
        self.register_status = register_status

        self.ticket_requests: List[httpx.Request] = []
        self.put_requests: List[httpx.Request] = []
        self.registrations: List[httpx.Request] = []
        self.stored: Dict[str, bytes] = {}
        self._sid_by_path: Dict[str, str] = {}
        self._counter = itertools.count(1)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == STORAGE_HOST:
            return self._store(request)
        path = request.url.path
        if path.endswith("/uploadurls"):
            return self._ticket(request)
        if path.endswith("/addFiles") or path.endswith("/add"):
            return self._register(request)
        return httpx.Response(404, json={"status": "ERROR", "message": f"no route {path}"})

    def registered_payload(self, index: int = -1):
        return json.loads(form_fields(self.registrations[index])["jsonData"])

    def _ticket(self, request):
        self.ticket_requests.append(request)
        size = int(request.url.params["size"])
        n = next(self._counter)
        sid = f"s3://bucket:{n:04x}"

        if self.multipart_threshold is not None and size >= self.multipart_threshold:
            data = {
                "urls": {"2": f"https://{STORAGE_HOST}/bucket/{n}?part=2",
                         "1": f"https://{STORAGE_HOST}/bucket/{n}?part=1"},
                "partSize": self.multipart_threshold,
                "abort": f"/api/datasets/mpupload?uploadid={n}",
                "complete": f"/api/datasets/mpupload?uploadid={n}",
                "storageIdentifier": sid,
            }
        else:
            path = f"/bucket/{n}"
            self._sid_by_path[path] = sid
            data = {"url": f"https://{STORAGE_HOST}{path}?X-Amz-Signature=abc", "partSize": size,
                    "storageIdentifier": sid}
        return httpx.Response(200, json={"status": "OK", "data": data})

    def _store(self, request):
        self.put_requests.append(request)
        if self.reject_content is not None and request.content == self.reject_content:
            return httpx.Response(self.reject_status, text="AccessDenied")
        self.stored[self._sid_by_path[request.url.path]] = request.content
        return httpx.Response(200)

    def _register(self, request):
        self.registrations.append(request)
        if self.register_status != "OK":
            return httpx.Response(400, json={"status": "ERROR", "message": "Dataset is locked"})
        payload = json.loads(form_fields(request)["jsonData"])
        files = payload if isinstance(payload, list) else [payload]
        return httpx.Response(
            200,
            json={
                "status": "OK",
                "data": {"files": [{"label": f.get("fileName")} for f in files]},
            },
        )


@pytest.fixture
def fake_dataverse():
    return FakeDataverse()


@pytest.fixture
def make_file(tmp_path):
    def _make(name: str, content: bytes):
        path = tmp_path / name
        path.write_bytes(content)
        return path

    return _make
