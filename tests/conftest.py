"""
Shared fixtures: a validated configuration, and a fake requests session that
records every call and answers from a per-route queue of real
``requests.Response`` objects.
"""

import json
import zipfile
from collections import defaultdict, deque
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional, Tuple, Union

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from apim_app_migrator.apim.client import ApimClient
from apim_app_migrator.config import MigratorConfig, parse_config
from apim_app_migrator.models import AccessToken, ClientRegistration
from apim_app_migrator.utils import Throttle

HOST = "https://apim.test"


def make_response(status: int = 200, json_body: Any = None, content: Optional[bytes] = None,
                  content_type: Optional[str] = None) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp.reason = "OK" if status < 400 else "Error"
    resp.encoding = "utf-8"
    resp.url = HOST
    if json_body is not None:
        resp._content = json.dumps(json_body).encode("utf-8")
        resp.headers["Content-Type"] = content_type or "application/json"
    else:
        resp._content = content or b""
        resp.headers["Content-Type"] = content_type or "application/octet-stream"
    return resp


Reply = Union[requests.Response, Exception]


class FakeSession:
    """Stand-in for requests.Session keyed on (method, path)."""

    def __init__(self) -> None:
        self.headers: CaseInsensitiveDict = CaseInsensitiveDict()
        self.verify: Any = True
        self.calls: List[Dict[str, Any]] = []
        self._routes: Dict[Tuple[str, str], Deque[Reply]] = defaultdict(deque)
        self._sticky: Dict[Tuple[str, str], Reply] = {}
        self.closed = False

    def add(self, method: str, path: str, *replies: Reply) -> None:
        """Queue replies for a route; the last one keeps answering once the queue drains."""
        key = (method.upper(), path.lstrip("/"))
        self._routes[key].extend(replies)

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        path = url[len(HOST):].lstrip("/")
        self.calls.append({"method": method.upper(), "path": path, **kwargs})
        key = (method.upper(), path)
        queue = self._routes.get(key)
        if queue:
            reply = queue.popleft()
            self._sticky[key] = reply
        elif key in self._sticky:
            reply = self._sticky[key]
        else:
            reply = make_response(404, {"message": f"no route for {method} {path}"})
        if isinstance(reply, Exception):
            raise reply
        return reply

    def paths(self, method: Optional[str] = None) -> List[str]:
        return [c["path"] for c in self.calls if method is None or c["method"] == method]

    def calls_to(self, path: str) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["path"] == path]

    def close(self) -> None:
        self.closed = True


def raw_config(tmp_path: Path, **overrides: Any) -> Dict[str, Any]:
    raw: Dict[str, Any] = {
        "username": "admin",
        "password": "admin-pass",
        "scopes": "apim:admin apim:app_import_export",
        "keymanagers": ["km1", "km2"],
        "apim": {"hostname": HOST + "/", "verify_ssl": True, "throttle_seconds": 0},
        "dynamic_client_registration": {
            "callback_url": "www.example.org",
            "client_name": "rest_api_admin",
            "owner": "admin",
            "grant_types": "password refresh_token",
            "saas_app": True,
        },
        "export": {"withKeys": True},
        "import": {
            "preserveOwner": True,
            "skipSubscriptions": False,
            "skipApplicationKeys": False,
            "update": True,
        },
        "log": {"response": False, "debug": False},
        "paths": {"archive_dir": str(tmp_path / "exported"), "log_dir": str(tmp_path / "logs")},
    }
    raw.update(overrides)
    return raw


def write_app_archive(archive_dir: Path, owner: str, name: str,
                      metadata: Optional[Dict[str, Any]] = None) -> Path:
    """Build an archive laid out like a real application export."""
    archive_dir.mkdir(parents=True, exist_ok=True)
    path = archive_dir / f"{owner}_{name}.zip"
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr(f"{name}/{name}.json", json.dumps(metadata if metadata is not None else {}))
        zf.writestr(f"{name}/subscriptions.json", "[]")
    return path


@pytest.fixture
def config(tmp_path: Path) -> MigratorConfig:
    return parse_config(raw_config(tmp_path))


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def client(config: MigratorConfig, session: FakeSession) -> ApimClient:
    return ApimClient(config.apim, session=session)


@pytest.fixture
def throttle() -> Throttle:
    return Throttle(0)


@pytest.fixture
def token() -> AccessToken:
    return AccessToken(access_token="tok-123", expires_in=3600)


@pytest.fixture
def registration() -> ClientRegistration:
    return ClientRegistration(client_id="dcr-id", client_secret="dcr-secret")
