import logging
from typing import Any, Dict, Optional, Tuple

import requests
import urllib3
from requests.auth import HTTPBasicAuth

from ..config import ApimConfig
from ..utils import pretty_json, redact

logger = logging.getLogger(__name__)


class ApimClient:
    """Thin authenticated-request wrapper around the API Manager REST APIs."""

    def __init__(self, apim: ApimConfig, log_response: bool = False,
                 session: Optional[requests.Session] = None) -> None:

        self.base_url = apim.hostname.rstrip("/")

        self.timeout = apim.timeout

        self.log_response = log_response

        self._session = session or requests.Session()

        self._session.verify = apim.verify_ssl

        self._session.headers.update({"User-Agent": "apim-app-migrator"})

        if not apim.verify_ssl:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
            logger.warning("TLS certificate verification is disabled for %s", self.base_url)

    def request(
        self,
        method: str,
        path: str,
        *,
        basic: Optional[Tuple[str, str]] = None,
        bearer: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
        **kwargs: Any,
    ) -> requests.Response:
        """
        Send one request and raise ``requests.HTTPError`` on a non-2xx status.

        ``basic`` is a (user, secret) pair for HTTP Basic auth, ``bearer`` an
        access token. Everything else is passed through to requests.
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        request_headers: Dict[str, str] = dict(headers or {})
        if bearer:
            request_headers["Authorization"] = f"Bearer {bearer}"
        if basic:
            kwargs["auth"] = HTTPBasicAuth(*basic)
        kwargs.setdefault("timeout", self.timeout)

        logger.debug("%s %s", method, url)
        resp = self._session.request(method, url, headers=request_headers, **kwargs)
        resp.raise_for_status()

        if self.log_response:
            self._log_body(resp)
        return resp

    def get(self, path: str, **kwargs: Any) -> requests.Response:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs: Any) -> requests.Response:
        return self.request("POST", path, **kwargs)

    @staticmethod
    def json(resp: requests.Response) -> Dict[str, Any]:
        """Decode a JSON object body; ``ValueError`` for anything else."""
        body = resp.json()
        if not isinstance(body, dict):
            raise ValueError(f"Unexpected response format: {body!r}")
        return body

    def _log_body(self, resp: requests.Response) -> None:
        content_type = resp.headers.get("Content-Type", "")
        if "json" in content_type:
            try:
                logger.debug(pretty_json(redact(resp.json())))
                return
            except ValueError:
                pass
        if content_type.startswith("text/"):
            logger.debug(resp.text)
        else:
            logger.debug("<%d bytes of %s>", len(resp.content), content_type or "binary data")

    def close(self) -> None:
        self._session.close()
