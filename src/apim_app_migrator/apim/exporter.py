import logging
from pathlib import Path
from typing import Any, Dict, List

import requests
from tqdm import tqdm

from ..archive import encode_archive_name, write_archive
from ..config import MigratorConfig
from ..errors import ArchiveError, ExportError, ListError
from ..models import AccessToken, ApplicationSummary, RunSummary
from ..utils import Throttle
from .client import ApimClient

logger = logging.getLogger(__name__)

APPLICATIONS_PATH = "api/am/admin/v1/applications"
EXPORT_PATH = "api/am/admin/v1/export/applications"


class Exporter:
    """Lists the applications of the source environment and archives each one."""

    def __init__(self, client: ApimClient, config: MigratorConfig, throttle: Throttle) -> None:
        self._client = client
        self._config = config
        self._throttle = throttle
        self.archive_dir: Path = config.paths.archive_dir

    def list_applications(self, token: AccessToken, limit: int = 100) -> List[ApplicationSummary]:
        """Fetch all applications, paging until completion."""
        logger.info("listing all applications")
        applications: List[ApplicationSummary] = []
        offset = 0

        while True:
            params: Dict[str, Any] = {"limit": limit, "offset": offset}
            try:
                resp = self._client.get(APPLICATIONS_PATH, params=params,
                                        bearer=token.access_token)
                body = self._client.json(resp)
                batch = body.get("list")
                if not isinstance(batch, list):
                    raise ValueError(f"Unexpected applications format: {body!r}")
                applications.extend(ApplicationSummary.from_dict(a) for a in batch)
            except requests.RequestException as e:
                raise ListError("Listing applications failed", cause=e, offset=offset) from e
            except (ValueError, KeyError) as e:
                raise ListError("Unexpected application list response", cause=e,
                                offset=offset) from e

            total = (body.get("pagination") or {}).get("total")
            if len(batch) < limit or (total is not None and len(applications) >= total):
                break
            offset += limit

        logger.info("found %d application(s)", len(applications))
        return applications

    def export_one(self, token: AccessToken, name: str, owner: str) -> Path:
        """Export one application into ``<archive_dir>/{owner}_{name}.zip``."""
        try:
            encode_archive_name(owner, name)
        except ArchiveError as e:
            raise ExportError("Application cannot be archived", cause=e,
                              name=name, owner=owner) from e

        logger.info("exporting application %s:%s", owner, name)
        self._throttle.wait()

        params = {
            "appName": name,
            "appOwner": owner,
            "withKeys": str(self._config.export.with_keys).lower(),
        }
        try:
            resp = self._client.get(EXPORT_PATH, params=params, bearer=token.access_token)
        except requests.RequestException as e:
            raise ExportError("Export request failed", cause=e, name=name, owner=owner) from e

        try:
            path = write_archive(self.archive_dir, owner, name, resp.content)
        except ArchiveError as e:
            raise ExportError("Cannot store exported archive", cause=e,
                              name=name, owner=owner) from e

        logger.info("application exported %s:%s -> %s", owner, name, path)
        return path

    def export_all(self, token: AccessToken, summary: RunSummary) -> None:
        """Export every listed application; one failure never stops the rest."""
        try:
            applications = self.list_applications(token)
        except ListError as e:
            logger.error("%s", e)
            summary.record("list", "applications", error=e)
            return

        for app in tqdm(applications, desc="export", unit="app", disable=None):
            identifier = f"{app.owner}:{app.name}"
            try:
                path = self.export_one(token, app.name, app.owner)
            except ExportError as e:
                logger.error("%s", e)
                summary.record("export", identifier, error=e)
                continue
            summary.record("export", identifier, detail=str(path))
