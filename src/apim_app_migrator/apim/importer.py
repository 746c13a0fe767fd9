import logging
from pathlib import Path

import requests
from tqdm import tqdm

from ..archive import ArchiveName, discover_archives, read_metadata, read_raw_bytes
from ..config import MigratorConfig
from ..errors import AppImportError, ArchiveError, ArchiveNameError, MappingError
from ..models import AccessToken, ApplicationMetadata, KeyMapping, RunSummary, Stage
from ..utils import Throttle, mask, pretty_json, redact
from .client import ApimClient

logger = logging.getLogger(__name__)

IMPORT_PATH = "api/am/admin/v1/import/applications"
MAP_KEYS_PATH = "api/am/store/v1/applications/{application_id}/map-keys"


def _flag(value: bool) -> str:
    return str(value).lower()


class Importer:
    """
    Replays archived applications into the target environment and maps the
    archived OAuth apps of every configured key manager back onto them.
    """

    def __init__(self, client: ApimClient, config: MigratorConfig, throttle: Throttle) -> None:
        self._client = client
        self._config = config
        self._throttle = throttle
        self.archive_dir: Path = config.paths.archive_dir

    # ---------- import ----------

    def import_one(self, token: AccessToken, archive_path: Path, archive_name: ArchiveName) -> str:
        """Upload one archive; returns the application id assigned by the target."""
        logger.info("importing application %s", archive_name)
        payload = read_raw_bytes(archive_path)
        opts = self._config.import_
        params = {
            "preserveOwner": _flag(opts.preserve_owner),
            "skipSubscriptions": _flag(opts.skip_subscriptions),
            "appOwner": archive_name.owner,
            "skipApplicationKeys": _flag(opts.skip_application_keys),
            "update": _flag(opts.update),
        }
        files = {"file": (archive_path.name, payload, "application/zip")}
        try:
            resp = self._client.post(IMPORT_PATH, params=params, files=files,
                                     bearer=token.access_token)
            application_id = self._client.json(resp).get("applicationId")
        except requests.RequestException as e:
            raise AppImportError("Import request failed", cause=e,
                                 archive=archive_path.name, owner=archive_name.owner) from e
        except ValueError as e:
            raise AppImportError("Unexpected import response", cause=e,
                                 archive=archive_path.name) from e
        if not application_id:
            raise AppImportError("Import response carries no applicationId",
                                 archive=archive_path.name)

        logger.info("application imported %s -> %s", archive_name, application_id)
        return str(application_id)

    # ---------- key mapping ----------

    def map_keys(self, metadata: ApplicationMetadata, application_id: str,
                 key_manager: str, stage: Stage, token: AccessToken) -> None:
        """Bind the archived OAuth app of one key manager and stage to the application."""
        context = {"application_id": application_id, "key_manager": key_manager,
                   "stage": stage.value}
        binding = metadata.binding(stage, key_manager)
        if binding is None:
            raise MappingError("No archived OAuth app for this key manager", **context)

        logger.info("mapping oauth keys to application %s (%s, %s)",
                    application_id, key_manager, stage.value)
        self._throttle.wait()

        if not binding.client_id:
            raise MappingError("Archived OAuth app has no clientId", **context)
        try:
            secret = binding.decoded_secret()
        except ValueError as e:
            raise MappingError("Cannot decode archived client secret", cause=e, **context) from e

        mapping = KeyMapping(
            application_id=application_id,
            key_manager=key_manager,
            key_type=stage,
            consumer_key=binding.client_id,
            consumer_secret=secret,
        )
        if self._config.log.debug:
            logger.debug("%s -> %s:%s | %s | %s", application_id, mapping.consumer_key,
                         mask(secret), key_manager, stage.value)

        try:
            self._client.post(
                MAP_KEYS_PATH.format(application_id=application_id),
                json=mapping.to_payload(),
                bearer=token.access_token,
            )
        except requests.RequestException as e:
            raise MappingError("Map keys request failed", cause=e, **context) from e

        logger.info("keys mapped successfully -> %s (%s, %s)",
                    application_id, key_manager, stage.value)

    def remap_keys(self, metadata: ApplicationMetadata, application_id: str,
                   token: AccessToken, summary: RunSummary) -> None:
        for key_manager in self._config.keymanagers:
            for stage in Stage:
                if metadata.binding(stage, key_manager) is None:
                    continue
                identifier = f"{application_id}/{key_manager}/{stage.value}"
                try:
                    self.map_keys(metadata, application_id, key_manager, stage, token)
                except MappingError as e:
                    logger.error("%s", e)
                    summary.record("mapping", identifier, error=e)
                    continue
                summary.record("mapping", identifier)

    # ---------- whole archive store ----------

    def import_archive(self, token: AccessToken, archive_path: Path,
                       archive_name: ArchiveName, summary: RunSummary) -> None:
        """Parse, import and remap one archive."""
        metadata = read_metadata(archive_path, archive_name.name)
        if self._config.log.debug:
            logger.debug("metadata of %s.json\n%s", archive_name.name,
                         pretty_json(redact(metadata.raw)))

        application_id = self.import_one(token, archive_path, archive_name)
        summary.record("import", str(archive_name), detail=application_id)
        self.remap_keys(metadata, application_id, token, summary)

    def import_all(self, token: AccessToken, summary: RunSummary) -> None:
        logger.info("starting to import applications from %s", self.archive_dir)
        archives = discover_archives(self.archive_dir)
        logger.info("application zips -> [%s]", ", ".join(p.name for p, _ in archives))

        for archive_path, decoded in tqdm(archives, desc="import", unit="app", disable=None):
            if isinstance(decoded, ArchiveNameError):
                logger.error("%s", decoded)
                summary.record("import", archive_path.name, error=decoded)
                continue
            try:
                self.import_archive(token, archive_path, decoded, summary)
            except (ArchiveError, AppImportError) as e:
                logger.error("%s", e)
                summary.record("import", str(decoded), error=e)
