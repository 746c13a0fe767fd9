import logging
from enum import Enum
from typing import Optional

from ..apim.auth import AuthManager
from ..apim.client import ApimClient
from ..apim.exporter import Exporter
from ..apim.importer import Importer
from ..config import MigratorConfig
from ..models import AccessToken, ClientRegistration, RunSummary
from ..utils import Throttle

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    START = "start"
    REGISTERED = "registered"
    TOKENED = "tokened"
    EXPORTING = "exporting"
    IMPORTING = "importing"
    REVOKED = "revoked"
    END = "end"


class Coordinator:
    """
    Drives one run: register -> token -> export and/or import -> revoke.

    Registration and token errors propagate to the caller. Everything after
    that is recorded per item in the returned ``RunSummary``, and the token
    is revoked exactly once whatever happened in between.
    """

    def __init__(self,
                 config: MigratorConfig,
                 client: Optional[ApimClient] = None,
                 throttle: Optional[Throttle] = None) -> None:
        self._config = config
        self._client = client
        self._owns_client = client is None
        self._throttle = throttle or Throttle(config.apim.throttle_seconds)
        self.state = RunState.START
        self.summary = RunSummary()

    def _components(self):
        if self._client is None:
            self._client = ApimClient(self._config.apim, log_response=self._config.log.response)
        return (
            AuthManager(self._client, self._config),
            Exporter(self._client, self._config, self._throttle),
            Importer(self._client, self._config, self._throttle),
        )

    def _close(self) -> None:
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    def run(self, export_apps: bool = False, import_apps: bool = False) -> RunSummary:
        if not (export_apps or import_apps):
            logger.warning("no flags specified. use --help to list example commands")
            self.state = RunState.END
            return self.summary

        logger.info("-- starting apim-app-migrator --")
        auth, exporter, importer = self._components()

        try:
            registration: ClientRegistration = auth.register()
            self.state = RunState.REGISTERED

            token: AccessToken = auth.issue_token(registration)
            self.state = RunState.TOKENED

            try:
                if export_apps:
                    self.state = RunState.EXPORTING
                    exporter.export_all(token, self.summary)

                if import_apps:
                    self.state = RunState.IMPORTING
                    importer.import_all(token, self.summary)
            finally:
                auth.revoke(token, registration)
                self.state = RunState.REVOKED
        finally:
            self._close()

        self.summary.log(logger)
        self.state = RunState.END
        return self.summary
