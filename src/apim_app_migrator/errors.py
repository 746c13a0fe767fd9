"""
Error hierarchy for a migration run.

Every error carries the identifying context of the item it failed on
(application, archive, key manager, stage, HTTP status) so that a single log
line is enough to diagnose it. Fatal kinds are ``RegistrationError`` and
``TokenError``; the rest are recorded per item and the run moves on.
"""

from typing import Any, Dict, Optional

import requests


class MigratorError(Exception):
    """Base error with context and chained cause."""

    def __init__(self, message: str, cause: Optional[BaseException] = None, **context: Any):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.context: Dict[str, Any] = {k: v for k, v in context.items() if v is not None}
        if cause is not None and "status" not in self.context:
            status = http_status(cause)
            if status is not None:
                self.context["status"] = status

    def __str__(self) -> str:
        text = self.message
        if self.context:
            details = ", ".join(f"{k}={v}" for k, v in self.context.items())
            text = f"{text} [{details}]"
        if self.cause is not None:
            text = f"{text}: {self.cause}"
        return text


class ConfigError(MigratorError):
    pass


class RegistrationError(MigratorError):
    pass


class TokenError(MigratorError):
    pass


class ListError(MigratorError):
    pass


class ExportError(MigratorError):
    pass


class ArchiveError(MigratorError):
    pass


class ArchiveNameError(ArchiveError):
    pass


class AppImportError(MigratorError):
    """Importing one archive into the target environment failed."""


class MappingError(MigratorError):
    pass


class RevokeError(MigratorError):
    pass


def http_status(exc: BaseException) -> Optional[int]:
    """Status code of the response behind a requests error, if there is one."""
    if isinstance(exc, requests.RequestException) and exc.response is not None:
        return exc.response.status_code
    return None
