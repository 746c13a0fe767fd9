"""Data models shared by the exporter, importer and coordinator."""

import base64
import binascii
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Stage(str, Enum):
    """Deployment stage of an OAuth key pair."""
    PRODUCTION = "PRODUCTION"
    SANDBOX = "SANDBOX"


@dataclass(frozen=True)
class ClientRegistration:
    """Dynamically registered OAuth client identifying this tool."""
    client_id: str
    client_secret: str


@dataclass(frozen=True)
class AccessToken:
    access_token: str
    token_type: str = "Bearer"
    expires_in: Optional[int] = None
    scope: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccessToken":
        return cls(
            access_token=str(data["access_token"]),
            token_type=data.get("token_type") or "Bearer",
            expires_in=data.get("expires_in"),
            scope=data.get("scope"),
        )


@dataclass
class ApplicationSummary:
    """One application as returned by the admin list call."""
    name: str
    owner: str
    application_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ApplicationSummary":
        return cls(
            name=str(data["name"]),
            owner=str(data["owner"]),
            application_id=data.get("applicationId"),
        )


@dataclass
class KeyBinding:
    """OAuth app of one key manager for one stage, secret kept base64 encoded."""
    client_id: Optional[str]
    client_secret: Optional[str]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KeyBinding":
        return cls(client_id=data.get("clientId"), client_secret=data.get("clientSecret"))

    def decoded_secret(self) -> str:
        if not self.client_secret:
            raise ValueError("binding has no clientSecret")
        try:
            return base64.b64decode("".join(self.client_secret.split()), validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise ValueError(f"clientSecret is not valid base64: {e}") from e


@dataclass
class ApplicationMetadata:
    """
    The ``{name}/{name}.json`` document of an application archive.

    ``key_manager_wise_oauth_app`` is keyed by stage, then by key manager.
    Missing stages or key managers simply mean there is nothing to map.
    """
    key_manager_wise_oauth_app: Dict[str, Dict[str, KeyBinding]] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ApplicationMetadata":
        bindings: Dict[str, Dict[str, KeyBinding]] = {}
        section = data.get("keyManagerWiseOAuthApp") or {}
        if isinstance(section, dict):
            for stage, per_km in section.items():
                if not isinstance(per_km, dict):
                    continue
                bindings[stage] = {
                    km: KeyBinding.from_dict(value)
                    for km, value in per_km.items()
                    if isinstance(value, dict)
                }
        return cls(key_manager_wise_oauth_app=bindings, raw=data)

    def binding(self, stage: Stage, key_manager: str) -> Optional[KeyBinding]:
        return self.key_manager_wise_oauth_app.get(stage.value, {}).get(key_manager)


@dataclass
class KeyMapping:
    """Request body binding an existing OAuth app to an imported application."""
    application_id: str
    key_manager: str
    key_type: Stage
    consumer_key: str
    consumer_secret: str

    def to_payload(self) -> Dict[str, str]:
        return {
            "consumerKey": self.consumer_key,
            "consumerSecret": self.consumer_secret,
            "keyManager": self.key_manager,
            "keyType": self.key_type.value,
        }


@dataclass
class ItemResult:
    """Outcome of one export, import or key mapping."""
    kind: str
    identifier: str
    success: bool
    error: Optional[str] = None
    detail: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "identifier": self.identifier,
            "success": self.success,
            "error": self.error,
            "detail": self.detail,
        }


@dataclass
class RunSummary:
    """Per-item successes and failures of one run."""
    results: List[ItemResult] = field(default_factory=list)

    def record(self, kind: str, identifier: str, *, error: Optional[BaseException] = None,
               detail: Optional[str] = None) -> ItemResult:
        item = ItemResult(
            kind=kind,
            identifier=identifier,
            success=error is None,
            error=str(error) if error is not None else None,
            detail=detail,
        )
        self.results.append(item)
        return item

    def count(self, kind: str, success: bool) -> int:
        return sum(1 for r in self.results if r.kind == kind and r.success is success)

    @property
    def exported(self) -> int:
        return self.count("export", True)

    @property
    def export_failed(self) -> int:
        return self.count("export", False) + self.count("list", False)

    @property
    def imported(self) -> int:
        return self.count("import", True)

    @property
    def import_failed(self) -> int:
        return self.count("import", False)

    @property
    def mapped(self) -> int:
        return self.count("mapping", True)

    @property
    def mapping_failed(self) -> int:
        return self.count("mapping", False)

    @property
    def failures(self) -> List[ItemResult]:
        return [r for r in self.results if not r.success]

    @property
    def has_failures(self) -> bool:
        return any(not r.success for r in self.results)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "exported": self.exported,
            "export_failed": self.export_failed,
            "imported": self.imported,
            "import_failed": self.import_failed,
            "mapped": self.mapped,
            "mapping_failed": self.mapping_failed,
            "results": [r.to_dict() for r in self.results],
        }

    def log(self, logger: logging.Logger) -> None:
        logger.info(
            "summary: exported %d (failed %d), imported %d (failed %d), keys mapped %d (failed %d)",
            self.exported, self.export_failed,
            self.imported, self.import_failed,
            self.mapped, self.mapping_failed,
        )
        for item in self.failures:
            logger.error("failed %s %s: %s", item.kind, item.identifier, item.error)
