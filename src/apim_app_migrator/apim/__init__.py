"""API Manager REST interaction package."""

from .auth import AuthManager
from .client import ApimClient
from .exporter import Exporter
from .importer import Importer

__all__ = ["ApimClient", "AuthManager", "Exporter", "Importer"]
