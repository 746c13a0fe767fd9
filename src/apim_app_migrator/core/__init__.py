"""
Core package: orchestration of a migration run.
This package exposes the Coordinator class which ties together
the auth manager, exporter and importer to perform a migration.
"""

from .coordinator import Coordinator, RunState

__all__ = [
    "Coordinator",
    "RunState",
]
