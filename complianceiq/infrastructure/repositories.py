"""
Repository classes for the assessment engine.

Each aggregate has its own module; this module re-exports them so callers can
import every store from one place:

    from complianceiq.infrastructure.repositories import ResponseRepo, ...
"""

from __future__ import annotations

from .repositories_assessment import AssessmentRepo  # re-export
from .repositories_catalog import SqlCatalogStore  # re-export
from .repositories_collaboration import CollaborationRepo  # re-export
from .repositories_response import ResponseRepo  # re-export

# Tell linters/formatters these imports are intentional (exported API)
__all__ = [
    "AssessmentRepo",
    "CollaborationRepo",
    "ResponseRepo",
    "SqlCatalogStore",
]
