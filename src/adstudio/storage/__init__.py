"""AdStudio storage module - Database models and repositories."""

from adstudio.storage.database import get_engine, get_session, get_session_factory, init_db
from adstudio.storage.models import (
    Asset,
    AssetStatus,
    AssetType,
    Base,
    CostEntry,
    Project,
    Scene,
    SceneSection,
    Script,
)
from adstudio.storage.repositories import (
    AssetRepository,
    CostEntryRepository,
    ProjectRepository,
    ScriptRepository,
)

__all__ = [
    "Base",
    "Project",
    "Script",
    "Scene",
    "SceneSection",
    "Asset",
    "AssetType",
    "AssetStatus",
    "CostEntry",
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_db",
    "ProjectRepository",
    "ScriptRepository",
    "AssetRepository",
    "CostEntryRepository",
]
