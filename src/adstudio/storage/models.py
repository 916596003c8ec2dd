"""SQLAlchemy database models for AdStudio."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
import uuid
from typing import Any, Dict
from uuid import UUID

from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    Numeric,
    String,
    Text,
    JSON,
    ForeignKey,
    Index,
    TypeDecorator,
    text,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import declarative_base, relationship


def _utc_now() -> datetime:
    """Return a tz-naive UTC timestamp for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


class GUID(TypeDecorator[UUID]):
    """Platform-independent GUID type.

    Uses PostgreSQL's UUID type when available, otherwise stores as String(36).
    This enables unit tests with SQLite while using native UUIDs in production PostgreSQL.
    """

    impl = String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect: Any) -> Any:
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PG_UUID(as_uuid=True))
        else:
            return dialect.type_descriptor(String(36))

    def process_bind_param(self, value: Any, dialect: Any) -> Any:
        if value is None:
            return value
        elif dialect.name == "postgresql":
            return value if isinstance(value, uuid.UUID) else uuid.UUID(value)
        else:
            return str(value) if isinstance(value, uuid.UUID) else value

    def process_result_value(self, value: Any, dialect: Any) -> UUID | None:
        if value is None:
            return value
        if isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(value)


Base = declarative_base()

# Fixed-point money: four decimal places, matching provider unit prices.
Money = Numeric(10, 4, asdecimal=True)

__all__ = [
    "Base",
    "GUID",
    "Money",
    "Project",
    "Script",
    "Scene",
    "SceneSection",
    "Asset",
    "AssetType",
    "AssetStatus",
    "CostEntry",
]


class Project(Base):
    """One production run of an ad through the pipeline."""

    __tablename__ = "projects"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    name = Column(String(200), nullable=False, default="Untitled")
    status = Column(String(32), nullable=False, default="created")
    failed_at_status = Column(String(32), nullable=True)
    error_message = Column(Text, nullable=True)
    cost_usd = Column(Money, nullable=False, default=Decimal("0"))
    cancel_requested_at = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=_utc_now)
    updated_at = Column(DateTime, default=_utc_now, onupdate=_utc_now)

    scripts = relationship("Script", back_populates="project")
    assets = relationship("Asset", back_populates="project")

    def to_dict(self) -> Dict[str, Any]:
        """Convert project to dictionary."""
        return {
            "id": str(self.id),
            "name": self.name,
            "status": self.status,
            "failed_at_status": self.failed_at_status,
            "error_message": self.error_message,
            "cost_usd": str(self.cost_usd if self.cost_usd is not None else Decimal("0")),
            "cancel_requested_at": _iso(self.cancel_requested_at),
            "version": self.version,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<Project id={self.id} status={self.status} v{self.version}>"


class Script(Base):
    __tablename__ = "scripts"

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    project_id = Column(GUID(), ForeignKey("projects.id"), nullable=False, index=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=_utc_now)

    project = relationship("Project", back_populates="scripts")
    scenes = relationship("Scene", back_populates="script")

    def __repr__(self) -> str:
        return f"<Script id={self.id} project={self.project_id} v{self.version}>"


class SceneSection(str, Enum):
    """Narrative section a segment belongs to."""

    HOOK = "hook"
    PROBLEM = "problem"
    SOLUTION = "solution"
    CTA = "cta"


class Scene(Base):
    """One video segment of a script.

    Scenes are versioned: an edit inserts a new row with ``version + 1`` and the
    current scene for a segment is the one with the highest version.
    """

    __tablename__ = "scenes"
    __table_args__ = (
        Index("ux_scenes_segment_version", "script_id", "segment_index", "version", unique=True),
    )

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    script_id = Column(GUID(), ForeignKey("scripts.id"), nullable=False)
    segment_index = Column(Integer, nullable=False)
    section = Column(String(16), nullable=False, default=SceneSection.HOOK.value)
    version = Column(Integer, nullable=False, default=1)
    script_text = Column(Text, nullable=True)
    shot_scripts = Column(JSON, default=list)
    energy_arc = Column(JSON, nullable=True)
    camera_spec = Column(JSON, nullable=True)
    video_prompt_override = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=_utc_now)

    script = relationship("Script", back_populates="scenes")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "script_id": str(self.script_id),
            "segment_index": self.segment_index,
            "section": self.section,
            "version": self.version,
            "script_text": self.script_text,
            "shot_scripts": self.shot_scripts or [],
            "energy_arc": self.energy_arc,
            "camera_spec": self.camera_spec,
            "video_prompt_override": self.video_prompt_override,
        }

    def __repr__(self) -> str:
        return f"<Scene id={self.id} segment={self.segment_index} v{self.version}>"


class AssetType(str, Enum):
    """Kind of generated artifact."""

    KEYFRAME_START = "keyframe_start"
    KEYFRAME_END = "keyframe_end"
    VIDEO = "video"
    AUDIO = "audio"
    BROLL = "broll"


KEYFRAME_TYPES = frozenset({AssetType.KEYFRAME_START.value, AssetType.KEYFRAME_END.value})


class AssetStatus(str, Enum):
    """Lifecycle status of a generated asset."""

    GENERATING = "generating"
    EDITING = "editing"
    COMPLETED = "completed"
    FAILED = "failed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


IN_FLIGHT_STATUSES = frozenset({AssetStatus.GENERATING.value, AssetStatus.EDITING.value})


class Asset(Base):
    """One generated artifact tied to a project and optionally a scene."""

    __tablename__ = "assets"
    __table_args__ = (
        Index("ix_assets_project_type", "project_id", "type"),
        Index("ix_assets_scene_type", "scene_id", "type"),
        Index("ix_assets_status_submitted_at", "status", "submitted_at"),
        # At most one in-flight job per (scene, type) slot, enforced across processes.
        Index(
            "ux_assets_slot_in_flight",
            "project_id",
            "scene_id",
            "type",
            unique=True,
            sqlite_where=text("status IN ('generating', 'editing')"),
            postgresql_where=text("status IN ('generating', 'editing')"),
        ),
    )

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    project_id = Column(GUID(), ForeignKey("projects.id"), nullable=False)
    scene_id = Column(GUID(), ForeignKey("scenes.id"), nullable=True)
    type = Column(String(32), nullable=False)
    status = Column(String(32), nullable=False, default=AssetStatus.GENERATING.value)
    provider = Column(String(64), nullable=True)
    provider_task_id = Column(String(128), nullable=True, index=True)
    url = Column(String(1024), nullable=True)
    cost_usd = Column(Money, nullable=False, default=Decimal("0"))
    grade = Column(String(16), nullable=True)
    asset_metadata = Column("metadata", JSON, default=dict)
    generation_inputs = Column(JSON, default=dict)
    submitted_at = Column(DateTime, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=_utc_now)
    updated_at = Column(DateTime, default=_utc_now, onupdate=_utc_now)

    project = relationship("Project", back_populates="assets")
    scene = relationship("Scene")

    @property
    def is_in_flight(self) -> bool:
        return self.status in IN_FLIGHT_STATUSES

    @property
    def is_keyframe(self) -> bool:
        return self.type in KEYFRAME_TYPES

    def to_dict(self) -> Dict[str, Any]:
        """Convert asset to dictionary."""
        return {
            "id": str(self.id),
            "project_id": str(self.project_id),
            "scene_id": str(self.scene_id) if self.scene_id else None,
            "type": self.type,
            "status": self.status,
            "provider": self.provider,
            "provider_task_id": self.provider_task_id,
            "url": self.url,
            "cost_usd": str(self.cost_usd if self.cost_usd is not None else Decimal("0")),
            "grade": self.grade,
            "metadata": self.asset_metadata or {},
            "submitted_at": _iso(self.submitted_at),
            "version": self.version,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<Asset id={self.id} type={self.type} status={self.status} v{self.version}>"


class CostEntry(Base):
    """Immutable ledger line for one billable operation."""

    __tablename__ = "cost_entries"
    __table_args__ = (Index("ix_cost_entries_project_created", "project_id", "created_at"),)

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    project_id = Column(GUID(), ForeignKey("projects.id"), nullable=False)
    asset_id = Column(GUID(), ForeignKey("assets.id", ondelete="SET NULL"), nullable=True)
    amount_usd = Column(Money, nullable=False)
    reason = Column(String(128), nullable=False)
    created_at = Column(DateTime, default=_utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": str(self.id),
            "project_id": str(self.project_id),
            "asset_id": str(self.asset_id) if self.asset_id else None,
            "amount_usd": str(self.amount_usd),
            "reason": self.reason,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<CostEntry project={self.project_id} amount={self.amount_usd} reason={self.reason}>"
