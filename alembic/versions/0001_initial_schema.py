"""Initial schema.

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-12

Creates:
- projects: pipeline position, failure context, running cost, CAS version
- scripts / scenes: versioned segment inputs
- assets: generated artifacts with one in-flight job per (scene, type) slot
- cost_entries: append-only cost ledger
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from adstudio.storage.models import GUID

revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.Numeric(10, 4)
IN_FLIGHT = sa.text("status IN ('generating', 'editing')")


def upgrade() -> None:
    op.create_table(
        "projects",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("failed_at_status", sa.String(32), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("cost_usd", MONEY, nullable=False, server_default="0"),
        sa.Column("cancel_requested_at", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )

    op.create_table(
        "scripts",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("project_id", GUID(), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_scripts_project_id", "scripts", ["project_id"])

    op.create_table(
        "scenes",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("script_id", GUID(), sa.ForeignKey("scripts.id"), nullable=False),
        sa.Column("segment_index", sa.Integer(), nullable=False),
        sa.Column("section", sa.String(16), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("script_text", sa.Text(), nullable=True),
        sa.Column("shot_scripts", sa.JSON(), nullable=True),
        sa.Column("energy_arc", sa.JSON(), nullable=True),
        sa.Column("camera_spec", sa.JSON(), nullable=True),
        sa.Column("video_prompt_override", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index(
        "ux_scenes_segment_version", "scenes", ["script_id", "segment_index", "version"], unique=True
    )

    op.create_table(
        "assets",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("project_id", GUID(), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("scene_id", GUID(), sa.ForeignKey("scenes.id"), nullable=True),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("provider", sa.String(64), nullable=True),
        sa.Column("provider_task_id", sa.String(128), nullable=True),
        sa.Column("url", sa.String(1024), nullable=True),
        sa.Column("cost_usd", MONEY, nullable=False, server_default="0"),
        sa.Column("grade", sa.String(16), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("generation_inputs", sa.JSON(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_assets_project_type", "assets", ["project_id", "type"])
    op.create_index("ix_assets_scene_type", "assets", ["scene_id", "type"])
    op.create_index("ix_assets_status_submitted_at", "assets", ["status", "submitted_at"])
    op.create_index("ix_assets_provider_task_id", "assets", ["provider_task_id"])
    op.create_index(
        "ux_assets_slot_in_flight",
        "assets",
        ["project_id", "scene_id", "type"],
        unique=True,
        sqlite_where=IN_FLIGHT,
        postgresql_where=IN_FLIGHT,
    )

    op.create_table(
        "cost_entries",
        sa.Column("id", GUID(), primary_key=True),
        sa.Column("project_id", GUID(), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("asset_id", GUID(), sa.ForeignKey("assets.id", ondelete="SET NULL"), nullable=True),
        sa.Column("amount_usd", MONEY, nullable=False),
        sa.Column("reason", sa.String(128), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_cost_entries_project_created", "cost_entries", ["project_id", "created_at"])


def downgrade() -> None:
    op.drop_table("cost_entries")
    op.drop_table("assets")
    op.drop_table("scenes")
    op.drop_table("scripts")
    op.drop_table("projects")
