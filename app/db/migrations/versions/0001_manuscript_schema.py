"""manuscript, compendium and prompt history tables

Revision ID: 0001_manuscript_schema
Revises:
Create Date: 2026-10-02 00:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "0001_manuscript_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "projects",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("selected_prose_prompt_id", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("modified_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_projects_created_at", "projects", ["created_at"], unique=False)

    op.create_table(
        "chapters",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("project_id", sa.String(length=64), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("modified_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_chapters_project_id", "chapters", ["project_id"], unique=False)

    op.create_table(
        "scenes",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("project_id", sa.String(length=64), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("chapter_id", sa.String(length=64), sa.ForeignKey("chapters.id"), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.Column("summary", sa.Text(), nullable=False),
        sa.Column("summary_stale", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("pov_character", sa.String(length=255), nullable=False),
        sa.Column("pov", sa.String(length=64), nullable=False),
        sa.Column("tense", sa.String(length=64), nullable=False),
        sa.Column("word_count", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("modified_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_scenes_project_id", "scenes", ["project_id"], unique=False)
    op.create_index("ix_scenes_chapter_id", "scenes", ["chapter_id"], unique=False)

    op.create_table(
        "scene_contents",
        sa.Column("scene_id", sa.String(length=64), sa.ForeignKey("scenes.id"), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("word_count", sa.Integer(), nullable=False),
        sa.Column("modified_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("scene_id"),
    )

    op.create_table(
        "compendium_entries",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("project_id", sa.String(length=64), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("category", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("summary", sa.Text(), nullable=False),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("modified_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_compendium_entries_project_id", "compendium_entries", ["project_id"], unique=False)
    op.create_index("ix_compendium_entries_category", "compendium_entries", ["category"], unique=False)
    op.create_index(
        "ix_compendium_entries_project_category",
        "compendium_entries",
        ["project_id", "category"],
        unique=False,
    )

    op.create_table(
        "prompt_templates",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("project_id", sa.String(length=64), sa.ForeignKey("projects.id"), nullable=False),
        sa.Column("category", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("system_content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("modified_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_prompt_templates_project_id", "prompt_templates", ["project_id"], unique=False)
    op.create_index("ix_prompt_templates_category", "prompt_templates", ["category"], unique=False)

    op.create_table(
        "prompt_history",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("project_id", sa.String(length=64), nullable=True),
        sa.Column("scene_id", sa.String(length=64), nullable=True),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
        sa.Column("beat", sa.Text(), nullable=False),
        sa.Column("prompt", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_prompt_history_project_id", "prompt_history", ["project_id"], unique=False)
    op.create_index("ix_prompt_history_scene_id", "prompt_history", ["scene_id"], unique=False)
    op.create_index(
        "ix_prompt_history_project_timestamp",
        "prompt_history",
        ["project_id", "timestamp"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_prompt_history_project_timestamp", table_name="prompt_history")
    op.drop_index("ix_prompt_history_scene_id", table_name="prompt_history")
    op.drop_index("ix_prompt_history_project_id", table_name="prompt_history")
    op.drop_table("prompt_history")
    op.drop_index("ix_prompt_templates_category", table_name="prompt_templates")
    op.drop_index("ix_prompt_templates_project_id", table_name="prompt_templates")
    op.drop_table("prompt_templates")
    op.drop_index("ix_compendium_entries_project_category", table_name="compendium_entries")
    op.drop_index("ix_compendium_entries_category", table_name="compendium_entries")
    op.drop_index("ix_compendium_entries_project_id", table_name="compendium_entries")
    op.drop_table("compendium_entries")
    op.drop_table("scene_contents")
    op.drop_index("ix_scenes_chapter_id", table_name="scenes")
    op.drop_index("ix_scenes_project_id", table_name="scenes")
    op.drop_table("scenes")
    op.drop_index("ix_chapters_project_id", table_name="chapters")
    op.drop_table("chapters")
    op.drop_index("ix_projects_created_at", table_name="projects")
    op.drop_table("projects")
