"""initial schema: users, audit, breakroom, lyrics, gallery, shortcuts, test results, blog

Revision ID: 0a1b2c3d4e5f
Revises:
Create Date: 2026-10-19

Tables that already exist (databases bootstrapped before migrations) are skipped.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


# revision identifiers, used by Alembic.
revision: str = "0a1b2c3d4e5f"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _counts() -> list[sa.Column]:
    return [
        sa.Column("total_tests", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("passed_tests", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed_tests", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("skipped_tests", sa.Integer(), nullable=False, server_default="0"),
    ]


def upgrade() -> None:
    insp = inspect(op.get_bind())
    existing = set(insp.get_table_names())

    if "users" not in existing:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("handle", sa.String(64), nullable=False),
            sa.Column("email", sa.String(320), nullable=False),
            sa.Column("password_hash", sa.String(255), nullable=False),
            sa.Column("first_name", sa.String(128), nullable=True),
            sa.Column("last_name", sa.String(128), nullable=True),
            sa.Column("photo_path", sa.String(512), nullable=True),
            sa.Column("bio", sa.Text(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.UniqueConstraint("handle"),
            sa.UniqueConstraint("email"),
        )

    if "audit_events" not in existing:
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("request_id", sa.String(64), nullable=True),
            sa.Column("actor_user_id", sa.Integer(), nullable=True),
            sa.Column("actor_handle", sa.String(64), nullable=True),
            sa.Column("action", sa.String(128), nullable=False),
            sa.Column("entity_type", sa.String(128), nullable=True),
            sa.Column("entity_id", sa.String(128), nullable=True),
            sa.Column("reason", sa.String(512), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
            sa.Column("client_ip", sa.String(64), nullable=True),
            sa.ForeignKeyConstraint(["actor_user_id"], ["users.id"], ondelete="SET NULL"),
        )

    # Breakroom
    if "breakroom_blocks" not in existing:
        op.create_table(
            "breakroom_blocks",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("block_type", sa.String(64), nullable=False),
            sa.Column("content_id", sa.Integer(), nullable=True),
            sa.Column("title", sa.String(255), nullable=True),
            sa.Column("settings", sa.JSON(), nullable=True),
            sa.Column("x", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("y", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("w", sa.Integer(), nullable=False, server_default="2"),
            sa.Column("h", sa.Integer(), nullable=False, server_default="2"),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        )
        op.create_index("idx_breakroom_blocks_user_id", "breakroom_blocks", ["user_id"])

    if "breakroom_block_positions" not in existing:
        op.create_table(
            "breakroom_block_positions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("block_id", sa.Integer(), nullable=False),
            sa.Column("col_count", sa.Integer(), nullable=False),
            sa.Column("x", sa.Integer(), nullable=False),
            sa.Column("y", sa.Integer(), nullable=False),
            sa.Column("w", sa.Integer(), nullable=False),
            sa.Column("h", sa.Integer(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["block_id"], ["breakroom_blocks.id"], ondelete="CASCADE"),
            sa.UniqueConstraint("block_id", "col_count", name="uq_breakroom_position_block_cols"),
        )

    # Lyrics
    if "songs" not in existing:
        op.create_table(
            "songs",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("genre", sa.String(128), nullable=True),
            sa.Column("status", sa.String(64), nullable=False, server_default="idea"),
            sa.Column("visibility", sa.String(32), nullable=False, server_default="private"),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        )
        op.create_index("idx_songs_user_id", "songs", ["user_id"])

    if "song_collaborators" not in existing:
        op.create_table(
            "song_collaborators",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("song_id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("role", sa.String(32), nullable=False, server_default="editor"),
            sa.Column("invited_by", sa.Integer(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["song_id"], ["songs.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["invited_by"], ["users.id"], ondelete="SET NULL"),
            sa.UniqueConstraint("song_id", "user_id", name="uq_song_collaborators_song_user"),
        )
        op.create_index("idx_song_collaborators_user_id", "song_collaborators", ["user_id"])

    if "lyrics" not in existing:
        op.create_table(
            "lyrics",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("song_id", sa.Integer(), nullable=True),
            sa.Column("title", sa.String(255), nullable=True),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("section_type", sa.String(64), nullable=False, server_default="idea"),
            sa.Column("section_order", sa.Integer(), nullable=True),
            sa.Column("mood", sa.String(128), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("status", sa.String(64), nullable=False, server_default="draft"),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["song_id"], ["songs.id"], ondelete="SET NULL"),
        )
        op.create_index("idx_lyrics_user_id", "lyrics", ["user_id"])
        op.create_index("idx_lyrics_song_id", "lyrics", ["song_id", "section_order"])

    # Gallery
    if "user_gallery" not in existing:
        op.create_table(
            "user_gallery",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("gallery_url", sa.String(128), nullable=False),
            sa.Column("gallery_name", sa.String(255), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.UniqueConstraint("user_id"),
            sa.UniqueConstraint("gallery_url"),
        )

    if "gallery_artworks" not in existing:
        op.create_table(
            "gallery_artworks",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(255), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("image_path", sa.String(512), nullable=False),
            sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        )
        op.create_index("idx_gallery_artworks_user_id", "gallery_artworks", ["user_id", "created_at"])

    # Shortcuts
    if "user_shortcuts" not in existing:
        op.create_table(
            "user_shortcuts",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("url", sa.String(1024), nullable=False),
            sa.Column("icon", sa.String(128), nullable=True),
            sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.UniqueConstraint("user_id", "url", name="uq_user_shortcuts_user_url"),
        )

    # Test results
    if "test_runs" not in existing:
        op.create_table(
            "test_runs",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("platform", sa.String(32), nullable=False),
            sa.Column("environment", sa.String(64), nullable=False, server_default="local"),
            sa.Column("branch", sa.String(255), nullable=True),
            sa.Column("commit_hash", sa.String(64), nullable=True),
            sa.Column("status", sa.String(32), nullable=False, server_default="running"),
            *_counts(),
            sa.Column("started_at", sa.DateTime(), nullable=True),
            sa.Column("ended_at", sa.DateTime(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )
        op.create_index("idx_test_runs_platform", "test_runs", ["platform"])
        op.create_index("idx_test_runs_created_at", "test_runs", ["created_at"])

    if "test_suites" not in existing:
        op.create_table(
            "test_suites",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("test_run_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(512), nullable=False),
            sa.Column("file_path", sa.String(1024), nullable=True),
            sa.Column("category", sa.String(128), nullable=True),
            sa.Column("status", sa.String(32), nullable=False, server_default="running"),
            sa.Column("duration_ms", sa.Integer(), nullable=True),
            *_counts(),
            sa.Column("started_at", sa.DateTime(), nullable=True),
            sa.Column("ended_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["test_run_id"], ["test_runs.id"], ondelete="CASCADE"),
        )
        op.create_index("idx_test_suites_run_id", "test_suites", ["test_run_id"])

    if "test_cases" not in existing:
        op.create_table(
            "test_cases",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("test_suite_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(1024), nullable=False),
            sa.Column("status", sa.String(32), nullable=False, server_default="pending"),
            sa.Column("duration_ms", sa.Integer(), nullable=True),
            sa.Column("error_message", sa.Text(), nullable=True),
            sa.Column("error_stack", sa.Text(), nullable=True),
            sa.Column("started_at", sa.DateTime(), nullable=True),
            sa.Column("ended_at", sa.DateTime(), nullable=True),
            sa.ForeignKeyConstraint(["test_suite_id"], ["test_suites.id"], ondelete="CASCADE"),
        )
        op.create_index("idx_test_cases_suite_id", "test_cases", ["test_suite_id"])

    # Blog
    if "user_blog" not in existing:
        op.create_table(
            "user_blog",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("blog_url", sa.String(128), nullable=False),
            sa.Column("blog_name", sa.String(255), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.UniqueConstraint("user_id"),
            sa.UniqueConstraint("blog_url"),
        )

    if "blog_posts" not in existing:
        op.create_table(
            "blog_posts",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(255), nullable=False),
            sa.Column("content", sa.Text(), nullable=True),
            sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        )
        op.create_index("idx_blog_posts_user_id", "blog_posts", ["user_id"])


def downgrade() -> None:
    for table in (
        "blog_posts",
        "user_blog",
        "test_cases",
        "test_suites",
        "test_runs",
        "user_shortcuts",
        "gallery_artworks",
        "user_gallery",
        "lyrics",
        "song_collaborators",
        "songs",
        "breakroom_block_positions",
        "breakroom_blocks",
        "audit_events",
        "users",
    ):
        op.drop_table(table)
