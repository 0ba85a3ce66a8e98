"""Initial schema."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "20261017_01_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("username", sa.String(length=32), nullable=True),
        sa.Column("full_name", sa.Text(), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("background_url", sa.Text(), nullable=True),
        sa.Column("website", sa.Text(), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column(
            "profile_sections",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'"),
        ),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()")),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()")),
        sa.CheckConstraint("length(username) >= 3", name="ck_profile_username_length"),
        sa.UniqueConstraint("username", name="uq_profiles_username"),
    )

    op.create_table(
        "profile_sections",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "profile_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("section_key", sa.Text(), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()")),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()")),
    )
    op.create_index(
        "idx_profile_sections_profile_order", "profile_sections", ["profile_id", "display_order"]
    )
    op.create_index(
        "idx_profile_sections_profile_key", "profile_sections", ["profile_id", "section_key"]
    )

    op.create_table(
        "profile_section_fields",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "section_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("profile_sections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("field_key", sa.Text(), nullable=False),
        sa.Column("field_label", sa.Text(), nullable=False),
        sa.Column("field_value", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("field_type", sa.Text(), nullable=False, server_default=sa.text("'text'")),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()")),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()")),
        sa.CheckConstraint(
            "field_type IN ('text', 'url', 'email', 'date', 'textarea')",
            name="ck_profile_section_field_type",
        ),
    )
    op.create_index(
        "idx_profile_section_fields_section_order",
        "profile_section_fields",
        ["section_id", "display_order"],
    )

    op.create_table(
        "profile_recommendations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "profile_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("recommender_name", sa.Text(), nullable=False),
        sa.Column("recommender_email", sa.String(), nullable=True),
        sa.Column("recommender_title", sa.Text(), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column(
            "status", sa.String(length=16), nullable=False, server_default=sa.text("'pending'")
        ),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()")),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_recommendation_status",
        ),
        sa.CheckConstraint("length(content) <= 10000", name="ck_recommendation_content_length"),
    )
    op.create_index(
        "idx_recommendations_profile_status",
        "profile_recommendations",
        ["profile_id", "status"],
    )

    op.create_table(
        "profile_followers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "profile_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("follower_name", sa.Text(), nullable=False),
        sa.Column("follower_email", sa.String(), nullable=False),
        sa.Column("follower_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("NOW()")),
    )
    op.create_index(
        "idx_profile_followers_profile",
        "profile_followers",
        ["profile_id", sa.text("created_at DESC")],
    )


def downgrade() -> None:
    op.drop_index("idx_profile_followers_profile", table_name="profile_followers")
    op.drop_table("profile_followers")
    op.drop_index("idx_recommendations_profile_status", table_name="profile_recommendations")
    op.drop_table("profile_recommendations")
    op.drop_index(
        "idx_profile_section_fields_section_order", table_name="profile_section_fields"
    )
    op.drop_table("profile_section_fields")
    op.drop_index("idx_profile_sections_profile_key", table_name="profile_sections")
    op.drop_index("idx_profile_sections_profile_order", table_name="profile_sections")
    op.drop_table("profile_sections")
    op.drop_table("profiles")
