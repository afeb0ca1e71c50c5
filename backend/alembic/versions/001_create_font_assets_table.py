"""Create font_assets table

Revision ID: 001
Revises: None
Create Date: 2026-01-15 00:00:00.000000+00:00

What:  Creates the `font_assets` table: one row per uploaded font, with the
       metadata read from its name/OS/2 tables and the storage keys of the
       original binary and its WOFF2 variant.
How:   Portable column types (sa.Uuid renders as UUID on PostgreSQL).

Rollback: downgrade() drops the table. Stored objects are not touched.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _text_column(name: str, type_, comment: str = None) -> sa.Column:
    return sa.Column(
        name,
        type_,
        nullable=False,
        server_default=sa.text("''"),
        comment=comment,
    )


def upgrade() -> None:
    op.create_table(
        "font_assets",
        sa.Column("id", sa.Uuid(), nullable=False, comment="Font identifier, generated by the application"),
        sa.Column(
            "user_id",
            sa.String(128),
            nullable=False,
            comment="Owning user id as issued by the auth service",
        ),
        _text_column("name", sa.String(255), "Original upload filename"),

        # Metadata from the font's name / OS/2 tables
        _text_column("family", sa.String(255), "name ID 1 (or 16)"),
        _text_column("full_name", sa.String(255), "name ID 4"),
        _text_column("postscript_name", sa.String(255), "name ID 6"),
        _text_column("style", sa.String(128), "name ID 2 (or 17)"),
        sa.Column(
            "weight",
            sa.Integer(),
            nullable=False,
            server_default=sa.text("400"),
            comment="OS/2 usWeightClass (400 when the font has no OS/2 table)",
        ),
        _text_column("manufacturer", sa.String(255)),
        _text_column("designer", sa.String(255)),
        _text_column("version", sa.String(128)),
        _text_column("copyright", sa.Text()),
        _text_column("description", sa.Text()),
        _text_column("license", sa.Text()),

        # Storage keys
        sa.Column(
            "original_file",
            sa.String(512),
            nullable=False,
            comment="Object storage key of the uploaded binary",
        ),
        sa.Column(
            "woff2_file",
            sa.String(512),
            nullable=True,
            comment="Object storage key of the WOFF2 variant; NULL when conversion failed",
        ),

        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    # Every listing is "this user's fonts, newest first"
    op.create_index(
        "idx_font_assets_user_created",
        "font_assets",
        ["user_id", sa.text("created_at DESC")],
    )


def downgrade() -> None:
    op.drop_index("idx_font_assets_user_created", table_name="font_assets")
    op.drop_table("font_assets")
