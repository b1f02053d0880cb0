"""create image_history table

Revision ID: a7c1e2d3f4b5
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID


# revision identifiers, used by Alembic.
revision: str = "a7c1e2d3f4b5"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "image_history",
        sa.Column(
            "id",
            UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("auth.users.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("prompt", sa.Text, nullable=False),
        sa.Column("image_url", sa.Text, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
    )
    op.create_index("idx_image_history_user_id", "image_history", ["user_id"])
    op.create_index(
        "idx_image_history_user_id_created_at",
        "image_history",
        ["user_id", sa.text("created_at DESC")],
    )

    # Row Level Security: rows are only visible to, and removable by, their owner
    op.execute("ALTER TABLE image_history ENABLE ROW LEVEL SECURITY;")
    op.execute("""
        CREATE POLICY "Users can view own history"
            ON image_history FOR SELECT USING (auth.uid() = user_id);
    """)
    op.execute("""
        CREATE POLICY "Users can insert own history"
            ON image_history FOR INSERT WITH CHECK (auth.uid() = user_id);
    """)
    op.execute("""
        CREATE POLICY "Users can delete own history"
            ON image_history FOR DELETE USING (auth.uid() = user_id);
    """)


def downgrade() -> None:
    op.execute('DROP POLICY IF EXISTS "Users can delete own history" ON image_history;')
    op.execute('DROP POLICY IF EXISTS "Users can insert own history" ON image_history;')
    op.execute('DROP POLICY IF EXISTS "Users can view own history" ON image_history;')
    op.drop_index("idx_image_history_user_id_created_at", table_name="image_history")
    op.drop_index("idx_image_history_user_id", table_name="image_history")
    op.drop_table("image_history")
