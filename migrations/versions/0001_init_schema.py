from __future__ import annotations

"""init schema"""

from alembic import op
import sqlalchemy as sa


revision = "0001_init_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Id 0 is reserved for the AI assistant and never stored as a user
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger, sa.Identity(start=1), primary_key=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
        sa.CheckConstraint("id > 0", name="ck_users_id_positive"),
        sa.CheckConstraint("kind IN ('business', 'consumer')", name="ck_users_kind"),
    )

    op.create_table(
        "businesses",
        sa.Column("id", sa.BigInteger, sa.Identity(start=1), primary_key=True),
        sa.Column("user_id", sa.BigInteger, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("location", sa.String(length=200), nullable=False),
        sa.Column("services", sa.dialects.postgresql.JSONB, server_default=sa.text("'[]'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
    )
    op.create_index("idx_businesses_user_id", "businesses", ["user_id"])

    # from_id / to_id carry no foreign key: either side may be the assistant (0)
    op.create_table(
        "messages",
        sa.Column("id", sa.BigInteger, sa.Identity(start=1), primary_key=True),
        sa.Column("from_id", sa.BigInteger, nullable=False),
        sa.Column("to_id", sa.BigInteger, nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.Column("is_ai_assistant", sa.Boolean, nullable=False, server_default=sa.text("FALSE")),
        sa.CheckConstraint("is_ai_assistant = (from_id = 0)", name="ck_messages_assistant_flag"),
    )
    op.create_index("idx_messages_pair", "messages", ["from_id", "to_id"])
    op.create_index("idx_messages_timestamp", "messages", ["timestamp", "id"])


def downgrade() -> None:
    op.drop_index("idx_messages_timestamp", table_name="messages")
    op.drop_index("idx_messages_pair", table_name="messages")
    op.drop_table("messages")

    op.drop_index("idx_businesses_user_id", table_name="businesses")
    op.drop_table("businesses")

    op.drop_table("users")
