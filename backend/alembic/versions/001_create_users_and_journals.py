"""Create users, journals and tagged students

Revision ID: 001
Revises: None
Create Date: 2024-01-15 00:00:00.000000+00:00

What:  Initial schema: `role` and `media_type` enum types, the `users` and
       `journals` tables, the `journal_tagged_students` junction, their
       indexes, and two triggers.
How:   PostgreSQL-specific pieces (native enums, TEXT[], plpgsql triggers)
       live here; the ORM models stay portable so tests can run on SQLite.

Triggers:
    update_<table>_updated_at  BEFORE UPDATE on users and journals,
                               sets updated_at = CURRENT_TIMESTAMP
    set_journal_publish_at     BEFORE INSERT on journals, replaces a NULL
                               publish_at with CURRENT_TIMESTAMP

Rollback: downgrade() drops everything created here (all data lost).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

role_enum = postgresql.ENUM("STUDENT", "TEACHER", "ADMIN", name="role", create_type=False)
media_type_enum = postgresql.ENUM(
    "IMAGE", "VIDEO", "AUDIO", "PDF", name="media_type", create_type=False
)


def upgrade() -> None:
    bind = op.get_bind()
    role_enum.create(bind, checkfirst=True)
    media_type_enum.create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("email", sa.String(320), nullable=False, comment="Unique login email"),
        sa.Column("password", sa.Text(), nullable=False, comment="bcrypt hash"),
        sa.Column("role", role_enum, nullable=False, server_default=sa.text("'STUDENT'")),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "journals",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column(
            "media",
            postgresql.ARRAY(sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::text[]"),
            comment="Media URLs in upload order",
        ),
        sa.Column("media_type", media_type_enum, nullable=True),
        sa.Column("teacher_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "publish_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=True,
            comment="Visible to tagged students from this instant",
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["teacher_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_journals_teacher_id", "journals", ["teacher_id"])
    op.create_index("idx_journals_created_at", "journals", [sa.text("created_at DESC")])

    op.create_table(
        "journal_tagged_students",
        sa.Column("journal_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.PrimaryKeyConstraint("journal_id", "student_id"),
        sa.ForeignKeyConstraint(["journal_id"], ["journals.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["student_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "idx_tagged_students_journal_id", "journal_tagged_students", ["journal_id"]
    )
    op.create_index(
        "idx_tagged_students_student_id", "journal_tagged_students", ["student_id"]
    )

    op.execute(
        """
        CREATE OR REPLACE FUNCTION update_updated_at_column()
        RETURNS TRIGGER AS $$
        BEGIN
            NEW.updated_at = CURRENT_TIMESTAMP;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
        """
    )
    for table in ("users", "journals"):
        op.execute(
            f"""
            CREATE TRIGGER update_{table}_updated_at
            BEFORE UPDATE ON {table}
            FOR EACH ROW EXECUTE FUNCTION update_updated_at_column();
            """
        )

    op.execute(
        """
        CREATE OR REPLACE FUNCTION set_publish_at()
        RETURNS TRIGGER AS $$
        BEGIN
            IF NEW.publish_at IS NULL THEN
                NEW.publish_at = CURRENT_TIMESTAMP;
            END IF;
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql;
        """
    )
    op.execute(
        """
        CREATE TRIGGER set_journal_publish_at
        BEFORE INSERT ON journals
        FOR EACH ROW EXECUTE FUNCTION set_publish_at();
        """
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS set_journal_publish_at ON journals")
    op.execute("DROP TRIGGER IF EXISTS update_journals_updated_at ON journals")
    op.execute("DROP TRIGGER IF EXISTS update_users_updated_at ON users")
    op.execute("DROP FUNCTION IF EXISTS set_publish_at()")
    op.execute("DROP FUNCTION IF EXISTS update_updated_at_column()")

    op.drop_index("idx_tagged_students_student_id", table_name="journal_tagged_students")
    op.drop_index("idx_tagged_students_journal_id", table_name="journal_tagged_students")
    op.drop_table("journal_tagged_students")

    op.drop_index("idx_journals_created_at", table_name="journals")
    op.drop_index("idx_journals_teacher_id", table_name="journals")
    op.drop_table("journals")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    media_type_enum.drop(op.get_bind(), checkfirst=True)
    role_enum.drop(op.get_bind(), checkfirst=True)
