"""create skills and tutor skills

Revision ID: 20261018_02
Revises: 20261018_01
Create Date: 2026-10-18 09:10:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261018_02"
down_revision: Union[str, None] = "20261018_01"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "skills",
        sa.Column("id", sa.Integer(), sa.Identity(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("name", name="uq_skills_name"),
    )
    op.create_index("ix_skills_id", "skills", ["id"], unique=False)

    op.create_table(
        "tutor_skills",
        sa.Column("id", sa.Integer(), sa.Identity(), primary_key=True, nullable=False),
        sa.Column("tutor_id", sa.Integer(), nullable=False),
        sa.Column("skill_id", sa.Integer(), nullable=False),
        sa.Column("hourly_rate", sa.Numeric(10, 2), nullable=False),
        sa.Column("description", sa.String(length=200), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["tutor_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["skill_id"], ["skills.id"], ondelete="RESTRICT"),
        sa.UniqueConstraint("tutor_id", "skill_id", name="uq_tutor_skills_tutor_skill"),
        sa.CheckConstraint("hourly_rate >= 1 AND hourly_rate <= 10000", name="ck_tutor_skills_hourly_rate"),
    )
    op.create_index("ix_tutor_skills_id", "tutor_skills", ["id"], unique=False)
    op.create_index("ix_tutor_skills_tutor_id", "tutor_skills", ["tutor_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_tutor_skills_tutor_id", table_name="tutor_skills")
    op.drop_index("ix_tutor_skills_id", table_name="tutor_skills")
    op.drop_table("tutor_skills")
    op.drop_index("ix_skills_id", table_name="skills")
    op.drop_table("skills")
