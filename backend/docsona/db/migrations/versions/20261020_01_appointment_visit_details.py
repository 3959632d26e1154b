"""Add room, symptoms, doctor notes and follow-up to appointments"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

revision: str = "20261020_01_appointment_visit_details"
down_revision: str | None = "20261019_01_appointments"
branch_labels: str | Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.add_column("appointments", sa.Column("room", sa.String(length=50), nullable=True))
    op.add_column("appointments", sa.Column("symptoms", sa.JSON(), nullable=False, server_default="[]"))
    op.add_column("appointments", sa.Column("doctor_notes", sa.String(length=1000), nullable=True))
    op.add_column(
        "appointments",
        sa.Column("follow_up_required", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.add_column("appointments", sa.Column("follow_up_date", sa.Date(), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("appointments") as batch_op:
        batch_op.drop_column("follow_up_date")
        batch_op.drop_column("follow_up_required")
        batch_op.drop_column("doctor_notes")
        batch_op.drop_column("symptoms")
        batch_op.drop_column("room")
