"""key attendance days by zone; student recruitment profile and review"""

from alembic import op
import sqlalchemy as sa

revision = "0002_attendance_zone_recruitment"
down_revision = "0001_initial_schema"
branch_labels = None
depends_on = None

# rows written before this revision were keyed in the default attendance zone
LEGACY_ZONE = "Asia/Kolkata"


def _recruitment_columns() -> list:
    return [
        sa.Column("cgpa", sa.String(16)),
        sa.Column("backlogs", sa.String(16)),
        sa.Column("summary", sa.Text()),
        sa.Column("clubs", sa.Text()),
        sa.Column("aim", sa.Text()),
        sa.Column("believe", sa.Text()),
        sa.Column("expect", sa.Text()),
        sa.Column("domains", sa.JSON()),
        sa.Column("review", sa.Integer()),
        sa.Column("comment", sa.Text()),
        sa.Column("round_one_attendance", sa.Boolean()),
        sa.Column("round_two_attendance", sa.Boolean()),
        sa.Column("round_one_qualified", sa.Boolean()),
        sa.Column("round_two_qualified", sa.Boolean()),
    ]


def upgrade() -> None:
    with op.batch_alter_table("attendance_entries") as batch:
        batch.add_column(
            sa.Column(
                "day_zone",
                sa.String(64),
                nullable=False,
                server_default=LEGACY_ZONE,
            )
        )
        batch.drop_constraint("uq_attendance_registrant_day", type_="unique")
        batch.create_unique_constraint(
            "uq_attendance_registrant_day_zone",
            ["registrant_id", "day_key", "day_zone"],
        )

    with op.batch_alter_table("registrants") as batch:
        for column in _recruitment_columns():
            batch.add_column(column)


def downgrade() -> None:
    with op.batch_alter_table("registrants") as batch:
        for column in reversed(_recruitment_columns()):
            batch.drop_column(column.name)

    with op.batch_alter_table("attendance_entries") as batch:
        batch.drop_constraint("uq_attendance_registrant_day_zone", type_="unique")
        batch.create_unique_constraint(
            "uq_attendance_registrant_day", ["registrant_id", "day_key"]
        )
        batch.drop_column("day_zone")
