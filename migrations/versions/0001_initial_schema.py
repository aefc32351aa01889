"""users, settings, events, registrants, attendance and certificate ledger"""

from alembic import op
import sqlalchemy as sa

revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255)),
        sa.Column("full_name", sa.String(255)),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_users_email_lower", "users", [sa.text("lower(email)")], unique=True
    )

    op.create_table(
        "settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("smtp_host", sa.String(255)),
        sa.Column("smtp_port", sa.Integer()),
        sa.Column("smtp_user", sa.String(255)),
        sa.Column("smtp_from_default", sa.String(255)),
        sa.Column("smtp_from_name", sa.String(255)),
        sa.Column("smtp_pass_enc", sa.Text()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )

    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("event_name", sa.String(255), nullable=False),
        sa.Column("event_date", sa.Date(), nullable=False),
        sa.Column("motive", sa.Text(), nullable=False),
        sa.Column("registration_fee", sa.String(64)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index(
        "uix_events_name_lower", "events", [sa.text("lower(event_name)")], unique=True
    )

    op.create_table(
        "registrants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("kind", sa.String(16), nullable=False),
        sa.Column("scan_identity", sa.String(512), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("roll_number", sa.String(64), nullable=False),
        sa.Column("event_name", sa.String(255)),
        sa.Column(
            "event_id",
            sa.Integer(),
            sa.ForeignKey("events.id", ondelete="SET NULL"),
        ),
        sa.Column("university_roll_no", sa.String(64)),
        sa.Column("branch", sa.String(120)),
        sa.Column("year", sa.String(16)),
        sa.Column("phone_number", sa.String(32)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_registrants_event_id", "registrants", ["event_id"])
    op.create_index("ix_registrants_event_name", "registrants", ["event_name"])
    op.create_index(
        "uix_registrants_kind_scan", "registrants", ["kind", "scan_identity"], unique=True
    )
    op.create_index(
        "uix_registrants_kind_email_lower",
        "registrants",
        [sa.text("kind"), sa.text("lower(email)")],
        unique=True,
    )
    op.create_index(
        "uix_registrants_kind_roll_lower",
        "registrants",
        [sa.text("kind"), sa.text("lower(roll_number)")],
        unique=True,
    )
    op.create_index(
        "uix_registrants_kind_uni_roll_lower",
        "registrants",
        [sa.text("kind"), sa.text("lower(university_roll_no)")],
        unique=True,
    )

    op.create_table(
        "attendance_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "registrant_id",
            sa.Integer(),
            sa.ForeignKey("registrants.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("recorded_at", sa.DateTime(), nullable=False),
        sa.Column("present", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("day_key", sa.Date(), nullable=False),
        sa.UniqueConstraint(
            "registrant_id", "day_key", name="uq_attendance_registrant_day"
        ),
    )
    op.create_index(
        "ix_attendance_entries_registrant_id", "attendance_entries", ["registrant_id"]
    )
    op.create_index(
        "ix_attendance_entries_recorded_at", "attendance_entries", ["recorded_at"]
    )

    op.create_table(
        "certificate_deliveries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "event_id",
            sa.Integer(),
            sa.ForeignKey("events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "registrant_id",
            sa.Integer(),
            sa.ForeignKey("registrants.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("detail", sa.Text()),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sent_at", sa.DateTime()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint(
            "event_id", "registrant_id", name="uq_certificate_delivery_event_registrant"
        ),
    )


def downgrade() -> None:
    op.drop_table("certificate_deliveries")
    op.drop_table("attendance_entries")
    op.drop_table("registrants")
    op.drop_table("events")
    op.drop_table("settings")
    op.drop_table("users")
