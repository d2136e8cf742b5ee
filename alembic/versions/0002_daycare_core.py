"""create daycare children, daily records, settlements and rollover runs

Revision ID: 0002_daycare_core
Revises: 0001_auth_users_roles
Create Date: 2026-10-01 09:30:00.000000
"""

from alembic import op
import sqlalchemy as sa

revision = "0002_daycare_core"
down_revision = "0001_auth_users_roles"
branch_labels = None
depends_on = None


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("SYSUTCDATETIME()"),
    )


def upgrade() -> None:
    op.create_table(
        "children",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column("Name", sa.String(length=200), nullable=False),
        sa.Column("GuardianName", sa.String(length=200), nullable=False),
        sa.Column("ContactNumber", sa.String(length=40), nullable=False),
        sa.Column("AdmissionDate", sa.Date(), nullable=False),
        sa.Column("AdmissionNumber", sa.String(length=40), nullable=True),
        sa.Column("ClassName", sa.String(length=80), nullable=True),
        sa.Column("DailyFee", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("AgeValue", sa.Integer(), nullable=True),
        sa.Column("AgeUnit", sa.String(length=10), nullable=True),
        sa.Column("AgeDeclaredAt", sa.DateTime(timezone=True), nullable=True),
        _timestamp("CreatedAt"),
        _timestamp("UpdatedAt"),
        sa.CheckConstraint("DailyFee >= 0", name="ck_daycare_children_daily_fee"),
        sa.CheckConstraint("AgeUnit IN ('months', 'years')", name="ck_daycare_children_age_unit"),
        schema="daycare",
    )
    op.create_index("ix_daycare_children_name", "children", ["Name"], schema="daycare")
    op.create_index("ix_daycare_children_admission_date", "children", ["AdmissionDate"], schema="daycare")
    op.create_index(
        "ux_daycare_children_admission_number",
        "children",
        ["AdmissionNumber"],
        unique=True,
        schema="daycare",
        mssql_where=sa.text("AdmissionNumber IS NOT NULL"),
    )

    op.create_table(
        "daily_records",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column("ChildId", sa.Integer(), nullable=False),
        sa.Column("RecordDate", sa.Date(), nullable=False),
        sa.Column("AttendanceStatus", sa.String(length=10), nullable=False, server_default="unset"),
        sa.Column("PaymentStatus", sa.String(length=10), nullable=False, server_default="pending"),
        sa.Column("AmountDue", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("DebtRemaining", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("ArrivalAt", sa.DateTime(timezone=True), nullable=True),
        sa.Column("Note", sa.Text(), nullable=True),
        _timestamp("CreatedAt"),
        _timestamp("UpdatedAt"),
        sa.ForeignKeyConstraint(
            ["ChildId"],
            ["daycare.children.Id"],
            name="fk_daycare_daily_records_child",
            ondelete="CASCADE",
        ),
        sa.UniqueConstraint("ChildId", "RecordDate", name="uq_daycare_daily_records_child_date"),
        sa.CheckConstraint(
            "AttendanceStatus IN ('unset', 'present', 'absent')",
            name="ck_daycare_daily_records_attendance",
        ),
        sa.CheckConstraint(
            "PaymentStatus IN ('pending', 'paid', 'unpaid')",
            name="ck_daycare_daily_records_payment",
        ),
        sa.CheckConstraint(
            "DebtRemaining >= 0 AND DebtRemaining <= AmountDue",
            name="ck_daycare_daily_records_debt",
        ),
        schema="daycare",
    )
    op.create_index("ix_daycare_daily_records_child_id", "daily_records", ["ChildId"], schema="daycare")
    op.create_index("ix_daycare_daily_records_record_date", "daily_records", ["RecordDate"], schema="daycare")
    op.create_index(
        "ix_daycare_daily_records_open_debt",
        "daily_records",
        ["ChildId", "RecordDate"],
        schema="daycare",
        mssql_where=sa.text("DebtRemaining > 0"),
    )

    op.create_table(
        "settlements",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column("ChildId", sa.Integer(), nullable=False),
        sa.Column("Kind", sa.String(length=10), nullable=False),
        sa.Column("Amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("RecordsTouched", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("CreatedByUserId", sa.Integer(), nullable=False),
        _timestamp("CreatedAt"),
        sa.ForeignKeyConstraint(
            ["ChildId"],
            ["daycare.children.Id"],
            name="fk_daycare_settlements_child",
            ondelete="CASCADE",
        ),
        schema="daycare",
    )
    op.create_index("ix_daycare_settlements_child_id", "settlements", ["ChildId"], schema="daycare")

    op.create_table(
        "rollover_runs",
        sa.Column("Id", sa.Integer(), primary_key=True),
        sa.Column("TargetDate", sa.Date(), nullable=False),
        sa.Column("TriggeredBy", sa.String(length=20), nullable=False),
        sa.Column("Attempted", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("Succeeded", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("Failed", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("MarkedAbsent", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("MarkedUnpaid", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("Skipped", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("ErrorMessage", sa.String(length=500), nullable=True),
        sa.Column("StartedAt", sa.DateTime(timezone=True), nullable=False),
        sa.Column("FinishedAt", sa.DateTime(timezone=True), nullable=False),
        schema="daycare",
    )
    op.create_index("ix_daycare_rollover_runs_target_date", "rollover_runs", ["TargetDate"], schema="daycare")

    op.execute(
        """
        IF EXISTS (SELECT 1 FROM sys.database_principals WHERE name = 'DaycareCrud')
        BEGIN
          GRANT SELECT, INSERT, UPDATE, DELETE ON SCHEMA::[daycare] TO [DaycareCrud];
        END
        """
    )


def downgrade() -> None:
    op.drop_index("ix_daycare_rollover_runs_target_date", table_name="rollover_runs", schema="daycare")
    op.drop_table("rollover_runs", schema="daycare")
    op.drop_index("ix_daycare_settlements_child_id", table_name="settlements", schema="daycare")
    op.drop_table("settlements", schema="daycare")
    op.drop_index("ix_daycare_daily_records_open_debt", table_name="daily_records", schema="daycare")
    op.drop_index("ix_daycare_daily_records_record_date", table_name="daily_records", schema="daycare")
    op.drop_index("ix_daycare_daily_records_child_id", table_name="daily_records", schema="daycare")
    op.drop_table("daily_records", schema="daycare")
    op.drop_index("ux_daycare_children_admission_number", table_name="children", schema="daycare")
    op.drop_index("ix_daycare_children_admission_date", table_name="children", schema="daycare")
    op.drop_index("ix_daycare_children_name", table_name="children", schema="daycare")
    op.drop_table("children", schema="daycare")
