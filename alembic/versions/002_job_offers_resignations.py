"""002 – Job offers and resignations.

Revision ID: 002_job_offers_resignations
Revises: 001_initial_schema
Create Date: 2026-10-19 15:00:00.000000+07:00
"""

from alembic import op

# Revision identifiers
revision = "002_job_offers_resignations"
down_revision = "001_initial_schema"
branch_labels = None
depends_on = None

AUDIT_COLUMNS = """
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            created_by  UUID REFERENCES employees(id),
            updated_by  UUID REFERENCES employees(id)"""


def upgrade() -> None:
    op.execute("CREATE TYPE offer_status AS ENUM ('pending', 'accepted', 'declined', 'expired')")
    op.execute("CREATE TYPE acknowledgement_status AS ENUM ('pending', 'acknowledged', 'rejected')")
    op.execute("ALTER TYPE notification_category ADD VALUE IF NOT EXISTS 'resignation'")

    # ── job_offers ────────────────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE job_offers (
            id                    UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            custom_offer_id       VARCHAR(30) NOT NULL UNIQUE,
            offer_date            DATE NOT NULL,
            candidate_name        VARCHAR(255) NOT NULL,
            position_name         VARCHAR(255) NOT NULL,
            probation_salary      NUMERIC(12,2) NOT NULL,
            post_probation_salary NUMERIC(12,2) NOT NULL,
            acceptance_deadline   DATE NOT NULL,
            acceptance_status     offer_status NOT NULL DEFAULT 'pending',
            note                  TEXT,{AUDIT_COLUMNS},
            CONSTRAINT ck_job_offers_probation_salary CHECK (probation_salary >= 0),
            CONSTRAINT ck_job_offers_post_probation_salary CHECK (post_probation_salary >= 0)
        )
    """)

    # ── resignations ──────────────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE resignations (
            id                     UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id            UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            department_id          UUID REFERENCES departments(id) ON DELETE SET NULL,
            position_id            UUID REFERENCES positions(id),
            resignation_date       DATE NOT NULL,
            last_working_date      DATE NOT NULL,
            reason                 VARCHAR(50) NOT NULL,
            reason_details         TEXT,
            acknowledgement_status acknowledgement_status NOT NULL DEFAULT 'pending',
            acknowledged_by        UUID REFERENCES employees(id) ON DELETE SET NULL,
            acknowledged_at        TIMESTAMPTZ,{AUDIT_COLUMNS},
            CONSTRAINT ck_resignations_dates CHECK (last_working_date >= resignation_date)
        )
    """)
    op.create_index(
        "ix_resignations_status_date", "resignations", ["acknowledgement_status", "resignation_date"],
    )
    op.create_index("ix_resignations_employee", "resignations", ["employee_id"])


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS resignations CASCADE")
    op.execute("DROP TABLE IF EXISTS job_offers CASCADE")
    op.execute("DROP TYPE IF EXISTS acknowledgement_status")
    op.execute("DROP TYPE IF EXISTS offer_status")
