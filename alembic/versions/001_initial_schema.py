"""001 – Initial schema: all tables, indexes, enums.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000+07:00
"""

from alembic import op
import sqlalchemy as sa

# Revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

ENUM_TYPES: list[tuple[str, list[str]]] = [
    ("organization", ["SMRU", "BHF"]),
    ("employee_status", ["Expat", "Local ID", "Local non ID"]),
    ("gender_type", ["male", "female", "other"]),
    ("marital_status", ["single", "married", "divorced", "widowed"]),
    ("user_role", ["employee", "manager", "hr_admin", "system_admin"]),
    ("employment_type", ["Full-time", "Part-time", "Contract", "Temporary"]),
    ("pay_method", ["Transferred to bank", "Cash", "Cheque"]),
    ("probation_status", ["ongoing", "extended", "passed", "failed"]),
    ("probation_event_type", ["initial", "extension", "passed", "failed"]),
    ("allocation_type", ["grant", "org_funded"]),
    ("allocation_status", ["active", "historical", "terminated", "inactive", "closed"]),
    ("salary_type", ["probation_salary", "pass_probation_salary"]),
    ("tax_setting_type", ["DEDUCTION", "RATE", "LIMIT", "ALLOWANCE"]),
    ("benefit_setting_type", ["percentage", "amount"]),
    ("batch_status", ["pending", "processing", "completed", "failed"]),
    ("leave_status", ["pending", "approved", "declined", "cancelled"]),
    ("travel_transportation", ["smru_vehicle", "public_transportation", "air", "other"]),
    ("travel_accommodation", ["smru_arrangement", "self_arrangement", "other"]),
    ("interview_mode", ["in_person", "phone", "video"]),
    ("interview_status", ["scheduled", "completed", "cancelled"]),
    ("hired_status", ["pending", "hired", "not_hired"]),
    (
        "personnel_action_type",
        [
            "appointment",
            "fiscal_increment",
            "title_change",
            "voluntary_separation",
            "position_change",
            "transfer",
        ],
    ),
    (
        "personnel_action_subtype",
        [
            "re_evaluated_pay_adjustment",
            "promotion",
            "demotion",
            "end_of_contract",
            "work_allocation",
        ],
    ),
    ("personnel_transfer_type", ["internal_department", "site_to_site", "attachment_position"]),
    (
        "notification_type",
        ["info", "action_required", "approval", "reminder", "alert"],
    ),
    (
        "notification_category",
        [
            "general",
            "employee",
            "leave",
            "travel",
            "payroll",
            "grant",
            "import",
            "personnel_action",
            "probation",
        ],
    ),
]

# created_at / updated_at / created_by / updated_by of AuditMixin tables
AUDIT_COLUMNS = """
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at  TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            created_by  UUID REFERENCES employees(id),
            updated_by  UUID REFERENCES employees(id)"""


def _create_enum(name: str, values: list[str]) -> None:
    vals = ", ".join(f"'{v}'" for v in values)
    op.execute(f"CREATE TYPE {name} AS ENUM ({vals})")


def _drop_enum(name: str) -> None:
    op.execute(f"DROP TYPE IF EXISTS {name}")


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # ── Extensions ────────────────────────────────────────────────────────
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # ── Enum types ────────────────────────────────────────────────────────
    for name, values in ENUM_TYPES:
        _create_enum(name, values)

    # ── 1. work_locations ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE work_locations (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name        VARCHAR(150) NOT NULL UNIQUE,
            address     TEXT,
            is_active   BOOLEAN DEFAULT TRUE,
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 2. departments ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE departments (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name        VARCHAR(150) NOT NULL UNIQUE,
            description TEXT,
            is_active   BOOLEAN DEFAULT TRUE,
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 3. positions ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE positions (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            title         VARCHAR(150) NOT NULL,
            department_id UUID NOT NULL REFERENCES departments(id),
            reports_to_id UUID REFERENCES positions(id),
            level         INTEGER DEFAULT 1,
            is_manager    BOOLEAN DEFAULT FALSE,
            is_active     BOOLEAN DEFAULT TRUE,
            created_at    TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_position_title_department UNIQUE (title, department_id)
        )
    """)

    # ── 4. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id                     UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            staff_id               VARCHAR(50)  NOT NULL UNIQUE,
            organization           organization NOT NULL,
            initial                VARCHAR(10),
            first_name             VARCHAR(100) NOT NULL,
            last_name              VARCHAR(100),
            display_name           VARCHAR(255),
            gender                 gender_type,
            date_of_birth          DATE,
            status                 employee_status NOT NULL DEFAULT 'Local ID',
            nationality            VARCHAR(100),
            email                  VARCHAR(255) UNIQUE,
            phone                  VARCHAR(30),
            marital_status         marital_status,
            has_spouse             BOOLEAN DEFAULT FALSE,
            number_of_children     INTEGER DEFAULT 0,
            eligible_parents_count INTEGER DEFAULT 0,
            password_hash          VARCHAR(255),
            is_active              BOOLEAN DEFAULT TRUE,
            created_at             TIMESTAMPTZ DEFAULT NOW(),
            updated_at             TIMESTAMPTZ DEFAULT NOW(),
            created_by             UUID REFERENCES employees(id),
            updated_by             UUID REFERENCES employees(id)
        )
    """)

    # ── 5. user_sessions / role_assignments ───────────────────────────────
    op.execute("""
        CREATE TABLE user_sessions (
            id                 UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id        UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            token_hash         VARCHAR(512) NOT NULL,
            refresh_token_hash VARCHAR(512),
            ip_address         INET,
            user_agent         TEXT,
            expires_at         TIMESTAMPTZ NOT NULL,
            is_revoked         BOOLEAN DEFAULT FALSE,
            created_at         TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.create_index("ix_user_sessions_token_hash", "user_sessions", ["token_hash"])
    op.create_index("ix_user_sessions_refresh_token_hash", "user_sessions", ["refresh_token_hash"])

    op.execute("""
        CREATE TABLE role_assignments (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            role        user_role NOT NULL,
            assigned_by UUID REFERENCES employees(id),
            assigned_at TIMESTAMPTZ DEFAULT NOW(),
            revoked_at  TIMESTAMPTZ,
            is_active   BOOLEAN DEFAULT TRUE
        )
    """)

    # ── 6. audit_trail ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            actor_id    UUID REFERENCES employees(id),
            action      VARCHAR(50) NOT NULL,
            entity_type VARCHAR(50) NOT NULL,
            entity_id   UUID NOT NULL,
            old_values  JSONB,
            new_values  JSONB,
            ip_address  INET,
            user_agent  TEXT,
            created_at  TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.create_index("ix_audit_trail_actor_id", "audit_trail", ["actor_id"])
    op.create_index("ix_audit_trail_entity", "audit_trail", ["entity_type", "entity_id"])
    op.create_index("ix_audit_trail_created_at", "audit_trail", ["created_at"])
    op.create_index("ix_audit_trail_action", "audit_trail", ["action"])

    # ── 7. employments ────────────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE employments (
            id                    UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id           UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            employment_type       employment_type NOT NULL,
            pay_method            pay_method,
            department_id         UUID REFERENCES departments(id),
            position_id           UUID REFERENCES positions(id),
            work_location_id      UUID REFERENCES work_locations(id),
            start_date            DATE NOT NULL,
            end_date              DATE,
            pass_probation_date   DATE,
            probation_salary      NUMERIC(12,2),
            pass_probation_salary NUMERIC(12,2) NOT NULL,
            probation_status      probation_status,
            health_welfare        BOOLEAN DEFAULT FALSE,
            pvd                   BOOLEAN DEFAULT FALSE,
            saving_fund           BOOLEAN DEFAULT FALSE,
            is_active             BOOLEAN DEFAULT TRUE,{AUDIT_COLUMNS}
        )
    """)
    op.create_index("ix_employments_employee_id", "employments", ["employee_id"])
    op.create_index("ix_employments_pass_probation_date", "employments", ["pass_probation_date"])

    op.execute("""
        CREATE TABLE employment_histories (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employment_id UUID NOT NULL REFERENCES employments(id) ON DELETE CASCADE,
            employee_id   UUID NOT NULL REFERENCES employees(id),
            change_date   DATE NOT NULL,
            change_reason VARCHAR(255) NOT NULL,
            changes       JSONB,
            notes         TEXT,
            changed_by    UUID REFERENCES employees(id),
            created_at    TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.create_index("ix_employment_histories_employment_id", "employment_histories", ["employment_id"])

    op.execute("""
        CREATE TABLE probation_records (
            id                   UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employment_id        UUID NOT NULL REFERENCES employments(id) ON DELETE CASCADE,
            employee_id          UUID NOT NULL REFERENCES employees(id),
            event_type           probation_event_type NOT NULL,
            event_date           DATE NOT NULL,
            decision_date        DATE,
            probation_start_date DATE NOT NULL,
            probation_end_date   DATE,
            previous_end_date    DATE,
            extension_number     INTEGER DEFAULT 0,
            decision_reason      TEXT,
            evaluation_notes     TEXT,
            approved_by          UUID REFERENCES employees(id),
            is_active            BOOLEAN DEFAULT TRUE,
            created_at           TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.create_index("ix_probation_records_employment_id", "probation_records", ["employment_id"])

    # ── 8. grants / grant_items / position_slots ──────────────────────────
    op.execute(f"""
        CREATE TABLE grants (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            code         VARCHAR(50) NOT NULL UNIQUE,
            name         VARCHAR(255) NOT NULL,
            organization organization NOT NULL,
            description  TEXT,
            start_date   DATE,
            end_date     DATE,
            is_hub_grant BOOLEAN DEFAULT FALSE,{AUDIT_COLUMNS}
        )
    """)

    op.execute(f"""
        CREATE TABLE grant_items (
            id                    UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            grant_id              UUID NOT NULL REFERENCES grants(id) ON DELETE CASCADE,
            grant_position        VARCHAR(255) NOT NULL,
            grant_salary          NUMERIC(12,2),
            grant_benefit         NUMERIC(12,2),
            grant_level_of_effort NUMERIC(5,4),
            grant_position_number INTEGER NOT NULL DEFAULT 1,
            budgetline_code       VARCHAR(100),{AUDIT_COLUMNS},
            CONSTRAINT uq_grant_item_position_budgetline UNIQUE (grant_id, grant_position, budgetline_code)
        )
    """)
    op.create_index("ix_grant_items_grant_id", "grant_items", ["grant_id"])

    op.execute("""
        CREATE TABLE position_slots (
            id              UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            grant_item_id   UUID NOT NULL REFERENCES grant_items(id) ON DELETE CASCADE,
            slot_number     INTEGER NOT NULL,
            budgetline_code VARCHAR(100),
            created_at      TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_position_slot_number UNIQUE (grant_item_id, slot_number)
        )
    """)
    op.create_index("ix_position_slots_grant_item_id", "position_slots", ["grant_item_id"])

    # ── 9. employee_funding_allocations ───────────────────────────────────
    op.execute(f"""
        CREATE TABLE employee_funding_allocations (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id      UUID NOT NULL REFERENCES employees(id),
            employment_id    UUID NOT NULL REFERENCES employments(id) ON DELETE CASCADE,
            grant_item_id    UUID NOT NULL REFERENCES grant_items(id),
            position_slot_id UUID REFERENCES position_slots(id) ON DELETE SET NULL,
            allocation_type  allocation_type NOT NULL DEFAULT 'grant',
            fte              NUMERIC(5,4) NOT NULL,
            allocated_amount NUMERIC(12,2) NOT NULL,
            salary_type      salary_type NOT NULL,
            status           allocation_status NOT NULL DEFAULT 'active',
            start_date       DATE NOT NULL,
            end_date         DATE,{AUDIT_COLUMNS}
        )
    """)
    op.create_index("ix_employee_funding_allocations_employee_id", "employee_funding_allocations", ["employee_id"])
    op.create_index("ix_efa_employment_status", "employee_funding_allocations", ["employment_id", "status"])
    op.create_index("ix_efa_grant_item_status", "employee_funding_allocations", ["grant_item_id", "status"])

    # ── 10. tax configuration ─────────────────────────────────────────────
    op.execute("""
        CREATE TABLE tax_brackets (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            min_income     NUMERIC(15,2) NOT NULL,
            max_income     NUMERIC(15,2),
            tax_rate       NUMERIC(5,2) NOT NULL,
            bracket_order  INTEGER NOT NULL,
            effective_year INTEGER NOT NULL,
            description    VARCHAR(255),
            is_active      BOOLEAN DEFAULT TRUE,
            created_at     TIMESTAMPTZ DEFAULT NOW(),
            updated_at     TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_tax_bracket_year_order UNIQUE (effective_year, bracket_order)
        )
    """)
    op.create_index("ix_tax_brackets_effective_year", "tax_brackets", ["effective_year"])

    op.execute("""
        CREATE TABLE tax_settings (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            setting_key    VARCHAR(100) NOT NULL,
            setting_value  NUMERIC(15,2) NOT NULL,
            setting_type   tax_setting_type NOT NULL,
            description    VARCHAR(255),
            effective_year INTEGER NOT NULL,
            is_selected    BOOLEAN DEFAULT TRUE,
            created_at     TIMESTAMPTZ DEFAULT NOW(),
            updated_at     TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_tax_setting_key_year UNIQUE (setting_key, effective_year)
        )
    """)
    op.create_index("ix_tax_settings_effective_year", "tax_settings", ["effective_year"])

    op.execute("""
        CREATE TABLE tax_calculation_logs (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id    UUID REFERENCES employees(id) ON DELETE SET NULL,
            tax_year       INTEGER NOT NULL,
            gross_salary   NUMERIC(12,2) NOT NULL,
            taxable_income NUMERIC(15,2) NOT NULL,
            annual_tax     NUMERIC(15,2) NOT NULL,
            monthly_tax    NUMERIC(12,2) NOT NULL,
            breakdown      JSONB,
            calculated_by  UUID,
            created_at     TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.create_index("ix_tax_calculation_logs_employee_id", "tax_calculation_logs", ["employee_id"])

    # ── 11. payroll ───────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE benefit_settings (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            setting_key   VARCHAR(100) NOT NULL UNIQUE,
            setting_value NUMERIC(12,2) NOT NULL,
            setting_type  benefit_setting_type NOT NULL,
            description   TEXT,
            is_active     BOOLEAN DEFAULT TRUE,
            created_at    TIMESTAMPTZ DEFAULT NOW(),
            updated_at    TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    money_columns = [
        "gross_salary", "gross_salary_by_fte", "compensation_refund",
        "thirteen_month_salary", "thirteen_month_salary_accrued", "salary_bonus",
        "pvd", "saving_fund", "employer_social_security", "employee_social_security",
        "employer_health_welfare", "employee_health_welfare", "tax", "net_salary",
        "total_salary", "total_pvd", "total_saving_fund", "total_income",
        "employer_contribution", "total_deduction",
    ]
    money_sql = ",\n".join(f"            {c} NUMERIC(12,2) NOT NULL DEFAULT 0" for c in money_columns)
    op.execute(f"""
        CREATE TABLE payrolls (
            id                             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employment_id                  UUID NOT NULL REFERENCES employments(id),
            employee_funding_allocation_id UUID NOT NULL REFERENCES employee_funding_allocations(id),
            pay_period_date                DATE NOT NULL,
{money_sql},
            notes                          TEXT,{AUDIT_COLUMNS},
            CONSTRAINT uq_payroll_allocation_period UNIQUE (employee_funding_allocation_id, pay_period_date)
        )
    """)
    op.create_index("ix_payrolls_employment_period", "payrolls", ["employment_id", "pay_period_date"])

    op.execute(f"""
        CREATE TABLE inter_organization_advances (
            id                UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            payroll_id        UUID NOT NULL REFERENCES payrolls(id) ON DELETE CASCADE,
            from_organization organization NOT NULL,
            to_organization   organization NOT NULL,
            via_grant_id      UUID NOT NULL REFERENCES grants(id),
            amount            NUMERIC(12,2) NOT NULL,
            advance_date      DATE NOT NULL,
            notes             TEXT,
            settlement_date   DATE,{AUDIT_COLUMNS}
        )
    """)
    op.create_index("ix_inter_organization_advances_payroll_id", "inter_organization_advances", ["payroll_id"])

    op.execute("""
        CREATE TABLE bulk_payroll_batches (
            id                  UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            pay_period          VARCHAR(7) NOT NULL,
            filters             JSONB,
            total_employees     INTEGER DEFAULT 0,
            total_payrolls      INTEGER DEFAULT 0,
            processed_payrolls  INTEGER DEFAULT 0,
            successful_payrolls INTEGER DEFAULT 0,
            failed_payrolls     INTEGER DEFAULT 0,
            advances_created    INTEGER DEFAULT 0,
            status              batch_status NOT NULL DEFAULT 'pending',
            errors              JSONB,
            summary             JSONB,
            current_employee    VARCHAR(255),
            current_allocation  VARCHAR(255),
            created_by          UUID REFERENCES employees(id),
            created_at          TIMESTAMPTZ DEFAULT NOW(),
            completed_at        TIMESTAMPTZ
        )
    """)

    # ── 12. leave ─────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_types (
            id                  UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name                VARCHAR(100) NOT NULL UNIQUE,
            default_duration    NUMERIC(5,1) NOT NULL DEFAULT 0,
            description         TEXT,
            requires_attachment BOOLEAN DEFAULT FALSE,
            is_active           BOOLEAN DEFAULT TRUE,
            created_at          TIMESTAMPTZ DEFAULT NOW(),
            updated_at          TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE holidays (
            id          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name        VARCHAR(150) NOT NULL,
            date        DATE NOT NULL UNIQUE,
            description TEXT,
            is_active   BOOLEAN DEFAULT TRUE,
            created_at  TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    op.execute("""
        CREATE TABLE leave_balances (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id   UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            leave_type_id UUID NOT NULL REFERENCES leave_types(id),
            year          INTEGER NOT NULL,
            total_days    NUMERIC(5,1) NOT NULL DEFAULT 0,
            used_days     NUMERIC(5,1) NOT NULL DEFAULT 0,
            updated_at    TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT uq_leave_balance UNIQUE (employee_id, leave_type_id, year)
        )
    """)

    op.execute(f"""
        CREATE TABLE leave_requests (
            id                          UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id                 UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            start_date                  DATE NOT NULL,
            end_date                    DATE NOT NULL,
            total_days                  NUMERIC(5,1) NOT NULL,
            reason                      TEXT,
            status                      leave_status NOT NULL DEFAULT 'pending',
            supervisor_approved         BOOLEAN DEFAULT FALSE,
            supervisor_approved_date    DATE,
            hr_site_admin_approved      BOOLEAN DEFAULT FALSE,
            hr_site_admin_approved_date DATE,
            attachment_notes            TEXT,{AUDIT_COLUMNS}
        )
    """)
    op.create_index("ix_leave_requests_employee_dates", "leave_requests", ["employee_id", "start_date", "end_date"])

    op.execute("""
        CREATE TABLE leave_request_items (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            leave_request_id UUID NOT NULL REFERENCES leave_requests(id) ON DELETE CASCADE,
            leave_type_id    UUID NOT NULL REFERENCES leave_types(id),
            days             NUMERIC(5,1) NOT NULL,
            CONSTRAINT uq_leave_request_item_type UNIQUE (leave_request_id, leave_type_id)
        )
    """)

    # ── 13. travel_requests ───────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE travel_requests (
            id                        UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id               UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            department_id             UUID REFERENCES departments(id),
            position_id               UUID REFERENCES positions(id),
            destination               VARCHAR(200),
            start_date                DATE,
            to_date                   DATE,
            purpose                   TEXT,
            "grant"                   VARCHAR(50),
            transportation            travel_transportation,
            transportation_other_text VARCHAR(200),
            accommodation             travel_accommodation,
            accommodation_other_text  VARCHAR(200),
            request_by_date           DATE,
            supervisor_approved       BOOLEAN DEFAULT FALSE,
            supervisor_approved_date  DATE,
            hr_acknowledged           BOOLEAN DEFAULT FALSE,
            hr_acknowledgement_date   DATE,
            remarks                   TEXT,{AUDIT_COLUMNS}
        )
    """)
    op.create_index("ix_travel_requests_employee_dates", "travel_requests", ["employee_id", "start_date"])

    # ── 14. interviews ────────────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE interviews (
            id               UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            candidate_name   VARCHAR(255) NOT NULL,
            phone            VARCHAR(20),
            job_position     VARCHAR(255) NOT NULL,
            interviewer_name VARCHAR(255),
            interview_date   DATE,
            start_time       TIME,
            end_time         TIME,
            interview_mode   interview_mode,
            interview_status interview_status NOT NULL DEFAULT 'scheduled',
            hired_status     hired_status NOT NULL DEFAULT 'pending',
            score            NUMERIC(5,2),
            feedback         TEXT,
            reference_info   TEXT,{AUDIT_COLUMNS},
            CONSTRAINT ck_interviews_score_range CHECK (score >= 0 AND score <= 100)
        )
    """)
    op.create_index("ix_interviews_candidate_name", "interviews", ["candidate_name"])

    # ── 15. personnel_actions ─────────────────────────────────────────────
    op.execute(f"""
        CREATE TABLE personnel_actions (
            id                       UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            form_number              VARCHAR(20) NOT NULL DEFAULT 'SMRU-SF038',
            reference_number         VARCHAR(30) NOT NULL UNIQUE,
            employment_id            UUID NOT NULL REFERENCES employments(id) ON DELETE CASCADE,
            current_employee_no      VARCHAR(50),
            current_department_id    UUID REFERENCES departments(id),
            current_position_id      UUID REFERENCES positions(id),
            current_work_location_id UUID REFERENCES work_locations(id),
            current_salary           NUMERIC(12,2),
            current_employment_date  DATE,
            effective_date           DATE NOT NULL,
            action_type              personnel_action_type NOT NULL,
            action_subtype           personnel_action_subtype,
            is_transfer              BOOLEAN DEFAULT FALSE,
            transfer_type            personnel_transfer_type,
            new_department_id        UUID REFERENCES departments(id),
            new_position_id          UUID REFERENCES positions(id),
            new_work_location_id     UUID REFERENCES work_locations(id),
            new_salary               NUMERIC(12,2),
            new_work_schedule        VARCHAR(100),
            new_report_to            VARCHAR(150),
            new_pay_plan             VARCHAR(100),
            new_phone_ext            VARCHAR(20),
            new_email                VARCHAR(255),
            comments                 TEXT,
            change_details           TEXT,
            dept_head_approved       BOOLEAN DEFAULT FALSE,
            coo_approved             BOOLEAN DEFAULT FALSE,
            hr_approved              BOOLEAN DEFAULT FALSE,
            accountant_approved      BOOLEAN DEFAULT FALSE,
            implemented_at           TIMESTAMPTZ,{AUDIT_COLUMNS}
        )
    """)
    op.create_index("ix_personnel_actions_employment", "personnel_actions", ["employment_id"])

    # ── 16. notifications ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE notifications (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            recipient_id UUID NOT NULL REFERENCES employees(id) ON DELETE CASCADE,
            type         notification_type NOT NULL DEFAULT 'info',
            category     notification_category NOT NULL DEFAULT 'general',
            title        VARCHAR(200) NOT NULL,
            message      TEXT NOT NULL,
            data         JSONB,
            action_url   VARCHAR(500),
            entity_type  VARCHAR(50),
            entity_id    UUID,
            is_read      BOOLEAN DEFAULT FALSE,
            read_at      TIMESTAMPTZ,
            created_at   TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.create_index("ix_notifications_recipient_read", "notifications", ["recipient_id", "is_read"])


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "notifications",
        "personnel_actions",
        "interviews",
        "travel_requests",
        "leave_request_items",
        "leave_requests",
        "leave_balances",
        "holidays",
        "leave_types",
        "bulk_payroll_batches",
        "inter_organization_advances",
        "payrolls",
        "benefit_settings",
        "tax_calculation_logs",
        "tax_settings",
        "tax_brackets",
        "employee_funding_allocations",
        "position_slots",
        "grant_items",
        "grants",
        "probation_records",
        "employment_histories",
        "employments",
        "audit_trail",
        "role_assignments",
        "user_sessions",
        "employees",
        "positions",
        "departments",
        "work_locations",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    # Drop enum types
    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)

    op.execute('DROP EXTENSION IF EXISTS "uuid-ossp"')
