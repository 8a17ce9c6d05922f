"""001 – Initial schema: employees, users, clients, leave, automation, notifications, audit.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-16 09:00:00.000000+00:00
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
    ("employee_status", ["active", "on_leave", "resigned", "terminated"]),
    ("user_role", ["admin", "hr", "employee"]),
    ("client_status", ["active", "paused", "inactive"]),
    ("leave_status", ["pending", "approved", "rejected", "cancelled"]),
    ("pay_type", ["paid", "unpaid", "auto"]),
    ("task_status", ["pending", "in_progress", "completed", "cancelled"]),
    ("task_priority", ["low", "medium", "high", "urgent"]),
    ("schedule_type", ["daily", "weekdays", "custom"]),
    (
        "notification_type",
        ["info", "action_required", "approval", "reminder", "alert"],
    ),
]


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

    # ── 1. employees ──────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE employees (
            id             UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_code  VARCHAR(20)  NOT NULL UNIQUE,
            first_name     VARCHAR(100) NOT NULL,
            last_name      VARCHAR(100),
            email          VARCHAR(255) UNIQUE,
            hire_date      DATE NOT NULL,
            leave_credits  NUMERIC(6,1) NOT NULL DEFAULT 0,
            status         employee_status NOT NULL DEFAULT 'active',
            created_at     TIMESTAMPTZ DEFAULT NOW(),
            updated_at     TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_employee_credits_non_negative CHECK (leave_credits >= 0)
        )
    """)

    # ── 2. users ──────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE users (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            email        VARCHAR(255) NOT NULL UNIQUE,
            full_name    VARCHAR(200),
            role         user_role NOT NULL DEFAULT 'employee',
            employee_id  UUID REFERENCES employees(id) ON DELETE SET NULL,
            is_active    BOOLEAN NOT NULL DEFAULT TRUE,
            created_at   TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_users_employee_id ON users (employee_id)")
    op.execute("CREATE INDEX ix_users_role_active ON users (role) WHERE is_active")

    # ── 3. clients ────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE clients (
            id                        UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            name                      VARCHAR(200) NOT NULL,
            status                    client_status NOT NULL DEFAULT 'active',
            contract_start_date       DATE,
            contract_duration_months  INTEGER,
            contract_end_date         DATE,
            created_at                TIMESTAMPTZ DEFAULT NOW(),
            updated_at                TIMESTAMPTZ DEFAULT NOW()
        )
    """)

    # ── 4. leave_requests ─────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE leave_requests (
            id                  UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            employee_id         UUID NOT NULL REFERENCES employees(id),
            start_date          DATE NOT NULL,
            end_date            DATE NOT NULL,
            reason              TEXT,
            requested_pay_type  pay_type NOT NULL DEFAULT 'auto',
            pay_type            pay_type NOT NULL DEFAULT 'unpaid',
            total_days          INTEGER NOT NULL,
            credits_deducted    NUMERIC(6,1) NOT NULL DEFAULT 0,
            status              leave_status NOT NULL DEFAULT 'pending',
            reviewed_by         UUID REFERENCES users(id) ON DELETE SET NULL,
            reviewed_at         TIMESTAMPTZ,
            rejection_comment   TEXT,
            attachment_ref      VARCHAR(500),
            cancelled_at        TIMESTAMPTZ,
            created_at          TIMESTAMPTZ DEFAULT NOW(),
            updated_at          TIMESTAMPTZ DEFAULT NOW(),
            CONSTRAINT ck_leave_range CHECK (end_date >= start_date),
            CONSTRAINT ck_leave_credits_deducted CHECK (credits_deducted >= 0)
        )
    """)
    op.execute(
        "CREATE INDEX ix_leave_requests_employee_range "
        "ON leave_requests (employee_id, start_date, end_date)"
    )

    # ── 5. automation_rules ───────────────────────────────────────────────
    op.execute("""
        CREATE TABLE automation_rules (
            id                    UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            client_id             UUID NOT NULL REFERENCES clients(id) ON DELETE CASCADE,
            title_template        VARCHAR(255) NOT NULL,
            description_template  TEXT,
            assigned_to           UUID REFERENCES users(id) ON DELETE SET NULL,
            priority              task_priority NOT NULL DEFAULT 'medium',
            schedule_type         schedule_type NOT NULL DEFAULT 'daily',
            days_of_week          JSONB NOT NULL DEFAULT '[]'::jsonb,
            start_date            DATE,
            end_date              DATE,
            is_active             BOOLEAN NOT NULL DEFAULT TRUE,
            last_run_at           TIMESTAMPTZ,
            created_by            UUID REFERENCES users(id) ON DELETE SET NULL,
            created_at            TIMESTAMPTZ DEFAULT NOW(),
            updated_at            TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_automation_rules_client_id ON automation_rules (client_id)")

    # ── 6. tasks ──────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE tasks (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            rule_id       UUID REFERENCES automation_rules(id) ON DELETE SET NULL,
            client_id     UUID REFERENCES clients(id) ON DELETE CASCADE,
            title         VARCHAR(255) NOT NULL,
            description   TEXT,
            assigned_to   UUID REFERENCES users(id) ON DELETE SET NULL,
            priority      task_priority NOT NULL DEFAULT 'medium',
            due_date      DATE NOT NULL,
            status        task_status NOT NULL DEFAULT 'pending',
            is_automated  BOOLEAN NOT NULL DEFAULT FALSE,
            created_at    TIMESTAMPTZ DEFAULT NOW(),
            updated_at    TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_tasks_rule_id ON tasks (rule_id)")

    # ── 7. notifications ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE notifications (
            id            UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            recipient_id  UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            type          notification_type NOT NULL DEFAULT 'info',
            title         VARCHAR(200) NOT NULL,
            message       TEXT NOT NULL,
            entity_type   VARCHAR(50),
            entity_id     UUID,
            is_read       BOOLEAN NOT NULL DEFAULT FALSE,
            read_at       TIMESTAMPTZ,
            created_at    TIMESTAMPTZ DEFAULT NOW()
        )
    """)
    op.execute(
        "CREATE INDEX ix_notifications_recipient_read "
        "ON notifications (recipient_id, is_read)"
    )

    # ── 8. audit_trail ────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE audit_trail (
            id           UUID PRIMARY KEY DEFAULT uuid_generate_v4(),
            actor_id     UUID REFERENCES users(id) ON DELETE SET NULL,
            action       VARCHAR(50) NOT NULL,
            entity_type  VARCHAR(50) NOT NULL,
            entity_id    UUID NOT NULL,
            old_values   JSONB,
            new_values   JSONB,
            created_at   TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("CREATE INDEX ix_audit_trail_actor_id ON audit_trail (actor_id)")
    op.execute("CREATE INDEX ix_audit_trail_entity ON audit_trail (entity_type, entity_id)")
    op.execute("CREATE INDEX ix_audit_trail_created_at ON audit_trail (created_at)")


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    # Drop tables in reverse dependency order
    tables = [
        "audit_trail",
        "notifications",
        "tasks",
        "automation_rules",
        "leave_requests",
        "clients",
        "users",
        "employees",
    ]
    for t in tables:
        op.execute(f"DROP TABLE IF EXISTS {t} CASCADE")

    # Drop enum types
    for name, _ in reversed(ENUM_TYPES):
        _drop_enum(name)

    op.execute('DROP EXTENSION IF EXISTS "uuid-ossp"')
