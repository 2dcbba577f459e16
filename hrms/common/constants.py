"""Enums and constants for the HRMS API — matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """``values_callable`` for ``sa.Enum`` columns whose values differ from member names."""
    return [member.value for member in enum_cls]


# ── Employee / Core HR ──────────────────────────────────────────────

class Organization(str, enum.Enum):
    SMRU = "SMRU"
    BHF = "BHF"


class EmployeeStatus(str, enum.Enum):
    expat = "Expat"
    local_id = "Local ID"
    local_non_id = "Local non ID"


class GenderType(str, enum.Enum):
    male = "male"
    female = "female"
    other = "other"


class MaritalStatus(str, enum.Enum):
    single = "single"
    married = "married"
    divorced = "divorced"
    widowed = "widowed"


# ── Employment ──────────────────────────────────────────────────────

class EmploymentType(str, enum.Enum):
    full_time = "Full-time"
    part_time = "Part-time"
    contract = "Contract"
    temporary = "Temporary"


class PayMethod(str, enum.Enum):
    bank_transfer = "Transferred to bank"
    cash = "Cash"
    cheque = "Cheque"


class ProbationStatus(str, enum.Enum):
    ongoing = "ongoing"
    extended = "extended"
    passed = "passed"
    failed = "failed"


class ProbationEventType(str, enum.Enum):
    initial = "initial"
    extension = "extension"
    passed = "passed"
    failed = "failed"


# ── Funding ─────────────────────────────────────────────────────────

class AllocationType(str, enum.Enum):
    grant = "grant"
    org_funded = "org_funded"


class AllocationStatus(str, enum.Enum):
    active = "active"
    historical = "historical"
    terminated = "terminated"
    inactive = "inactive"
    closed = "closed"


class SalaryType(str, enum.Enum):
    probation_salary = "probation_salary"
    pass_probation_salary = "pass_probation_salary"


# ── Tax / Payroll ───────────────────────────────────────────────────

class TaxSettingType(str, enum.Enum):
    DEDUCTION = "DEDUCTION"
    RATE = "RATE"
    LIMIT = "LIMIT"
    ALLOWANCE = "ALLOWANCE"


class BenefitSettingType(str, enum.Enum):
    percentage = "percentage"
    amount = "amount"


class BatchStatus(str, enum.Enum):
    pending = "pending"
    processing = "processing"
    completed = "completed"
    failed = "failed"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    declined = "declined"
    cancelled = "cancelled"


class LeaveApprovalType(str, enum.Enum):
    supervisor = "supervisor"
    hr_site_admin = "hr_site_admin"


# ── Travel ──────────────────────────────────────────────────────────

class Transportation(str, enum.Enum):
    smru_vehicle = "smru_vehicle"
    public_transportation = "public_transportation"
    air = "air"
    other = "other"


class Accommodation(str, enum.Enum):
    smru_arrangement = "smru_arrangement"
    self_arrangement = "self_arrangement"
    other = "other"


class TravelStatus(str, enum.Enum):
    pending = "pending"
    supervisor_approved = "supervisor_approved"
    completed = "completed"


# ── Recruitment ─────────────────────────────────────────────────────

class InterviewMode(str, enum.Enum):
    in_person = "in_person"
    phone = "phone"
    video = "video"


class InterviewStatus(str, enum.Enum):
    scheduled = "scheduled"
    completed = "completed"
    cancelled = "cancelled"


class HiredStatus(str, enum.Enum):
    pending = "pending"
    hired = "hired"
    not_hired = "not_hired"


class OfferStatus(str, enum.Enum):
    pending = "pending"
    accepted = "accepted"
    declined = "declined"
    expired = "expired"


# ── Resignations ────────────────────────────────────────────────────

class AcknowledgementStatus(str, enum.Enum):
    pending = "pending"
    acknowledged = "acknowledged"
    rejected = "rejected"


class AcknowledgementAction(str, enum.Enum):
    acknowledge = "acknowledge"
    reject = "reject"


# ── Personnel actions ───────────────────────────────────────────────

class PersonnelActionType(str, enum.Enum):
    appointment = "appointment"
    fiscal_increment = "fiscal_increment"
    title_change = "title_change"
    voluntary_separation = "voluntary_separation"
    position_change = "position_change"
    transfer = "transfer"


class PersonnelActionSubtype(str, enum.Enum):
    re_evaluated_pay_adjustment = "re_evaluated_pay_adjustment"
    promotion = "promotion"
    demotion = "demotion"
    end_of_contract = "end_of_contract"
    work_allocation = "work_allocation"


class TransferType(str, enum.Enum):
    internal_department = "internal_department"
    site_to_site = "site_to_site"
    attachment_position = "attachment_position"


class PersonnelActionStatus(str, enum.Enum):
    pending = "pending"
    partial_approved = "partial_approved"
    fully_approved = "fully_approved"
    implemented = "implemented"


class PersonnelApprovalType(str, enum.Enum):
    dept_head = "dept_head"
    coo = "coo"
    hr = "hr"
    accountant = "accountant"


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    manager = "manager"
    hr_admin = "hr_admin"
    system_admin = "system_admin"


# ── Notifications ───────────────────────────────────────────────────

class NotificationType(str, enum.Enum):
    info = "info"
    action_required = "action_required"
    approval = "approval"
    reminder = "reminder"
    alert = "alert"


class NotificationCategory(str, enum.Enum):
    general = "general"
    employee = "employee"
    leave = "leave"
    travel = "travel"
    payroll = "payroll"
    grant = "grant"
    import_ = "import"
    personnel_action = "personnel_action"
    probation = "probation"
    resignation = "resignation"


# ── Role-based permissions ──────────────────────────────────────────

_EMPLOYEE_PERMISSIONS = [
    "employee:read",
    "leave:read",
    "leave:request",
    "travel:read",
    "travel:request",
    "notification:read_own",
]

_MANAGER_PERMISSIONS = _EMPLOYEE_PERMISSIONS + [
    "employment:read",
    "grant:read",
    "leave:approve",
    "travel:approve",
    "interview:read",
    "interview:edit",
    "job_offer:read",
    "job_offer:edit",
    "resignation:read",
    "personnel_action:read",
]

_HR_ADMIN_PERMISSIONS = _MANAGER_PERMISSIONS + [
    "employee:edit",
    "employment:edit",
    "grant:edit",
    "payroll:read",
    "payroll:edit",
    "tax:read",
    "tax:edit",
    "leave:configure",
    "personnel_action:edit",
    "personnel_action:approve",
    "resignation:edit",
    "import:run",
    "export:run",
]

PERMISSIONS: dict[UserRole, list[str]] = {
    UserRole.employee: _EMPLOYEE_PERMISSIONS,
    UserRole.manager: _MANAGER_PERMISSIONS,
    UserRole.hr_admin: _HR_ADMIN_PERMISSIONS,
    UserRole.system_admin: _HR_ADMIN_PERMISSIONS + ["system:manage_users"],
}


# ── Broadcast channels ──────────────────────────────────────────────

EMPLOYEE_ACTIONS_CHANNEL = "employee-actions"
PAYROLL_BULK_CHANNEL_PREFIX = "payroll-bulk."
USER_CHANNEL_PREFIX = "user."


# ── Misc ────────────────────────────────────────────────────────────

DATE_FORMAT = "%Y-%m-%d"
DEFAULT_PAGE_SIZE = 15
MAX_PAGE_SIZE = 100
PERSONNEL_ACTION_FORM_NUMBER = "SMRU-SF038"
JOB_OFFER_ID_TAG = "SMRU-BHF"
