from __future__ import annotations

import enum


class RateType(enum.StrEnum):
    """How an employee is paid under a rate record or snapshot."""

    HOURLY = "hourly"
    PER_VISIT = "per_visit"
    MONTHLY = "monthly"


class TimesheetSource(enum.StrEnum):
    """Origin of a timesheet."""

    MANUAL = "manual"
    CLOCK_EVENT = "clock_event"
    PAYROLL_PREP = "payroll_prep"


class PayrollRunStatus(enum.StrEnum):
    """Lifecycle of a payroll run."""

    DRAFT = "draft"
    FINALIZED = "finalized"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    PAYROLL_RUN = "PAYROLL_RUN"
    PAYROLL_PERIOD = "PAYROLL_PERIOD"
    TIMESHEET_BATCH = "TIMESHEET_BATCH"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    RECALCULATE = "RECALCULATE"
    APPROVE = "APPROVE"
    GENERATE = "GENERATE"
    BACKFILL = "BACKFILL"
    SYNC_MONTHLY = "SYNC_MONTHLY"


class PayrollEntryType(enum.StrEnum):
    """Direction of a payroll entry; deductions are stored as negative amounts."""

    EARNING = "earning"
    DEDUCTION = "deduction"


class PayrollEntryCategory(enum.StrEnum):
    MONTHLY = "monthly"
    MISSED_DAY = "missed_day"


class PayrollEntrySource(enum.StrEnum):
    """Procedure that wrote an entry. Automatic entries are replaced on every sync."""

    MONTHLY_BASE = "auto:monthly_base"
    MISSED_DAY = "auto:missed_day"
