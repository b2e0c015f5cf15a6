from sqlmodel import SQLModel

from cleanpay.models.audit import AuditLog
from cleanpay.models.base import DocumentBase, TimestampMixin
from cleanpay.models.enums import (
    AuditAction,
    AuditEntityType,
    PayrollEntryCategory,
    PayrollEntrySource,
    PayrollEntryType,
    PayrollRunStatus,
    RateType,
    TimesheetSource,
)
from cleanpay.models.job import ServiceJob
from cleanpay.models.payroll_entry import PayrollEntry
from cleanpay.models.payroll_run import PayrollRun, PayrollRunSummary
from cleanpay.models.rate import EmployeeRate
from cleanpay.models.timesheet import Timesheet
from cleanpay.models.user import UserProfile

__all__ = [
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "DocumentBase",
    "EmployeeRate",
    "PayrollEntry",
    "PayrollEntryCategory",
    "PayrollEntrySource",
    "PayrollEntryType",
    "PayrollRun",
    "PayrollRunStatus",
    "PayrollRunSummary",
    "RateType",
    "SQLModel",
    "ServiceJob",
    "Timesheet",
    "TimesheetSource",
    "TimestampMixin",
    "UserProfile",
]
