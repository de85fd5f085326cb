"""SQLAlchemy ORM models."""

from vulnradar.models.audit_log import AuditLog
from vulnradar.models.base import Base
from vulnradar.models.company import Company, CompanyVendor, UserCompany
from vulnradar.models.task import Task, TaskNote
from vulnradar.models.user import User
from vulnradar.models.vendor import Vendor
from vulnradar.models.vulnerability import Vulnerability

__all__ = [
    "AuditLog",
    "Base",
    "Company",
    "CompanyVendor",
    "Task",
    "TaskNote",
    "User",
    "UserCompany",
    "Vendor",
    "Vulnerability",
]
