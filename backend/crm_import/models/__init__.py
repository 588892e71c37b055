from crm_import.models.account import Account
from crm_import.models.job import Job
from crm_import.models.user import User
from crm_import.models.activity import ActivityLog

__all__ = [
    "Account",
    "Job",
    "User",
    "ActivityLog",
]
