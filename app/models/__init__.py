from .error_log import ErrorLog
from .security_log import SecurityLog
from .study import PATENT_STATUSES, Study
from .user import User

__all__ = [
    "ErrorLog",
    "PATENT_STATUSES",
    "SecurityLog",
    "Study",
    "User",
]
