from .base import Role, AttendanceStatus, NotificationType
from .Profile import Profile, ParentStudent, TokenBlocklist
from .School import School, SchoolClass, Enrollment
from .AttendanceRecord import AttendanceRecord
from .Notification import Notification
from .AuditLog import AuditLog
