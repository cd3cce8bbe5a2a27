import enum
from campus_utils.errors import BadRequest, InvalidRole


class Role(enum.Enum):
    student = "student"
    teacher = "teacher"
    parent = "parent"
    admin = "admin"

    @classmethod
    def parse(cls, value):
        """Return the Role for a role name, raising InvalidRole for anything else."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise InvalidRole(value)
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise InvalidRole(value)


class AttendanceStatus(enum.Enum):
    present = "present"
    absent = "absent"
    late = "late"
    excused = "excused"

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise BadRequest(f"Invalid attendance status: {value!r}")


class NotificationType(enum.Enum):
    attendance = "attendance"
    general = "general"
