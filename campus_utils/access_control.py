from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from campus.extensions import db
from campus.models import Role, Profile, AttendanceRecord, SchoolClass, ParentStudent
from campus_utils.errors import BadRequest, Forbidden, NotFound, DataUnavailable


def taught_class_ids(teacher):
    return select(SchoolClass.id).where(SchoolClass.teacher_id == teacher.id)


def linked_student_ids(parent):
    return select(ParentStudent.student_id).where(ParentStudent.parent_id == parent.id)


def _student_scope(caller, query):
    return query.filter(AttendanceRecord.student_id == caller.id)


def _teacher_scope(caller, query):
    return query.filter(AttendanceRecord.class_id.in_(taught_class_ids(caller)))


def _parent_scope(caller, query):
    return query.filter(AttendanceRecord.student_id.in_(linked_student_ids(caller)))


def _admin_scope(caller, query):
    return query


ATTENDANCE_SCOPES = {
    Role.student: _student_scope,
    Role.teacher: _teacher_scope,
    Role.parent: _parent_scope,
    Role.admin: _admin_scope,
}


def scope_attendance_query(caller, query=None):
    """
    Restricts an AttendanceRecord query to the rows the caller may read.
    - Students see only their own rows.
    - Teachers see rows for the classes they teach.
    - Parents see rows for their linked children.
    - Admins see everything.
    Raises InvalidRole for a caller whose role is not one of the above.
    """
    if caller is None:
        raise BadRequest("No caller provided")

    role = Role.parse(caller.role)
    if query is None:
        query = AttendanceRecord.query
    return ATTENDANCE_SCOPES[role](caller, query)


def resolve_caller(user_id, user_role=None):
    """
    Loads the Profile a request claims to act as. A claimed role must parse
    and must match the stored role.
    """
    role = Role.parse(user_role) if user_role is not None else None

    if isinstance(user_id, int) and not isinstance(user_id, bool):
        profile_id = user_id
    elif isinstance(user_id, str) and user_id.strip().isdigit():
        profile_id = int(user_id.strip())
    else:
        raise BadRequest(f"Invalid user id: {user_id!r}")

    try:
        profile = db.session.get(Profile, profile_id)
    except SQLAlchemyError as e:
        raise DataUnavailable("Profile lookup failed") from e

    if profile is None:
        raise NotFound("Profile not found")
    if role is not None and profile.role is not role:
        raise Forbidden("Claimed role does not match profile")
    return profile
