from datetime import date, datetime
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from campus.extensions import db
from campus.models import (
    Role, AttendanceStatus, NotificationType, Profile, ParentStudent,
    SchoolClass, Enrollment, AttendanceRecord, Notification,
)
from campus_utils.access_control import scope_attendance_query
from campus_utils.audit import log_event
from campus_utils.errors import BadRequest, Forbidden, NotFound, DataUnavailable
from campus_utils.qr import TextPayloadDecoder

STATUSES = tuple(status.value for status in AttendanceStatus)
CHECK_IN_STATUSES = {AttendanceStatus.present, AttendanceStatus.late}


def percentage(part, total):
    """round(part / total * 100) rounding halves up; 0 when total is 0."""
    if not total:
        return 0
    return (200 * part + total) // (2 * total)


def summarize(records):
    """
    Counts an iterable of AttendanceRecord rows (or bare status strings).

    present + absent + late + excused + other == total always holds;
    statuses outside the known set are counted under "other".
    """
    counts = {status: 0 for status in STATUSES}
    total = 0
    other = 0
    for record in records:
        status = getattr(record, "status", record)
        total += 1
        if status in counts:
            counts[status] += 1
        else:
            other += 1

    return {
        "total": total,
        **counts,
        "other": other,
        "percentage": percentage(counts["present"], total),
    }


def fetch_attendance(caller, student_id=None, class_id=None, date_from=None, date_to=None, limit=None):
    """
    Returns (records, summary) for everything the caller may read, narrowed by
    the optional filters. Filters only ever intersect the caller's scope.
    """
    if date_from and date_to and date_from > date_to:
        raise BadRequest("date_from must not be after date_to")

    query = scope_attendance_query(caller)

    if student_id is not None:
        query = query.filter(AttendanceRecord.student_id == student_id)
    if class_id is not None:
        query = query.filter(AttendanceRecord.class_id == class_id)
    if date_from is not None:
        query = query.filter(AttendanceRecord.date >= date_from)
    if date_to is not None:
        query = query.filter(AttendanceRecord.date <= date_to)

    query = query.order_by(AttendanceRecord.date.desc(), AttendanceRecord.id.desc())
    if limit:
        query = query.limit(limit)

    try:
        records = query.all()
    except SQLAlchemyError as e:
        current_app.logger.error("Attendance query failed for profile %s: %s", caller.id, e)
        raise DataUnavailable("Attendance data is currently unavailable") from e

    return records, summarize(records)


def _load(model, ident, label):
    try:
        obj = db.session.get(model, ident)
    except SQLAlchemyError as e:
        raise DataUnavailable(f"Could not load {label}") from e
    if obj is None:
        raise NotFound(f"{label.capitalize()} not found")
    return obj


def _load_taught_class(caller, class_id):
    if caller is None or Role.parse(caller.role) is not Role.teacher:
        raise Forbidden("Only teachers can manage class attendance")

    school_class = _load(SchoolClass, class_id, "class")
    if school_class.teacher_id != caller.id:
        raise Forbidden("You do not teach this class")
    return school_class


def _find_record(student_id, class_id, on_date):
    return AttendanceRecord.query.filter_by(
        student_id=student_id, class_id=class_id, date=on_date
    ).first()


def _write_record(student_id, class_id, on_date, fields, overwrite):
    record = _find_record(student_id, class_id, on_date)
    if record is None:
        record = AttendanceRecord(student_id=student_id, class_id=class_id, date=on_date)
        db.session.add(record)
    elif not overwrite:
        raise BadRequest("Attendance already recorded for this class today")

    for name, value in fields.items():
        setattr(record, name, value)
    db.session.commit()
    return record


def _upsert_record(student_id, class_id, status, marked_by, on_date=None, notes=None,
                   check_in_time=None, location_verified=True, now=None, overwrite=True):
    """
    Writes the single row for (student, class, date). With overwrite=False an
    existing row is left alone and BadRequest is raised instead.
    """
    now = now or datetime.now()
    on_date = on_date or now.date()
    if check_in_time is None and status in CHECK_IN_STATUSES:
        check_in_time = now.strftime("%H:%M")

    fields = {
        "status": status.value,
        "check_in_time": check_in_time if status in CHECK_IN_STATUSES else None,
        "marked_by": marked_by,
        "notes": notes,
        "location_verified": bool(location_verified),
    }

    try:
        try:
            record = _write_record(student_id, class_id, on_date, fields, overwrite)
        except IntegrityError:
            # a concurrent request inserted the same key first; write over its row
            db.session.rollback()
            record = _write_record(student_id, class_id, on_date, fields, overwrite)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error("Attendance write failed for student %s class %s: %s",
                                 student_id, class_id, e)
        raise DataUnavailable("Attendance could not be saved; no attendance was recorded") from e

    return record


def _audit(event_type, **kwargs):
    """Audit file failures are logged; they never undo a committed write."""
    try:
        log_event(event_type, **kwargs)
    except OSError as e:
        current_app.logger.error("Could not write audit event %s: %s", event_type, e)


def notify_parents_of_absence(student, on_date):
    """
    Writes one "Student Absent" notification per linked parent.
    Failures are logged and swallowed; returns the number of notifications sent.
    """
    try:
        links = ParentStudent.query.filter_by(student_id=student.id).all()
        notifications = [
            Notification(
                recipient_id=link.parent_id,
                title="Student Absent",
                message=f"Your child {student.full_name} was marked absent on {on_date.isoformat()}.",
                type=NotificationType.attendance,
            )
            for link in links
        ]
        db.session.add_all(notifications)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.warning("Absence notification failed for student %s: %s", student.id, e)
        _audit("ABSENCE_NOTIFICATION_FAILED", user_id=student.id, description=str(e), level="WARNING")
        return 0

    return len(notifications)


def mark_attendance(caller, student_id, class_id, status, on_date=None, notes=None,
                    check_in_time=None, location_verified=True, now=None):
    """
    Teacher-only upsert keyed by (student, class, date). Marking a student
    absent notifies every linked parent once the attendance row is committed.
    """
    school_class = _load_taught_class(caller, class_id)
    status = AttendanceStatus.parse(status)

    student = _load(Profile, student_id, "student")
    if student.role is not Role.student:
        raise NotFound("Student not found")

    now = now or datetime.now()
    on_date = on_date or now.date()
    record = _upsert_record(
        student.id, school_class.id, status, marked_by=caller.id, on_date=on_date,
        notes=notes, check_in_time=check_in_time, location_verified=location_verified, now=now,
    )
    _audit("ATTENDANCE_MARKED", user_id=caller.id,
           description=f"student={student.id} class={school_class.id} date={on_date} status={status.value}")

    if status is AttendanceStatus.absent:
        notify_parents_of_absence(student, on_date)

    return record


def check_in(caller, class_id, now=None):
    """
    Student self check-in: records the caller present in an enrolled class.
    A row already recorded for today, by a teacher or an earlier scan, is kept.
    """
    if caller is None or Role.parse(caller.role) is not Role.student:
        raise Forbidden("Only students can check themselves in")

    school_class = _load(SchoolClass, class_id, "class")
    enrolled = Enrollment.query.filter_by(student_id=caller.id, class_id=school_class.id).first()
    if not enrolled:
        raise Forbidden("You are not enrolled in this class")

    record = _upsert_record(
        caller.id, school_class.id, AttendanceStatus.present, marked_by=caller.id,
        notes="Marked via QR code", location_verified=True, now=now, overwrite=False,
    )
    _audit("ATTENDANCE_CHECK_IN", user_id=caller.id, description=f"class={school_class.id}")
    return record


def record_scan(caller, frame, decoder=None, now=None):
    """
    Handles a scanned attendance QR code.
    Students check themselves in with {"type": "attendance", "classId": ...};
    teachers mark a student present with {"type": "attendance", "student_id": ..., "class_id": ...}.
    """
    payload = (decoder or TextPayloadDecoder()).decode(frame)
    if payload is None:
        raise BadRequest("Invalid QR code format")

    role = Role.parse(caller.role)
    class_id = payload.get("classId") or payload.get("class_id")
    if not class_id:
        raise BadRequest("QR code does not name a class")

    if role is Role.teacher:
        student_id = payload.get("student_id") or payload.get("studentId")
        if not student_id:
            raise BadRequest("QR code does not name a student")
        return mark_attendance(caller, student_id, class_id, AttendanceStatus.present, now=now)

    return check_in(caller, class_id, now=now)


def today_for_class(caller, class_id, today=None):
    """Records marked today for one class the caller teaches."""
    school_class = _load_taught_class(caller, class_id)
    today = today or date.today()
    records, _ = fetch_attendance(caller, class_id=school_class.id, date_from=today, date_to=today)
    return records
