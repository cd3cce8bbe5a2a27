from datetime import date, datetime

import pytest
from sqlalchemy.exc import OperationalError

import campus.attendance as attendance
from campus.attendance import mark_attendance, check_in, record_scan, fetch_attendance, today_for_class
from campus.extensions import db
from campus.models import AttendanceRecord, Notification, NotificationType
from campus_utils.errors import Forbidden, NotFound, BadRequest, DataUnavailable

MORNING = datetime(2026, 3, 2, 8, 15)


def _records_for(student, school_class):
    return AttendanceRecord.query.filter_by(student_id=student.id, class_id=school_class.id).all()


def test_second_mark_overwrites_first(school):
    s1 = school.students[0]
    mark_attendance(school.teacher, s1.id, school.math.id, "present", now=MORNING)
    mark_attendance(school.teacher, s1.id, school.math.id, "late", now=MORNING)

    records = _records_for(s1, school.math)
    assert len(records) == 1
    assert records[0].status == "late"
    assert records[0].date == MORNING.date()
    assert records[0].marked_by == school.teacher.id


def test_check_in_time_only_for_present_or_late(school):
    s2 = school.students[1]
    record = mark_attendance(school.teacher, s2.id, school.math.id, "present", now=MORNING)
    assert record.check_in_time == "08:15"
    assert record.location_verified is True

    record = mark_attendance(school.teacher, s2.id, school.math.id, "excused", now=MORNING)
    assert record.check_in_time is None


def test_date_defaults_to_today(school):
    s2 = school.students[1]
    record = mark_attendance(school.teacher, s2.id, school.math.id, "present")
    assert record.date == date.today()


def test_only_teachers_may_mark(school):
    for caller in (school.admin, school.parent, school.students[0]):
        with pytest.raises(Forbidden):
            mark_attendance(caller, school.students[0].id, school.math.id, "present")
    assert AttendanceRecord.query.count() == 0


def test_teacher_cannot_mark_someone_elses_class(school):
    with pytest.raises(Forbidden):
        mark_attendance(school.teacher, school.students[3].id, school.science.id, "present")


def test_unknown_class_or_student(school):
    with pytest.raises(NotFound):
        mark_attendance(school.teacher, school.students[0].id, 9999, "present")
    with pytest.raises(NotFound):
        mark_attendance(school.teacher, 9999, school.math.id, "present")
    # a parent profile is not a student
    with pytest.raises(NotFound):
        mark_attendance(school.teacher, school.parent.id, school.math.id, "present")


def test_invalid_status(school):
    with pytest.raises(BadRequest):
        mark_attendance(school.teacher, school.students[0].id, school.math.id, "sleeping")


def test_absent_notifies_each_linked_parent(school):
    s1 = school.students[0]
    mark_attendance(school.teacher, s1.id, school.math.id, "absent", now=MORNING)

    notifications = Notification.query.all()
    assert sorted(n.recipient_id for n in notifications) == sorted([school.parent.id, school.parent2.id])
    assert all(n.type is NotificationType.attendance for n in notifications)
    assert all(n.title == "Student Absent" for n in notifications)


def test_non_absent_status_sends_nothing(school):
    s1 = school.students[0]
    for status in ("present", "late", "excused"):
        mark_attendance(school.teacher, s1.id, school.math.id, status, now=MORNING)
    assert Notification.query.count() == 0


def test_absent_student_without_parents_sends_nothing(school):
    mark_attendance(school.teacher, school.students[1].id, school.math.id, "absent", now=MORNING)
    assert Notification.query.count() == 0


def test_notification_failure_does_not_undo_marking(school, monkeypatch):
    class BrokenLinks:
        class query:
            @staticmethod
            def filter_by(**kwargs):
                raise OperationalError("SELECT", {}, Exception("notifications down"))

    monkeypatch.setattr(attendance, "ParentStudent", BrokenLinks)
    s1 = school.students[0]

    record = mark_attendance(school.teacher, s1.id, school.math.id, "absent", now=MORNING)

    assert record.status == "absent"
    assert len(_records_for(s1, school.math)) == 1
    assert Notification.query.count() == 0


def test_write_failure_records_nothing(school, monkeypatch):
    def failing_commit():
        raise OperationalError("INSERT", {}, Exception("disk full"))

    monkeypatch.setattr(db.session, "commit", failing_commit)
    with pytest.raises(DataUnavailable) as excinfo:
        mark_attendance(school.teacher, school.students[0].id, school.math.id, "present", now=MORNING)
    monkeypatch.undo()

    assert "no attendance was recorded" in excinfo.value.message
    assert AttendanceRecord.query.count() == 0


def test_unmarked_students_are_not_counted(school):
    s1, s2, s3 = school.students[:3]
    mark_attendance(school.teacher, s1.id, school.math.id, "present")
    mark_attendance(school.teacher, s2.id, school.math.id, "present")

    today = date.today()
    records, summary = fetch_attendance(school.teacher, date_from=today, date_to=today)

    assert summary["total"] == 2
    assert summary["present"] == 2
    assert summary["percentage"] == 100
    assert s3.id not in {r.student_id for r in records}
    assert len(today_for_class(school.teacher, school.math.id)) == 2


def test_student_check_in(school):
    s1 = school.students[0]
    record = check_in(s1, school.math.id, now=MORNING)

    assert record.status == "present"
    assert record.notes == "Marked via QR code"
    assert record.location_verified is True


def test_check_in_requires_enrollment(school):
    with pytest.raises(Forbidden):
        check_in(school.students[3], school.math.id)


def test_scan_dispatches_by_role(school):
    s2 = school.students[1]
    record = record_scan(
        school.teacher,
        f'{{"type": "attendance", "student_id": {s2.id}, "class_id": {school.math.id}}}',
        now=MORNING,
    )
    assert record.student_id == s2.id
    assert record.marked_by == school.teacher.id

    record = record_scan(school.students[0], {"type": "attendance", "classId": school.math.id}, now=MORNING)
    assert record.student_id == school.students[0].id


def test_scan_rejects_unreadable_payload(school):
    with pytest.raises(BadRequest):
        record_scan(school.students[0], "not a qr payload")
    with pytest.raises(BadRequest):
        record_scan(school.students[0], '{"type": "lunch", "classId": 1}')


def test_check_in_keeps_a_teachers_mark(school):
    s1 = school.students[0]
    mark_attendance(school.teacher, s1.id, school.math.id, "absent", now=MORNING)

    with pytest.raises(BadRequest):
        check_in(s1, school.math.id, now=MORNING)

    records = _records_for(s1, school.math)
    assert len(records) == 1
    assert records[0].status == "absent"
    assert records[0].marked_by == school.teacher.id


def test_second_check_in_is_refused(school):
    s1 = school.students[0]
    check_in(s1, school.math.id, now=MORNING)
    with pytest.raises(BadRequest):
        check_in(s1, school.math.id, now=MORNING)
    assert len(_records_for(s1, school.math)) == 1


def test_concurrent_first_mark_falls_back_to_update(school, add_record, monkeypatch):
    s1 = school.students[0]
    # another request has already inserted the row this one did not see
    add_record(s1, school.math, MORNING.date(), "present")
    real_find = attendance._find_record
    lookups = []

    def stale_find(*args):
        lookups.append(args)
        return None if len(lookups) == 1 else real_find(*args)

    monkeypatch.setattr(attendance, "_find_record", stale_find)

    record = mark_attendance(school.teacher, s1.id, school.math.id, "late", now=MORNING)

    assert len(lookups) == 2
    assert record.status == "late"
    records = _records_for(s1, school.math)
    assert len(records) == 1
    assert records[0].status == "late"


def test_concurrent_check_in_does_not_overwrite(school, add_record, monkeypatch):
    s1 = school.students[0]
    add_record(s1, school.math, MORNING.date(), "excused")
    real_find = attendance._find_record
    lookups = []

    def stale_find(*args):
        lookups.append(args)
        return None if len(lookups) == 1 else real_find(*args)

    monkeypatch.setattr(attendance, "_find_record", stale_find)

    with pytest.raises(BadRequest):
        check_in(s1, school.math.id, now=MORNING)
    assert _records_for(s1, school.math)[0].status == "excused"


def test_audit_file_failure_does_not_fail_a_committed_mark(school, monkeypatch):
    def broken_log_event(*args, **kwargs):
        raise OSError("read-only file system")

    monkeypatch.setattr(attendance, "log_event", broken_log_event)
    s1 = school.students[0]

    record = mark_attendance(school.teacher, s1.id, school.math.id, "present", now=MORNING)

    assert record.status == "present"
    assert len(_records_for(s1, school.math)) == 1
