import os
from datetime import date, timedelta
from campus.extensions import db
from campus.models import (
    Role, AttendanceStatus, Profile, ParentStudent, School, SchoolClass, Enrollment,
    AttendanceRecord, Notification, AuditLog, TokenBlocklist,
)


def _profile(username, first_name, last_name, role, password):
    profile = Profile.query.filter_by(username=username).first()
    if profile:
        return profile
    profile = Profile(username=username, first_name=first_name, last_name=last_name, role=role)
    profile.set_password(password)
    db.session.add(profile)
    return profile


def seed_data(reset=False, days_of_history=14):
    if reset:
        # Clear existing data (children first)
        for model in (AttendanceRecord, Notification, Enrollment, ParentStudent,
                      SchoolClass, School, AuditLog, TokenBlocklist, Profile):
            model.query.delete()
        db.session.commit()

    admin_password = os.getenv("ADMIN_PASSWORD", "your_secure_password")
    demo_password = os.getenv("DEMO_PASSWORD", "demo-pass")

    school = School.query.filter_by(name="Woodlands Primary School").first()
    if not school:
        school = School(name="Woodlands Primary School", address="123 Main St")
        db.session.add(school)

    admin = _profile("admin", "Site", "Admin", Role.admin, admin_password)
    teacher = _profile("teacher_naidoo", "Priya", "Naidoo", Role.teacher, demo_password)
    parent = _profile("parent_dlamini", "Thandi", "Dlamini", Role.parent, demo_password)
    students = [
        _profile("student_sipho", "Sipho", "Dlamini", Role.student, demo_password),
        _profile("student_lerato", "Lerato", "Mokoena", Role.student, demo_password),
        _profile("student_jan", "Jan", "van Wyk", Role.student, demo_password),
    ]
    db.session.flush()

    school_class = SchoolClass.query.filter_by(name="Grade 5 Mathematics").first()
    if not school_class:
        school_class = SchoolClass(name="Grade 5 Mathematics", grade="5", section="A",
                                   school_id=school.id, teacher_id=teacher.id)
        db.session.add(school_class)
        db.session.flush()

    for student in students:
        if not Enrollment.query.filter_by(student_id=student.id, class_id=school_class.id).first():
            db.session.add(Enrollment(student_id=student.id, class_id=school_class.id))

    if not ParentStudent.query.filter_by(parent_id=parent.id, student_id=students[0].id).first():
        db.session.add(ParentStudent(parent_id=parent.id, student_id=students[0].id, relation="mother"))

    # Weekday history, one status per student per day
    pattern = [AttendanceStatus.present, AttendanceStatus.present, AttendanceStatus.late,
               AttendanceStatus.present, AttendanceStatus.absent]
    today = date.today()
    created = 0
    for offset in range(1, days_of_history + 1):
        day = today - timedelta(days=offset)
        if day.weekday() >= 5:
            continue
        for index, student in enumerate(students):
            exists = AttendanceRecord.query.filter_by(
                student_id=student.id, class_id=school_class.id, date=day
            ).first()
            if exists:
                continue
            status = pattern[(offset + index) % len(pattern)]
            db.session.add(AttendanceRecord(
                student_id=student.id, class_id=school_class.id, date=day,
                status=status.value, marked_by=teacher.id, location_verified=True,
                check_in_time="08:00" if status is not AttendanceStatus.absent else None,
            ))
            created += 1

    db.session.commit()
    return {
        "profiles": Profile.query.count(),
        "classes": SchoolClass.query.count(),
        "attendance_created": created,
        "admin": admin.username,
    }
