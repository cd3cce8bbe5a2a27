from datetime import date
from sqlalchemy import func
from campus.attendance import fetch_attendance, percentage
from campus.extensions import db
from campus.models import (
    Role, Profile, ParentStudent, SchoolClass, Enrollment, AttendanceRecord, Notification,
)


def admin_summary(caller, today):
    role_counts = dict(
        db.session.query(Profile.role, func.count(Profile.id)).group_by(Profile.role).all()
    )
    _, today_summary = fetch_attendance(caller, date_from=today, date_to=today)
    recent = (
        AttendanceRecord.query
        .order_by(AttendanceRecord.created_at.desc(), AttendanceRecord.id.desc())
        .limit(10)
        .all()
    )

    return {
        "totalStudents": role_counts.get(Role.student, 0),
        "totalTeachers": role_counts.get(Role.teacher, 0),
        "totalParents": role_counts.get(Role.parent, 0),
        "totalClasses": SchoolClass.query.count(),
        "attendanceToday": today_summary["present"],
        "avgAttendanceRate": today_summary["percentage"],
        "recentActivities": [r.to_dict() for r in recent],
    }


def teacher_summary(caller, today):
    classes = SchoolClass.query.filter_by(teacher_id=caller.id).order_by(SchoolClass.name).all()
    today_records, _ = fetch_attendance(caller, date_from=today, date_to=today)

    class_rows = []
    for school_class in classes:
        present = sum(
            1 for r in today_records
            if r.class_id == school_class.id and r.status == "present"
        )
        class_rows.append({
            **school_class.to_dict(),
            "student_count": Enrollment.query.filter_by(class_id=school_class.id).count(),
            "attendance_today": present,
        })

    total_students = sum(row["student_count"] for row in class_rows)
    today_attendance = sum(row["attendance_today"] for row in class_rows)
    return {
        "classes": class_rows,
        "totalStudents": total_students,
        "todayAttendance": today_attendance,
        "totalClasses": len(class_rows),
        "avgAttendance": percentage(today_attendance, total_students),
    }


def parent_summary(caller, today):
    links = ParentStudent.query.filter_by(parent_id=caller.id).all()
    children = []
    for link in links:
        child = link.student
        records, summary = fetch_attendance(caller, student_id=child.id)
        enrollment = Enrollment.query.filter_by(student_id=child.id).first()
        school_class = enrollment.school_class if enrollment else None
        today_status = next((r.status for r in records if r.date == today), None)
        children.append({
            "id": child.id,
            "first_name": child.first_name,
            "last_name": child.last_name,
            "relationship": link.relation,
            "class_name": school_class.name if school_class else "Not assigned",
            "grade": school_class.grade if school_class else "",
            "section": school_class.section if school_class else "",
            "attendance_today": today_status,
            "attendance_stats": summary,
        })

    notifications = (
        Notification.query.filter_by(recipient_id=caller.id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(5)
        .all()
    )
    return {
        "children": children,
        "notifications": [n.to_dict() for n in notifications],
    }


def student_summary(caller, today):
    records, summary = fetch_attendance(caller)
    return {
        "attendance_stats": summary,
        "classes": [e.school_class.to_dict() for e in caller.enrollments],
        "today": [r.to_dict() for r in records if r.date == today],
        "recent": [r.to_dict() for r in records[:10]],
    }


DASHBOARDS = {
    Role.admin: admin_summary,
    Role.teacher: teacher_summary,
    Role.parent: parent_summary,
    Role.student: student_summary,
}


def build_dashboard(caller, today=None):
    role = Role.parse(caller.role)
    payload = DASHBOARDS[role](caller, today or date.today())
    payload["role"] = role.value
    return payload
