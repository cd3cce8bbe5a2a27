from datetime import datetime, timezone
from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from campus.attendance import fetch_attendance
from campus.extensions import db
from campus.models import Role, Notification, NotificationType
from campus_utils.errors import BadRequest, CampusError

FALLBACK_RESPONSE = (
    "I'm sorry, I'm having trouble processing your request right now. "
    "Please try again later or contact support if the issue persists."
)

BASE_CONTEXT = """You are a helpful AI assistant for the Smart Curriculum Activity & Attendance App.
The user is a {role}. Be helpful, friendly, and provide relevant information about:
- Attendance tracking and statistics
- Curriculum and assignments
- School activities and schedules
- Academic progress and performance
- General school information"""

ROLE_CONTEXT = {
    Role.student: """For students, you can help with:
- Checking attendance records
- Viewing assignments and deadlines
- Understanding academic progress
- School schedule queries
- General study tips and guidance""",
    Role.teacher: """For teachers, you can help with:
- Managing class attendance
- Uploading and organizing curriculum
- Tracking student progress
- Creating assignments and activities
- Generating reports""",
    Role.parent: """For parents, you can help with:
- Monitoring child's attendance
- Viewing academic progress
- Understanding school activities
- Communication with teachers
- School event information""",
    Role.admin: """For administrators, you can help with:
- Institution-wide analytics
- Managing users and classes
- System administration
- Report generation
- Policy and procedure questions""",
}


def system_context(role=None):
    if role is None:
        return BASE_CONTEXT.format(role="visitor")
    return BASE_CONTEXT.format(role=role.value) + "\n\n" + ROLE_CONTEXT[role]


def user_context(caller):
    """Best-effort snapshot of the caller's recent data; lookup failures are logged and skipped."""
    lines = [f"User: {caller.full_name} ({caller.role.value})"]

    try:
        records, _ = fetch_attendance(caller, limit=5)
        if records:
            lines.append("Recent attendance: " + ", ".join(
                f"{r.date.isoformat()}: {r.status}" for r in records
            ))
    except CampusError as e:
        current_app.logger.warning("Chat context: attendance lookup failed for %s: %s", caller.id, e)

    try:
        notifications = (
            Notification.query.filter_by(recipient_id=caller.id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(3)
            .all()
        )
        if notifications:
            lines.append("Recent notifications: " + ", ".join(n.title for n in notifications))
    except SQLAlchemyError as e:
        current_app.logger.warning("Chat context: notification lookup failed for %s: %s", caller.id, e)

    return "\n".join(lines)


def log_exchange(caller, message, reply):
    try:
        db.session.add(Notification(
            recipient_id=caller.id,
            title="Chatbot Interaction",
            message=f'Asked: "{message[:50]}..." | Response: "{reply[:50]}..."',
            type=NotificationType.general,
        ))
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.warning("Could not log chat exchange for %s: %s", caller.id, e)


def chat(message, completer, caller=None, role=None):
    if not isinstance(message, str) or not message.strip():
        raise BadRequest("Message is required")

    if caller is not None:
        role = caller.role
    context = system_context(role)
    if caller is not None:
        context += "\n\nUser Context:\n" + user_context(caller)

    reply = completer.complete(context, message, temperature=0.7, max_tokens=1000)

    if caller is not None:
        log_exchange(caller, message, reply)

    return {
        "response": reply,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
