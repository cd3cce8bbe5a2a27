import calendar
from collections import namedtuple
from datetime import date, datetime, timedelta, timezone
from campus.attendance import fetch_attendance, percentage
from campus.models import Role
from campus_utils.errors import BadRequest

FALLBACK_INSIGHTS = "I'm sorry, I'm having trouble analyzing the data right now. Please try again later."

# Window length in days; None means "current semester" (six calendar months).
TIMEFRAMES = {
    "7days": 7,
    "30days": 30,
    "90days": 90,
    "semester": None,
}

ANALYSIS_FOCUS = {
    "attendance": "attendance patterns and punctuality",
    "performance": "how attendance is likely to be affecting academic performance",
    "engagement": "engagement signals such as lateness, absence streaks and recovery",
    "institutional": "institution-wide attendance trends and where intervention is needed",
}

ROLE_AUDIENCE = {
    Role.student: "Speak directly to the student about their own attendance.",
    Role.teacher: "Address the teacher about the classes they teach.",
    Role.parent: "Address the parent about their children's attendance.",
    Role.admin: "Address a school administrator looking at the whole institution.",
}

Window = namedtuple("Window", ["start", "end"])


def subtract_months(day, months):
    month_index = day.month - 1 - months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return day.replace(year=year, month=month, day=min(day.day, last_day))


def resolve_timeframe(timeframe, today=None):
    """
    Returns (current, previous) inclusive date windows.

    An N-day timeframe covers today and the N-1 days before it. The previous
    window has the same length and ends the day before the current one starts,
    so the two never share a day.
    """
    if timeframe not in TIMEFRAMES:
        raise BadRequest(f"Invalid timeframe: {timeframe!r}")

    today = today or date.today()
    days = TIMEFRAMES[timeframe]
    if days is None:
        start = subtract_months(today, 6)
    else:
        start = today - timedelta(days=days - 1)

    length = (today - start).days + 1
    previous_end = start - timedelta(days=1)
    previous_start = previous_end - timedelta(days=length - 1)
    return Window(start, today), Window(previous_start, previous_end)


def weekly_series(records):
    """Buckets records by ISO week, oldest week first."""
    buckets = {}
    for record in records:
        iso_year, iso_week, _ = record.date.isocalendar()
        bucket = buckets.setdefault((iso_year, iso_week), {"present": 0, "absent": 0, "late": 0, "total": 0})
        if record.status in bucket:
            bucket[record.status] += 1
        bucket["total"] += 1

    return [
        {
            "week": f"Week {iso_week}",
            "attendance": percentage(bucket["present"], bucket["total"]),
            "present": bucket["present"],
            "absent": bucket["absent"],
            "late": bucket["late"],
        }
        for (_, iso_week), bucket in sorted(buckets.items())
    ]


def render_summary(timeframe, window, summary, previous_summary):
    header = f"Attendance Analysis ({timeframe}, {window.start.isoformat()} to {window.end.isoformat()}):"
    total = summary["total"]

    if total == 0:
        lines = [header, "- No attendance records were found for this period."]
    else:
        lines = [
            header,
            f"- Total Records: {total}",
            f"- Present: {summary['present']} ({percentage(summary['present'], total)}%)",
            f"- Absent: {summary['absent']} ({percentage(summary['absent'], total)}%)",
            f"- Late: {summary['late']} ({percentage(summary['late'], total)}%)",
            f"- Excused: {summary['excused']} ({percentage(summary['excused'], total)}%)",
            f"- Overall Attendance Rate: {summary['percentage']}%",
        ]

    lines.append("")
    lines.append("Comparison with previous period:")
    if previous_summary["total"] == 0:
        lines.append("- No attendance records for the previous period.")
    else:
        lines.append(f"- Previous attendance: {previous_summary['percentage']}%")
        if total:
            change = summary["percentage"] - previous_summary["percentage"]
            lines.append(f"- Change: {'+' if change > 0 else ''}{change}%")

    return "\n".join(lines)


def system_prompt(role, analysis_type):
    return (
        f"You are an educational data analyst providing insights for a {role.value}. "
        f"{ROLE_AUDIENCE[role]} "
        "Analyze the provided data and give meaningful, actionable insights in a friendly, encouraging tone. "
        f"Focus on {ANALYSIS_FOCUS[analysis_type]}: trends, improvements, areas of concern, "
        "and practical recommendations. Keep the response concise but informative."
    )


def analyze(caller, analysis_type, timeframe, completer, today=None):
    """
    Aggregates the caller's attendance for the timeframe and the window before
    it, and asks the completion service for insights on the rendered summary.
    The completion service is called exactly once, even when there is no data.
    """
    role = Role.parse(caller.role)
    if analysis_type not in ANALYSIS_FOCUS:
        raise BadRequest(f"Invalid analysis type: {analysis_type!r}")
    current, previous = resolve_timeframe(timeframe, today)

    records, summary = fetch_attendance(caller, date_from=current.start, date_to=current.end)
    _, previous_summary = fetch_attendance(caller, date_from=previous.start, date_to=previous.end)

    raw_data = render_summary(timeframe, current, summary, previous_summary)
    insights = completer.complete(
        system_prompt(role, analysis_type),
        f"Please analyze this educational data and provide insights:\n\n{raw_data}",
        temperature=0.7,
        max_tokens=500,
    )

    return {
        "insights": insights,
        "chartData": weekly_series(records),
        "rawData": raw_data,
        "timeframe": timeframe,
        "analysisType": analysis_type,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
