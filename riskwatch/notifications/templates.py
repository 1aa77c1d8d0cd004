"""
Email Templates

HTML and plain text email templates for rule notifications.
Every builder returns (subject, html_body, plain_text_body).
"""

from datetime import datetime
from html import escape
from typing import List, Optional, Sequence, Tuple

from riskwatch.config import settings
from riskwatch.models import NotificationCategory


EmailContent = Tuple[str, str, str]


def get_category_color(category: NotificationCategory) -> str:
    """Get badge color for a notification category."""
    return {
        NotificationCategory.ALARM: "#DC2626",   # Red
        NotificationCategory.ALERT: "#F59E0B",   # Amber
        NotificationCategory.INFO: "#3B82F6",    # Blue
    }.get(category, "#6B7280")


def get_category_label(category: NotificationCategory) -> str:
    """Get human-readable category label."""
    return {
        NotificationCategory.ALARM: "Alarm - Action Required",
        NotificationCategory.ALERT: "Alert - Needs Attention",
        NotificationCategory.INFO: "For Your Information",
    }.get(category, "Notification")


def absolute_url(link: Optional[str]) -> str:
    if not link:
        return f"{settings.FRONTEND_URL}/Dashboard"
    if link.startswith("http"):
        return link
    return f"{settings.FRONTEND_URL}{link}"


# =============================================================================
# BASE TEMPLATE
# =============================================================================

BASE_HTML_TEMPLATE = """
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{subject}</title>
    <style>
        body {{
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif;
            line-height: 1.6;
            color: #1F2937;
            margin: 0;
            padding: 0;
            background-color: #F3F4F6;
        }}
        .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
        .card {{
            background: white;
            border-radius: 8px;
            padding: 24px;
            box-shadow: 0 1px 3px rgba(0, 0, 0, 0.1);
        }}
        .badge {{
            display: inline-block;
            padding: 6px 12px;
            border-radius: 4px;
            font-size: 12px;
            font-weight: 600;
            text-transform: uppercase;
            color: white;
        }}
        .title {{ font-size: 20px; font-weight: 600; margin: 16px 0 8px; }}
        .intro {{ color: #4B5563; margin-bottom: 16px; }}
        .row {{
            display: flex;
            justify-content: space-between;
            padding: 8px 0;
            border-bottom: 1px solid #E5E7EB;
        }}
        .row-label {{ color: #6B7280; }}
        .row-value {{ font-weight: 500; }}
        .button {{
            display: inline-block;
            padding: 12px 24px;
            background-color: #2563EB;
            color: white;
            text-decoration: none;
            border-radius: 6px;
            font-weight: 500;
            margin-top: 16px;
        }}
        .footer {{ text-align: center; color: #6B7280; font-size: 12px; padding: 20px 0; }}
    </style>
</head>
<body>
    <div class="container">
        {content}
        <div class="footer">
            <p>You are receiving this because you are part of a Riskwatch workspace.</p>
        </div>
    </div>
</body>
</html>
"""


def build_email(
    subject: str,
    title: str,
    intro: str,
    category: NotificationCategory,
    recipient_name: Optional[str] = None,
    rows: Sequence[Tuple[str, str]] = (),
    bullets: Sequence[str] = (),
    cta_label: str = "Open in Riskwatch",
    link: Optional[str] = None,
) -> EmailContent:
    """Render the shared card layout; all rule emails go through here."""
    color = get_category_color(category)
    label = get_category_label(category)
    url = absolute_url(link)
    greeting = f"Hi {recipient_name}," if recipient_name else "Hi,"

    rows_html = "".join(
        f'<div class="row"><span class="row-label">{escape(k)}</span>'
        f'<span class="row-value">{escape(str(v))}</span></div>'
        for k, v in rows
    )
    bullets_html = ""
    if bullets:
        bullets_html = "<ul>" + "".join(f"<li>{escape(b)}</li>" for b in bullets) + "</ul>"

    content = f"""
    <div class="card">
        <span class="badge" style="background-color: {color};">{label}</span>
        <h2 class="title">{escape(title)}</h2>
        <p>{escape(greeting)}</p>
        <p class="intro">{escape(intro)}</p>
        {rows_html}
        {bullets_html}
        <a href="{url}" class="button">{escape(cta_label)}</a>
    </div>
    """
    html_body = BASE_HTML_TEMPLATE.format(subject=escape(subject), content=content)

    lines: List[str] = [label, "", title, "", greeting, "", intro, ""]
    for k, v in rows:
        lines.append(f"{k}: {v}")
    for b in bullets:
        lines.append(f"- {b}")
    lines += ["", f"{cta_label}: {url}"]
    return subject, html_body, "\n".join(lines)


def _fmt_date(value) -> str:
    if value is None:
        return "-"
    if isinstance(value, datetime):
        value = value.date()
    return value.strftime("%B %d, %Y")


# =============================================================================
# PROJECT ALERTS
# =============================================================================

def build_runaway_rework_email(project_name: str, recent_sprints: Sequence[dict], link: str,
                               recipient_name: Optional[str] = None) -> EmailContent:
    return build_email(
        subject=f"Runaway Rework Alarm: {project_name}",
        title="Runaway Rework Detected",
        intro=(
            f"Rework on {project_name} has stayed above 25% for three sprints in a row. "
            "The project has been put on hold and a Tech-Debt Sprint was created."
        ),
        category=NotificationCategory.ALARM,
        recipient_name=recipient_name,
        rows=[(s["name"], f"{s['rework']:.1f}% rework") for s in recent_sprints],
        cta_label="Review Project",
        link=link,
    )


def build_deadline_risk_email(project_name: str, forecast_date, deadline, deviation_days: int,
                              link: str, recipient_name: Optional[str] = None) -> EmailContent:
    return build_email(
        subject=f"Deadline Risk: {project_name}",
        title="Project Deadline Risk",
        intro=(
            f"At the current velocity {project_name} will finish {deviation_days} days after its "
            "deadline. Scope has been locked."
        ),
        category=NotificationCategory.ALARM,
        recipient_name=recipient_name,
        rows=[
            ("Forecast completion", _fmt_date(forecast_date)),
            ("Deadline", _fmt_date(deadline)),
            ("Deviation", f"{deviation_days} days"),
        ],
        cta_label="Review Plan",
        link=link,
    )


def build_team_utilization_email(project_name: str, utilization_pct: float, window_days: int,
                                 category: NotificationCategory, link: str,
                                 recipient_name: Optional[str] = None) -> EmailContent:
    critical = category == NotificationCategory.ALARM
    title = "Critical Team Under-Utilization" if critical else "Low Team Utilization"
    return build_email(
        subject=f"{title}: {project_name}",
        title=title,
        intro=(
            f"The team on {project_name} logged {utilization_pct:.0f}% of its available "
            f"capacity over the last {window_days} working days."
        ),
        category=category,
        recipient_name=recipient_name,
        rows=[("Utilization", f"{utilization_pct:.1f}%"), ("Window", f"{window_days} working days")],
        cta_label="View Team",
        link=link,
    )


def build_sprint_health_email(project_name: str, sprint_name: str, overdue_count: int,
                              total_tasks: int, link: str,
                              recipient_name: Optional[str] = None) -> EmailContent:
    return build_email(
        subject=f"Sprint Health: {sprint_name} has overdue tasks",
        title="Multiple Overdue Tasks in Sprint",
        intro=f"{overdue_count} of {total_tasks} tasks in {sprint_name} ({project_name}) are overdue.",
        category=NotificationCategory.ALERT,
        recipient_name=recipient_name,
        cta_label="Open Sprint",
        link=link,
    )


# =============================================================================
# PERSONAL ALERTS
# =============================================================================

def build_overwork_email(planned_hours: float, limit_hours: float, link: str,
                         recipient_name: Optional[str] = None) -> EmailContent:
    return build_email(
        subject="Workload Alarm: you are planned beyond the weekly limit",
        title="Overwork Alarm",
        intro=(
            "You've been working long hours consistently. Please discuss workload "
            "adjustment with your manager."
        ),
        category=NotificationCategory.ALARM,
        recipient_name=recipient_name,
        rows=[("Planned this week", f"{planned_hours:.1f}h"), ("Weekly limit", f"{limit_hours:.0f}h")],
        cta_label="View My Tasks",
        link=link,
    )


def build_timesheet_lockout_email(missing_dates: Sequence, link: str,
                                  recipient_name: Optional[str] = None) -> EmailContent:
    return build_email(
        subject="Timesheets Locked: Repeated Non-Compliance",
        title="Timesheets Locked",
        intro=(
            f"You missed {len(missing_dates)} timesheet submissions in the last week. "
            "Your timesheets are locked until an administrator reviews them."
        ),
        category=NotificationCategory.ALARM,
        recipient_name=recipient_name,
        bullets=[_fmt_date(d) for d in missing_dates],
        cta_label="Submit Timesheets",
        link=link,
    )


def build_lockout_notice_email(member_name: str, missing_count: int, link: str,
                               recipient_name: Optional[str] = None) -> EmailContent:
    return build_email(
        subject=f"Team member locked out: {member_name}",
        title="Team Member Timesheet Lockout",
        intro=(
            f"{member_name} missed {missing_count} timesheet submissions in the last week "
            "and has been locked out of timesheet entry."
        ),
        category=NotificationCategory.ALERT,
        recipient_name=recipient_name,
        cta_label="Review Timesheets",
        link=link,
    )


def build_overdue_alarm_email(overdue_count: int, task_titles: Sequence[str], link: str,
                              recipient_name: Optional[str] = None) -> EmailContent:
    return build_email(
        subject=f"ALARM: {overdue_count} Tasks Overdue!",
        title=f"{overdue_count} Tasks Overdue",
        intro=(
            "You have multiple overdue tasks. New work is blocked until the overdue "
            "tasks are completed or rescheduled."
        ),
        category=NotificationCategory.ALARM,
        recipient_name=recipient_name,
        bullets=list(task_titles)[:5],
        cta_label="Open Most Overdue Task",
        link=link,
    )


def build_under_utilization_email(utilization_pct: float, window_days: int, link: str,
                                  recipient_name: Optional[str] = None) -> EmailContent:
    return build_email(
        subject="Under-Utilization Alert",
        title="Under-Utilization Alert",
        intro=(
            f"You logged {utilization_pct:.0f}% of your available time over the last "
            f"{window_days} working days."
        ),
        category=NotificationCategory.ALERT,
        recipient_name=recipient_name,
        cta_label="Log Time",
        link=link,
    )


def build_low_logged_hours_email(days: Sequence, daily_hours: float, link: str,
                                 recipient_name: Optional[str] = None) -> EmailContent:
    return build_email(
        subject="Low Logged Hours",
        title="Low Logged Hours",
        intro=(
            f"You logged fewer than {daily_hours:g} hours on each of your last "
            f"{len(days)} working days."
        ),
        category=NotificationCategory.ALERT,
        recipient_name=recipient_name,
        bullets=[_fmt_date(d) for d in days],
        cta_label="Log Time",
        link=link,
    )


# =============================================================================
# SUBSCRIPTION
# =============================================================================

def build_trial_ending_email(tenant_name: str, trial_ends_at: datetime,
                             recipient_name: Optional[str] = None) -> EmailContent:
    return build_email(
        subject=f"Your Riskwatch trial ends on {_fmt_date(trial_ends_at)}",
        title="Your trial is ending soon",
        intro=f"The trial for {tenant_name} ends on {_fmt_date(trial_ends_at)}. Choose a plan to keep access.",
        category=NotificationCategory.INFO,
        recipient_name=recipient_name,
        cta_label="Choose a Plan",
        link="/Billing",
    )


def build_subscription_expired_email(tenant_name: str, was_trial: bool,
                                     recipient_name: Optional[str] = None) -> EmailContent:
    what = "trial" if was_trial else "subscription"
    return build_email(
        subject=f"Your Riskwatch {what} has expired",
        title=f"Your {what} has expired",
        intro=f"The {what} for {tenant_name} has expired and the workspace is now past due.",
        category=NotificationCategory.ALARM,
        recipient_name=recipient_name,
        cta_label="Update Billing",
        link="/Billing",
    )


# =============================================================================
# PERSONAL REWORK
# =============================================================================

def build_personal_rework_email(rework_pct: float, window_days: int, category: NotificationCategory,
                                link: str, recipient_name: Optional[str] = None,
                                critical: bool = False) -> EmailContent:
    if critical:
        title = "Critical Rework Detected"
        intro = (
            f"Your rework time is at {rework_pct:.1f}%. "
            "Task assignments are frozen and a peer review is required."
        )
    elif category == NotificationCategory.ALARM:
        title = "High Rework Detected"
        intro = f"Your rework time is at {rework_pct:.1f}%. Peer review is recommended."
    else:
        title = "Rework Logged"
        intro = (
            f"You logged rework recently ({rework_pct:.1f}% of total). Please ensure quality "
            "and clarity of requirements."
        )
    return build_email(
        subject=title,
        title=title,
        intro=intro,
        category=category,
        recipient_name=recipient_name,
        rows=[("Rework share", f"{rework_pct:.1f}%"), ("Window", f"last {window_days} days")],
        cta_label="Review Rework",
        link=link,
    )


# =============================================================================
# PROJECT HEALTH
# =============================================================================

def build_critical_health_email(project_name: str, health_score: int, indicators: Sequence[str],
                                link: str, recipient_name: Optional[str] = None) -> EmailContent:
    return build_email(
        subject=f"ALARM: Critical Health Risk ({health_score}%) - {project_name}",
        title="Critical Project Health Risk",
        intro=(
            f"The health score of {project_name} dropped to {health_score}%. "
            "Review the root cause indicators below."
        ),
        category=NotificationCategory.ALARM,
        recipient_name=recipient_name,
        rows=[("Health score", f"{health_score}%")],
        bullets=indicators,
        cta_label="Review Project",
        link=link,
    )
