"""
Email templates for TaskNest.

All templates use inline CSS for maximum email client compatibility.

Each template function returns (subject, html_body, text_body).
"""

from __future__ import annotations

from datetime import datetime
from html import escape

# Color constants
BG_PAGE = "#F6F7F9"
BG_CARD = "#FFFFFF"
ACCENT = "#4F46E5"
TEXT_PRIMARY = "#111827"
TEXT_SECONDARY = "#6B7280"
BORDER = "#E5E7EB"


def _base_layout(content: str, app_name: str = "TaskNest") -> str:
    """Wrap content in the base email layout."""
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{app_name}</title>
</head>
<body style="margin: 0; padding: 0; background-color: {BG_PAGE}; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;">
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="background-color: {BG_PAGE};">
        <tr>
            <td align="center" style="padding: 40px 20px;">
                <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="600" style="max-width: 600px; width: 100%;">
                    <tr>
                        <td align="center" style="padding-bottom: 24px;">
                            <span style="font-size: 22px; font-weight: 700; color: {ACCENT};">{app_name}</span>
                        </td>
                    </tr>
                    <tr>
                        <td style="background-color: {BG_CARD}; border: 1px solid {BORDER}; border-radius: 12px; padding: 32px;">
                            {content}
                        </td>
                    </tr>
                    <tr>
                        <td align="center" style="padding-top: 24px;">
                            <p style="color: {TEXT_SECONDARY}; font-size: 12px; line-height: 1.5; margin: 0;">
                                You can change which emails you receive in your {app_name} settings.
                            </p>
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>"""


def _button(url: str, label: str) -> str:
    """Render a CTA button."""
    return f"""\
<table role="presentation" cellspacing="0" cellpadding="0" border="0" style="margin: 24px auto;">
    <tr>
        <td align="center" style="background-color: {ACCENT}; border-radius: 8px;">
            <a href="{url}" target="_blank" style="display: inline-block; padding: 12px 28px; color: #FFFFFF; font-size: 15px; font-weight: 600; text-decoration: none; border-radius: 8px;">
                {label}
            </a>
        </td>
    </tr>
</table>"""


def _format_due(due_at: datetime | None) -> str:
    if due_at is None:
        return "no due date"
    return due_at.strftime("%a %d %b %Y, %H:%M UTC")


def due_reminder(
    entity_type: str,
    title: str,
    due_at: datetime | None,
    project_name: str,
    sender_name: str,
    url: str,
) -> tuple[str, str, str]:
    """
    Reminder for a task or milestone that is due soon.

    Args:
        entity_type: "task" or "milestone".
        title: Task or milestone title.
        due_at: Due timestamp.
        project_name: Owning project's name.
        sender_name: Who is sending the reminder (an admin, or the app itself).
        url: Link to the project's task or milestone view.
    """
    label = "Task" if entity_type == "task" else "Milestone"
    due_text = _format_due(due_at)
    subject = f"Reminder: {label} \"{title}\" is due soon"

    content = f"""\
<h1 style="color: {TEXT_PRIMARY}; font-size: 20px; margin: 0 0 16px;">{label} due soon</h1>
<p style="color: {TEXT_PRIMARY}; font-size: 15px; line-height: 1.6; margin: 0 0 8px;">
    <strong>{escape(title)}</strong> in <strong>{escape(project_name)}</strong> is due {escape(due_text)}.
</p>
<p style="color: {TEXT_SECONDARY}; font-size: 14px; margin: 0;">Sent by {escape(sender_name)}</p>
{_button(url, f"Open {label.lower()}")}"""

    text = (
        f"{label} \"{title}\" in {project_name} is due {due_text}.\n\n"
        f"Sent by {sender_name}\n\n"
        f"Open it here: {url}\n"
    )
    return subject, _base_layout(content), text


def weekly_digest(tasks_completed: int, checkins: int, url: str) -> tuple[str, str, str]:
    """Weekly summary of a user's activity counts."""
    subject = "Your weekly digest"
    content = f"""\
<h2 style="color: {TEXT_PRIMARY}; font-size: 20px; margin: 0 0 16px;">Your week at a glance</h2>
<p style="color: {TEXT_PRIMARY}; font-size: 15px; margin: 0 0 8px;"><b>{tasks_completed}</b> tasks completed</p>
<p style="color: {TEXT_PRIMARY}; font-size: 15px; margin: 0 0 8px;"><b>{checkins}</b> check-ins</p>
{_button(url, "Open TaskNest")}"""

    text = (
        "Your week at a glance\n\n"
        f"{tasks_completed} tasks completed\n"
        f"{checkins} check-ins\n\n"
        f"Open TaskNest: {url}\n"
    )
    return subject, _base_layout(content), text


def mention(task_title: str | None, body: str, mentioner_name: str, url: str) -> tuple[str, str, str]:
    """A teammate mentioned the recipient in a comment."""
    where = f" on \"{task_title}\"" if task_title else ""
    subject = f"{mentioner_name} mentioned you{where}"
    content = f"""\
<p style="color: {TEXT_PRIMARY}; font-size: 15px; margin: 0 0 12px;">{escape(mentioner_name)} mentioned you in a comment:</p>
<blockquote style="border-left: 3px solid {BORDER}; margin: 0; padding: 4px 12px; color: {TEXT_SECONDARY};">{escape(body)}</blockquote>
{_button(url, "Reply")}"""

    text = (
        f"{mentioner_name} mentioned you in a comment:\n\n"
        f"{body}\n\n"
        f"Open the task to reply: {url}\n"
    )
    return subject, _base_layout(content), text
