from datetime import date
from html import escape

_BRAND_COLOR = "#14b8a6"


def _layout(title: str, body_html: str) -> str:
    return (
        '<div style="font-family: \'Segoe UI\', Arial, sans-serif; max-width: 640px; margin: 0 auto;">'
        f'<div style="background: {_BRAND_COLOR}; padding: 24px; border-radius: 12px 12px 0 0;">'
        f'<h1 style="color: #ffffff; margin: 0; font-size: 22px;">{escape(title)}</h1>'
        "</div>"
        '<div style="padding: 24px; background-color: #f8fafc; border: 1px solid #e2e8f0; border-top: none;">'
        f"{body_html}"
        "</div>"
        '<p style="color: #94a3b8; font-size: 12px; text-align: center;">'
        "StandUpStrip - Keep your team aligned"
        "</p>"
        "</div>"
    )


def _button(url: str, label: str) -> str:
    return (
        '<p style="text-align: center; margin: 28px 0;">'
        f'<a href="{escape(url, quote=True)}" style="background: {_BRAND_COLOR}; color: #ffffff; '
        'padding: 12px 28px; border-radius: 8px; text-decoration: none; font-weight: bold;">'
        f"{escape(label)}</a></p>"
    )


def team_invitation_email(
    *,
    team_name: str,
    inviter_name: str,
    invite_code: str,
    frontend_base_url: str,
) -> tuple[str, str]:
    subject = f"You've been invited to join {team_name} on StandUpStrip"
    join_url = f"{frontend_base_url.rstrip('/')}/join/{invite_code}"
    body = (
        f"<p><strong>{escape(inviter_name)}</strong> invited you to join "
        f"<strong>{escape(team_name)}</strong>.</p>"
        "<p>Open your dashboard to accept or reject the invitation.</p>"
        f"{_button(join_url, 'View Invitation')}"
        f'<p style="color: #64748b; font-size: 14px;">Team invite code: <code>{escape(invite_code)}</code></p>'
    )
    return subject, _layout("You've been invited!", body)


def verification_email(*, user_name: str, token: str, frontend_base_url: str) -> tuple[str, str]:
    subject = "Verify your StandUpStrip account"
    verify_url = f"{frontend_base_url.rstrip('/')}/verify?token={token}"
    body = (
        f"<p>Hi {escape(user_name)},</p>"
        "<p>Confirm your email address to start posting standups.</p>"
        f"{_button(verify_url, 'Verify Email')}"
        '<p style="color: #64748b; font-size: 14px;">This link expires in 24 hours.</p>'
    )
    return subject, _layout("Welcome to StandUpStrip", body)


def standup_reminder_email(
    *,
    user_name: str,
    team_name: str,
    team_id: str,
    frontend_base_url: str,
) -> tuple[str, str]:
    subject = f"📋 Standup Reminder - {team_name}"
    submit_url = f"{frontend_base_url.rstrip('/')}/teams/{team_id}?submit=true"
    body = (
        f"<p>Hi {escape(user_name)}! 👋</p>"
        "<p>This is a friendly reminder that your daily standup for "
        f"<strong>{escape(team_name)}</strong> hasn't been submitted yet.</p>"
        f"{_button(submit_url, 'Submit Your Standup')}"
        '<ul style="color: #64748b; font-size: 14px;">'
        "<li>What you accomplished yesterday</li>"
        "<li>What you're planning to work on today</li>"
        "<li>Any blockers or challenges</li>"
        "</ul>"
    )
    return subject, _layout("StandUpStrip", body)


def weekly_summary_email(
    *,
    owner_name: str,
    team_name: str,
    week_start_date: date,
    week_end_date: date,
    summary_text: str,
) -> tuple[str, str]:
    subject = f"📊 Weekly Summary for {team_name} ({week_start_date} - {week_end_date})"
    summary_html = escape(summary_text).replace("\n", "<br/>")
    body = (
        f"<p>Hi {escape(owner_name)},</p>"
        f"<p>Here's your weekly standup summary for <strong>{escape(team_name)}</strong> "
        f"from {week_start_date} to {week_end_date}.</p>"
        '<div style="background-color: #ffffff; padding: 20px; border-radius: 8px; '
        f'border: 1px solid #e2e8f0; line-height: 1.6;">{summary_html}</div>'
    )
    return subject, _layout("📊 Weekly Team Summary", body)


def password_reset_email(
    *,
    user_name: str,
    token: str,
    frontend_base_url: str,
    ttl_minutes: int,
) -> tuple[str, str]:
    subject = "Reset your StandUpStrip password"
    reset_url = f"{frontend_base_url.rstrip('/')}/reset-password?token={token}"
    body = (
        f"<p>Hi {escape(user_name)},</p>"
        "<p>We received a request to reset your password. Choose a new one below.</p>"
        f"{_button(reset_url, 'Reset Password')}"
        f'<p style="color: #64748b; font-size: 14px;">This link expires in {ttl_minutes} minutes. '
        "If you didn't ask for a reset, you can ignore this email.</p>"
    )
    return subject, _layout("Password reset", body)
