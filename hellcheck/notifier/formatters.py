"""Hellcheck — Notification Formatters.

Builds the per-backend message bodies for a state change. Each builder
is a pure function of the Notification so payloads can be asserted
without any network involved.
"""

from __future__ import annotations

from typing import Any

from hellcheck.models import Notification, State

# ── Telegram ─────────────────────────────────────────────
_TELEGRAM_EMOJI = {
    State.UP: "\U0001F388",    # balloon
    State.DOWN: "\U0001F525",  # fire
}

# ── Slack ────────────────────────────────────────────────
_SLACK_COLOR = {State.UP: "good", State.DOWN: "danger"}
_SLACK_EMOJI = {State.UP: ":thumbsup:", State.DOWN: ":fire:"}

# ── HipChat ──────────────────────────────────────────────
_HIPCHAT_COLOR = {State.UP: "green", State.DOWN: "red"}


def _status_word(state: State) -> str:
    return "up" if state.is_up else "down"


def format_telegram_text(notification: Notification) -> str:
    """Plain-text Telegram message: "<id> is up 🎈" plus the URL."""
    return (
        f"{notification.checker_id} is {_status_word(notification.state)} "
        f"{_TELEGRAM_EMOJI[notification.state]}\n{notification.checker_url}"
    )


def build_slack_payload(notification: Notification) -> dict[str, Any]:
    """Slack webhook payload with a single colored attachment.

    Args:
        notification: The state change.

    Returns:
        {"attachments": [{fallback, color, title, title_link}]}
    """
    title = (
        f"{notification.checker_id} is {_status_word(notification.state)} "
        f"{_SLACK_EMOJI[notification.state]}"
    )
    attachment = {
        "fallback": f"{title}\n{notification.checker_url}",
        "color": _SLACK_COLOR[notification.state],
        "title": title,
        "title_link": notification.checker_url,
    }
    return {"attachments": [attachment]}


def build_hipchat_payload(notification: Notification) -> dict[str, Any]:
    """HipChat v2 room notification payload in plain text format."""
    return {
        "color": _HIPCHAT_COLOR[notification.state],
        "message": (
            f"{notification.checker_id} is {_status_word(notification.state)}\n"
            f"{notification.checker_url}"
        ),
        "message_format": "text",
    }


def build_command_env(notification: Notification) -> dict[str, str]:
    """Environment variables exported to a command notifier."""
    return {
        "HELLCHECK_ID": notification.checker_id,
        "HELLCHECK_URL": notification.checker_url,
        "HELLCHECK_OK": "true" if notification.state.is_up else "false",
    }
