"""Hellcheck — HTTP health-check watchdog.

Polls configured endpoints on independent schedules, tracks an Up/Down
state per endpoint and notifies Telegram, Slack, HipChat or an external
command whenever that state changes.
"""

__version__ = "0.3.0"
