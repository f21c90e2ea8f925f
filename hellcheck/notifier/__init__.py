"""Hellcheck — Notifier Package.

State-change delivery backends behind one capability (Notifier.notify).
Components:
  - base: the Notifier interface and DeliveryError
  - formatters: per-backend message/payload builders
  - telegram_bot, webhook (Slack, HipChat), command: concrete backends
  - registry: identifier → backend mapping built from the config
"""

from hellcheck.notifier.base import DeliveryError, Notifier
from hellcheck.notifier.command import CommandNotifier
from hellcheck.notifier.registry import NotifierRegistry, UnknownNotifierError, build_notifier
from hellcheck.notifier.telegram_bot import TelegramNotifier
from hellcheck.notifier.webhook import HipchatNotifier, SlackNotifier

__all__ = [
    "DeliveryError",
    "Notifier",
    "CommandNotifier",
    "HipchatNotifier",
    "SlackNotifier",
    "TelegramNotifier",
    "NotifierRegistry",
    "UnknownNotifierError",
    "build_notifier",
]
