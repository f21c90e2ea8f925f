"""Hellcheck — Configuration Loader.

Loads the watchdog configuration from a YAML file into immutable
dataclasses. Resolves environment variables referenced via ${VAR_NAME}
syntax (a .env file is loaded first) and reports every problem as a
ConfigError carrying the dotted path of the offending field.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar, Optional, Union

import httpx
import yaml
from dotenv import load_dotenv

from hellcheck.utils.logger import get_logger

logger = get_logger(__name__)

# ── Defaults ──────────────────────────────────────────────
DEFAULT_INTERVAL_SECONDS = 10.0
DEFAULT_TIMEOUT_SECONDS = 10.0

# ── Patterns ──────────────────────────────────────────────
ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)}")
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)\s*([a-zA-Z]+)")
_BARE_NUMBER = re.compile(r"\d+(?:\.\d+)?")
_DURATION_UNITS = {
    "ms": 0.001, "msec": 0.001, "millis": 0.001,
    "s": 1.0, "sec": 1.0, "secs": 1.0, "second": 1.0, "seconds": 1.0,
    "m": 60.0, "min": 60.0, "mins": 60.0, "minute": 60.0, "minutes": 60.0,
    "h": 3600.0, "hr": 3600.0, "hrs": 3600.0, "hour": 3600.0, "hours": 3600.0,
    "d": 86400.0, "day": 86400.0, "days": 86400.0,
}

_CHECKER_ATTRIBUTES = {"url", "interval", "timeout", "notifiers", "basic_auth"}


class ConfigError(ValueError):
    """Raised when the configuration document cannot be parsed."""


# ═══════════════════════════════════════════════════════════
# Configuration Dataclasses
# ═══════════════════════════════════════════════════════════


@dataclass(frozen=True)
class BasicAuth:
    """HTTP Basic-Auth credentials attached to every probe."""

    username: str
    password: str

    def __repr__(self) -> str:
        return f"BasicAuth(username={self.username!r}, password='***')"


@dataclass(frozen=True)
class CheckerConfig:
    """A monitored endpoint.

    Attributes:
        id: Unique checker identifier.
        url: Target URL probed with GET.
        interval: Seconds to wait after one probe completes before the next.
        notifiers: Notifier identifiers invoked, in order, on a state change.
        basic_auth: Optional credentials for the probe request.
        timeout: Upper bound in seconds for a single probe.
    """

    id: str
    url: str
    interval: float = DEFAULT_INTERVAL_SECONDS
    notifiers: tuple[str, ...] = ()
    basic_auth: Optional[BasicAuth] = None
    timeout: float = DEFAULT_TIMEOUT_SECONDS


@dataclass(frozen=True)
class TelegramNotifierConfig:
    """Telegram bot backend settings."""

    kind: ClassVar[str] = "telegram"

    token: str
    chat_id: str


@dataclass(frozen=True)
class SlackNotifierConfig:
    """Slack incoming-webhook backend settings."""

    kind: ClassVar[str] = "slack"

    webhook_url: str


@dataclass(frozen=True)
class HipchatNotifierConfig:
    """HipChat room notification backend settings."""

    kind: ClassVar[str] = "hipchat"

    base_url: str
    token: str
    room_id: str


@dataclass(frozen=True)
class CommandNotifierConfig:
    """External command backend settings."""

    kind: ClassVar[str] = "command"

    command: str
    arguments: tuple[str, ...] = ()


NotifierConfig = Union[
    TelegramNotifierConfig,
    SlackNotifierConfig,
    HipchatNotifierConfig,
    CommandNotifierConfig,
]


@dataclass(frozen=True)
class NotifierEntry:
    """A declared notifier: identifier plus backend-specific settings."""

    id: str
    config: NotifierConfig


@dataclass(frozen=True)
class FileConfig:
    """The full configuration model.

    Lookups by identifier go through dicts built once at construction.
    Duplicate identifiers are reported by the validator, not here.
    """

    checkers: tuple[CheckerConfig, ...] = ()
    notifiers: tuple[NotifierEntry, ...] = ()
    _checkers_by_id: dict[str, CheckerConfig] = field(
        init=False, repr=False, compare=False,
    )
    _notifiers_by_id: dict[str, NotifierEntry] = field(
        init=False, repr=False, compare=False,
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "checkers", tuple(self.checkers))
        object.__setattr__(self, "notifiers", tuple(self.notifiers))
        object.__setattr__(self, "_checkers_by_id", {c.id: c for c in self.checkers})
        object.__setattr__(self, "_notifiers_by_id", {n.id: n for n in self.notifiers})

    def get_checker(self, checker_id: str) -> Optional[CheckerConfig]:
        return self._checkers_by_id.get(checker_id)

    def get_notifier(self, notifier_id: str) -> Optional[NotifierEntry]:
        return self._notifiers_by_id.get(notifier_id)


# ═══════════════════════════════════════════════════════════
# YAML Loading & Environment Variable Resolution
# ═══════════════════════════════════════════════════════════


class _UniqueKeyLoader(yaml.SafeLoader):
    """SafeLoader that rejects duplicate keys instead of keeping the last."""

    def construct_mapping(self, node: yaml.MappingNode, deep: bool = False) -> dict[Any, Any]:
        seen: set[Any] = set()
        for key_node, _ in node.value:
            key = self.construct_object(key_node, deep=deep)
            try:
                duplicate = key in seen
            except TypeError:
                raise yaml.constructor.ConstructorError(
                    "while constructing a mapping", node.start_mark,
                    "found unhashable key", key_node.start_mark,
                ) from None
            if duplicate:
                raise yaml.constructor.ConstructorError(
                    "while constructing a mapping", node.start_mark,
                    f"found duplicate key `{key}`", key_node.start_mark,
                )
            seen.add(key)
        return super().construct_mapping(node, deep=deep)


def _resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ${VAR_NAME} references in YAML values.

    Args:
        value: A string, dict, list, or primitive from parsed YAML.

    Returns:
        The same structure with all ${VAR_NAME} placeholders replaced
        by their environment variable values.

    Raises:
        ConfigError: If a referenced environment variable is not set.
    """
    if isinstance(value, str):
        for var_name in ENV_VAR_PATTERN.findall(value):
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ConfigError(
                    f"Environment variable '${{{var_name}}}' is required but not set. "
                    f"Add it to your .env file or export it in your shell."
                )
            value = value.replace(f"${{{var_name}}}", env_value)
        return value
    elif isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]
    return value


def parse_duration(value: Any) -> float:
    """Parse a human-readable duration into seconds.

    Accepts "500ms", "10s", "5m", "1h 30m", "2 days" and bare numbers
    or numeric strings such as "10" (interpreted as seconds).

    Raises:
        ValueError: If the value is not a recognizable duration.
    """
    if isinstance(value, bool):
        raise ValueError(f"not a duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if not isinstance(value, str):
        raise ValueError(f"not a duration: {value!r}")

    text = value.strip()
    if not text:
        raise ValueError("empty duration")
    if _BARE_NUMBER.fullmatch(text):
        return float(text)

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if text[pos:match.start()].strip():
            raise ValueError(f"not a duration: {value!r}")
        unit = match.group(2).lower()
        if unit not in _DURATION_UNITS:
            raise ValueError(f"unknown duration unit `{unit}`")
        total += float(match.group(1)) * _DURATION_UNITS[unit]
        pos = match.end()

    if pos == 0 or text[pos:].strip():
        raise ValueError(f"not a duration: {value!r}")
    return total


# ═══════════════════════════════════════════════════════════
# Field Helpers
# ═══════════════════════════════════════════════════════════


def _as_mapping(value: Any, path: str) -> dict[Any, Any]:
    if not isinstance(value, dict):
        raise ConfigError(f"`{path}` must be a hash. Got {value!r}")
    return value


def _as_key(value: Any, path: str) -> str:
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ConfigError(f"Key must be a string in `{path}`. Got {value!r}")
    return str(value)


def _as_string(value: Any, path: str) -> str:
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ConfigError(f"`{path}` must be a string. Got {value!r}")
    return str(value)


def _as_string_list(value: Any, path: str) -> list[str]:
    if not isinstance(value, list):
        raise ConfigError(f"`{path}` must be an array. Got {value!r}")
    return [_as_string(item, f"{path}[{i}]") for i, item in enumerate(value)]


def _as_url(value: Any, path: str) -> str:
    raw = _as_string(value, path)
    try:
        url = httpx.URL(raw)
    except httpx.InvalidURL:
        url = None
    if url is None or url.scheme not in ("http", "https") or not url.host:
        raise ConfigError(f"Failed to parse URL `{raw}` in {path}")
    return raw


def _as_duration(value: Any, path: str) -> float:
    try:
        seconds = parse_duration(value)
    except ValueError:
        raise ConfigError(f"Failed to parse duration `{value}` in {path}") from None
    if seconds <= 0:
        raise ConfigError(f"Duration in {path} must be positive, got `{value}`")
    return seconds


def _require(data: dict[Any, Any], key: str, path: str) -> Any:
    if key not in data:
        raise ConfigError(f"Field `{path}.{key}` is missing")
    return data[key]


def _reject_unknown(
    data: dict[Any, Any], allowed: set[str], path: str, what: str,
) -> None:
    for key in data:
        if key not in allowed:
            raise ConfigError(f"Unknown {what} attribute `{key}` in {path}")


# ═══════════════════════════════════════════════════════════
# Dataclass Builders
# ═══════════════════════════════════════════════════════════


def _build_basic_auth(data: Any, path: str) -> BasicAuth:
    auth = _as_mapping(data, path)
    _reject_unknown(auth, {"username", "password"}, path, "basic_auth")
    return BasicAuth(
        username=_as_string(_require(auth, "username", path), f"{path}.username"),
        password=_as_string(_require(auth, "password", path), f"{path}.password"),
    )


def _build_checker(checker_id: str, data: Any) -> CheckerConfig:
    """Build a CheckerConfig from one entry of the `checkers` hash.

    Args:
        checker_id: The entry's key.
        data: The entry's body.

    Returns:
        A CheckerConfig with defaults applied.
    """
    path = f"checkers.{checker_id}"
    body = _as_mapping(data, path)
    for key in body:
        if key not in _CHECKER_ATTRIBUTES:
            raise ConfigError(f"Unknown checker attribute `{key}` in {path}")

    url = _as_url(_require(body, "url", path), f"{path}.url")

    interval = DEFAULT_INTERVAL_SECONDS
    if "interval" in body:
        interval = _as_duration(body["interval"], f"{path}.interval")

    timeout = DEFAULT_TIMEOUT_SECONDS
    if "timeout" in body:
        timeout = _as_duration(body["timeout"], f"{path}.timeout")

    notifiers: list[str] = []
    if body.get("notifiers") is not None:
        notifiers = _as_string_list(body["notifiers"], f"{path}.notifiers")

    basic_auth = None
    if body.get("basic_auth") is not None:
        basic_auth = _build_basic_auth(body["basic_auth"], f"{path}.basic_auth")

    return CheckerConfig(
        id=checker_id,
        url=url,
        interval=interval,
        notifiers=tuple(notifiers),
        basic_auth=basic_auth,
        timeout=timeout,
    )


def _build_telegram(path: str, body: dict[Any, Any]) -> TelegramNotifierConfig:
    return TelegramNotifierConfig(
        token=_as_string(_require(body, "token", path), f"{path}.token"),
        chat_id=_as_string(_require(body, "chat_id", path), f"{path}.chat_id"),
    )


def _build_slack(path: str, body: dict[Any, Any]) -> SlackNotifierConfig:
    return SlackNotifierConfig(
        webhook_url=_as_url(_require(body, "webhook_url", path), f"{path}.webhook_url"),
    )


def _build_hipchat(path: str, body: dict[Any, Any]) -> HipchatNotifierConfig:
    return HipchatNotifierConfig(
        base_url=_as_url(_require(body, "base_url", path), f"{path}.base_url"),
        token=_as_string(_require(body, "token", path), f"{path}.token"),
        room_id=_as_string(_require(body, "room_id", path), f"{path}.room_id"),
    )


def _build_command(path: str, body: dict[Any, Any]) -> CommandNotifierConfig:
    raw = _require(body, "command", path)
    if not isinstance(raw, list):
        raise ConfigError(f"`{path}.command` must be an array.")
    parts = _as_string_list(raw, f"{path}.command")
    if not parts:
        raise ConfigError(f"`{path}.command` must have a command specified")
    return CommandNotifierConfig(command=parts[0], arguments=tuple(parts[1:]))


# type value -> (allowed attributes, builder)
_NOTIFIER_BUILDERS = {
    "telegram": ({"token", "chat_id"}, _build_telegram),
    "slack": ({"webhook_url"}, _build_slack),
    "hipchat": ({"base_url", "token", "room_id"}, _build_hipchat),
    "command": ({"command"}, _build_command),
}


def _build_notifier(notifier_id: str, data: Any) -> NotifierEntry:
    """Build a NotifierEntry, dispatching on its declared `type`.

    Args:
        notifier_id: The entry's key.
        data: The entry's body.

    Returns:
        A NotifierEntry wrapping the backend-specific config.
    """
    path = f"notifiers.{notifier_id}"
    body = _as_mapping(data, path)
    type_value = _as_string(_require(body, "type", path), f"{path}.type")

    if type_value not in _NOTIFIER_BUILDERS:
        raise ConfigError(f"Invalid notifier type `{type_value}` in `{path}.type`")

    allowed, builder = _NOTIFIER_BUILDERS[type_value]
    for key in body:
        if key != "type" and key not in allowed:
            raise ConfigError(
                f"Unknown {type_value} notifier attribute `{key}` in {path}"
            )

    return NotifierEntry(id=notifier_id, config=builder(path, body))


# ═══════════════════════════════════════════════════════════
# Public API
# ═══════════════════════════════════════════════════════════


def parse_config(text: str) -> FileConfig:
    """Parse a YAML document into a FileConfig.

    Environment placeholders are resolved before the model is built.
    Cross-references are not checked here; see validator.validate_config.

    Args:
        text: The YAML document.

    Returns:
        The parsed FileConfig.

    Raises:
        ConfigError: On invalid YAML or any malformed field.
    """
    try:
        raw = yaml.load(text, Loader=_UniqueKeyLoader)  # noqa: S506
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML file: {e}") from e

    if raw is None:
        raw = {}
    root = _as_mapping(raw, "$")
    for key in root:
        if key not in ("checkers", "notifiers"):
            raise ConfigError(f"Unknown root element `{key}`")

    root = _resolve_env_vars(root)

    checkers = [
        _build_checker(_as_key(key, "checkers"), body)
        for key, body in _as_mapping(root.get("checkers") or {}, "checkers").items()
    ]
    notifiers = [
        _build_notifier(_as_key(key, "notifiers"), body)
        for key, body in _as_mapping(root.get("notifiers") or {}, "notifiers").items()
    ]

    return FileConfig(checkers=tuple(checkers), notifiers=tuple(notifiers))


def load_config(path: Path | str, env_path: Optional[Path] = None) -> FileConfig:
    """Load, parse and validate the configuration file.

    Args:
        path: Path to the YAML configuration file.
        env_path: Override path to a .env file. Defaults to ./.env.

    Returns:
        A validated FileConfig.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        ConfigError: If the document is malformed.
        ConfigValidationError: If cross-references are inconsistent.
    """
    from hellcheck.validator import validate_config

    env_file = env_path or Path(".env")
    load_dotenv(env_file)
    logger.debug("Loaded environment from %s", env_file)

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config = parse_config(f.read())

    for warning in validate_config(config):
        logger.warning(warning)

    logger.info(
        "Configuration loaded: %d checkers, %d notifiers",
        len(config.checkers), len(config.notifiers),
    )
    return config
