"""Hellcheck — Configuration Validator.

Cross-checks a parsed FileConfig for inconsistencies the parser cannot
see on its own. Hard inconsistencies raise ConfigValidationError; soft
ones are returned as warnings for the operator.
"""

from __future__ import annotations

from collections import Counter

from hellcheck.config import FileConfig


class ConfigValidationError(ValueError):
    """Raised when a FileConfig is internally inconsistent."""


def validate_config(config: FileConfig) -> list[str]:
    """Validate a FileConfig.

    Args:
        config: The parsed configuration.

    Returns:
        Human-readable warnings (possibly empty).

    Raises:
        ConfigValidationError: On duplicate identifiers or a checker that
            refers to an undeclared notifier.
    """
    _verify_unique_ids(config)
    _verify_checker_notifiers(config)

    warnings: list[str] = []
    _verify_empty_notifiers(config, warnings)
    return warnings


def _verify_unique_ids(config: FileConfig) -> None:
    for section, ids in (
        ("checkers", [c.id for c in config.checkers]),
        ("notifiers", [n.id for n in config.notifiers]),
    ):
        duplicates = sorted(k for k, count in Counter(ids).items() if count > 1)
        if duplicates:
            raise ConfigValidationError(
                f"Duplicate identifiers in `{section}`: {', '.join(duplicates)}"
            )


def _verify_checker_notifiers(config: FileConfig) -> None:
    for checker in config.checkers:
        for notifier_id in checker.notifiers:
            if config.get_notifier(notifier_id) is None:
                raise ConfigValidationError(
                    f"`checkers.{checker.id}.notifiers` refers to an undeclared "
                    f"notifier `{notifier_id}`"
                )


def _verify_empty_notifiers(config: FileConfig, warnings: list[str]) -> None:
    if not config.notifiers:
        warnings.append("Notifiers are not declared. You will not get notifications.")
        return

    for checker in config.checkers:
        if not checker.notifiers:
            warnings.append(
                f"`checkers.{checker.id}.notifiers` is empty. "
                f"You will not get notifications"
            )
