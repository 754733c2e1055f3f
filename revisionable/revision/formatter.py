"""Field formatting for revision display values.

Rules are keyed by field name and are either a callable or a string of the
form "kind" / "kind:argument":

    revision_formatted_fields = {
        "is_public": "boolean:Private|Public",
        "title": "string:<strong>%s</strong>",
        "published_on": "datetime:%d %b %Y",
        "price": "currency:$",
        "status": "options:draft=Draft|live=Live",
        "slug": lambda value: value.upper(),
    }

This module has no knowledge of models or storage.
"""

from collections.abc import Callable, Mapping
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from revisionable.revision.errors import FormattingConfigError

FormattingRule = str | Callable[[Any], Any]

DEFAULT_BOOLEAN_LABELS = ("No", "Yes")

_FALSY_STRINGS = frozenset({"", "0", "false", "no", "off"})


def _is_truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in _FALSY_STRINGS
    return bool(value)


def _format_boolean(key: str, value: Any, argument: str | None) -> str:
    if argument is None:
        labels = DEFAULT_BOOLEAN_LABELS
    else:
        parts = argument.split("|")
        if len(parts) != 2:
            raise FormattingConfigError(key, f"boolean:{argument}", f"Boolean rule for '{key}' needs exactly two labels, e.g. 'boolean:No|Yes'")
        labels = (parts[0], parts[1])
    return labels[1] if _is_truthy(value) else labels[0]


def _format_string(key: str, value: Any, argument: str | None) -> str:
    if not argument or "%s" not in argument:
        raise FormattingConfigError(key, f"string:{argument}", f"String rule for '{key}' needs a pattern containing %s")
    return argument.replace("%s", str(value))


def _format_datetime(key: str, value: Any, argument: str | None) -> str:
    if not argument:
        raise FormattingConfigError(key, "datetime", f"Datetime rule for '{key}' needs a strftime pattern")
    if isinstance(value, (datetime, date)):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value))
        except ValueError as e:
            raise FormattingConfigError(key, f"datetime:{argument}", f"Value {value!r} of '{key}' is not an ISO-8601 timestamp") from e
    return parsed.strftime(argument)


def _format_currency(key: str, value: Any, argument: str | None) -> str:
    symbol = argument or ""
    try:
        amount = Decimal(str(value))
    except InvalidOperation as e:
        raise FormattingConfigError(key, f"currency:{symbol}", f"Value {value!r} of '{key}' is not numeric") from e
    if not amount.is_finite():
        raise FormattingConfigError(key, f"currency:{symbol}", f"Value {value!r} of '{key}' is not a finite amount")
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol}{abs(amount):,.2f}"


def _format_options(key: str, value: Any, argument: str | None) -> str:
    if not argument:
        raise FormattingConfigError(key, "options", f"Options rule for '{key}' needs at least one 'value=Label' pair")
    options: dict[str, str] = {}
    for pair in argument.split("|"):
        raw, sep, label = pair.partition("=")
        if not sep:
            raise FormattingConfigError(key, f"options:{argument}", f"Malformed option '{pair}' for '{key}', expected 'value=Label'")
        options[raw] = label
    return options.get(str(value), str(value))


_FORMATTERS: dict[str, Callable[[str, Any, str | None], str]] = {
    "boolean": _format_boolean,
    "string": _format_string,
    "datetime": _format_datetime,
    "currency": _format_currency,
    "options": _format_options,
}


def format_field(key: str, value: Any, rules: Mapping[str, FormattingRule]) -> Any:
    """Format a raw field value using the rule configured for its key.

    Args:
        key: Field key the value belongs to
        value: Raw value to format
        rules: Mapping of field key to formatting rule

    Returns:
        The formatted display string, or the value unchanged when no rule
        is configured for the key

    Raises:
        FormattingConfigError: If the rule kind is unknown or the rule cannot
            be applied to the value
    """
    rule = rules.get(key)
    if rule is None:
        return value

    if callable(rule):
        return str(rule(value))

    if not isinstance(rule, str):
        raise FormattingConfigError(key, rule)

    kind, sep, argument = rule.partition(":")
    formatter = _FORMATTERS.get(kind)
    if formatter is None:
        raise FormattingConfigError(key, rule)
    return formatter(key, value, argument if sep else None)
