"""Built-in process plugins."""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from dateutil import parser as date_parser

from ..errors import ConfigurationError, FatalStepError, SkipRow, StopPipeline
from ..models.row import Row
from .base import ProcessPlugin

logger = logging.getLogger(__name__)


# Plain transform functions: (value, row, destination_property, configuration)

def _transform_passthrough(value: Any, row: Row, dest: str, config: Dict) -> Any:
    """Pass the value through unchanged."""
    return value


def _transform_uppercase(value: Any, row: Row, dest: str, config: Dict) -> Any:
    """Convert to uppercase."""
    if value is None:
        return None
    return str(value).upper()


def _transform_lowercase(value: Any, row: Row, dest: str, config: Dict) -> Any:
    """Convert to lowercase."""
    if value is None:
        return None
    return str(value).lower()


def _transform_trim(value: Any, row: Row, dest: str, config: Dict) -> Any:
    """Strip surrounding whitespace, or the configured characters."""
    if value is None:
        return None
    return str(value).strip(config.get("characters"))


def _transform_prefix_add(value: Any, row: Row, dest: str, config: Dict) -> Any:
    """Add a prefix to the value."""
    if value is None:
        return None
    prefix = config.get("prefix", "")
    return f"{prefix}{value}"


def _transform_prefix_strip(value: Any, row: Row, dest: str, config: Dict) -> Any:
    """Strip a prefix and optionally add a new one."""
    if value is None:
        return None
    value_str = str(value)
    prefix = config.get("prefix", "")
    new_prefix = config.get("new_prefix", "")

    if prefix and value_str.startswith(prefix):
        value_str = value_str[len(prefix):]

    return f"{new_prefix}{value_str}"


def _transform_truncate(value: Any, row: Row, dest: str, config: Dict) -> Any:
    """Truncate to max length."""
    if value is None:
        return None
    max_length = config.get("max_length", 255)
    return str(value)[:max_length]


def _transform_multiply(value: Any, row: Row, dest: str, config: Dict) -> Any:
    """Multiply a numeric value."""
    if value is None:
        return None
    try:
        return float(value) * config.get("multiplier", 1)
    except (ValueError, TypeError):
        raise FatalStepError(f"Cannot multiply non-numeric value {value!r} for {dest}")


def _transform_iso_to_unix(value: Any, row: Row, dest: str, config: Dict) -> Any:
    """Convert an ISO datetime string to a Unix timestamp."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return int(value)  # Already a timestamp
    try:
        dt = date_parser.parse(str(value))
    except (ValueError, OverflowError):
        raise SkipRow(f"Could not parse date {value!r} for {dest}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())


def _transform_concat(value: Any, row: Row, dest: str, config: Dict) -> Any:
    """Join a list of values with a delimiter."""
    if value is None:
        return None
    if not isinstance(value, (list, tuple)):
        raise FatalStepError(f"concat expects a list for {dest}, got {type(value).__name__}")
    delimiter = config.get("delimiter", "")
    return delimiter.join("" if item is None else str(item) for item in value)


def _transform_explode(value: Any, row: Row, dest: str, config: Dict) -> Any:
    """Split a string into a list."""
    if value is None or value == "":
        return []
    if not isinstance(value, str):
        raise FatalStepError(f"explode expects a string for {dest}, got {type(value).__name__}")
    parts = value.split(config.get("delimiter", ","))
    if config.get("strip", True):
        parts = [part.strip() for part in parts]
    return parts


BUILTIN_TRANSFORMS: Dict[str, Callable] = {
    "passthrough": _transform_passthrough,
    "uppercase": _transform_uppercase,
    "lowercase": _transform_lowercase,
    "trim": _transform_trim,
    "prefix_add": _transform_prefix_add,
    "prefix_strip": _transform_prefix_strip,
    "truncate": _transform_truncate,
    "multiply": _transform_multiply,
    "iso_to_unix": _transform_iso_to_unix,
    "concat": _transform_concat,
    "explode": _transform_explode,
}


class DefaultValue(ProcessPlugin):
    """
    Replace an empty value with a configured default.

    Configuration:
        default_value: The replacement (required, may be any value)
        strict: Only replace None, not other empty values (default False)
    """

    def validate_configuration(self) -> None:
        super().validate_configuration()
        if "default_value" not in self.configuration:
            raise ConfigurationError('The "default_value" plugin requires the "default_value" configuration option.')

    def transform(self, value: Any, executor: Any, row: Row, destination_property: str) -> Any:
        if self.configuration.get("strict", False):
            return self.configuration["default_value"] if value is None else value
        return value if value else self.configuration["default_value"]


class StaticMap(ProcessPlugin):
    """
    Map a value through a lookup table.

    Configuration:
        map: Source value -> destination value (required)
        default_value: Used when the value is not in the map
        bypass: Pass unmapped values through unchanged (default False)

    Unmapped values without a default or bypass skip the row.
    """
    required_keys = ("map",)

    def validate_configuration(self) -> None:
        super().validate_configuration()
        self.require_type("map", dict, "mapping")

    def transform(self, value: Any, executor: Any, row: Row, destination_property: str) -> Any:
        mapping = self.configuration["map"]
        if isinstance(value, (str, int, float, bool)) and value in mapping:
            return mapping[value]
        if str(value) in mapping:
            return mapping[str(value)]
        if "default_value" in self.configuration:
            return self.configuration["default_value"]
        if self.configuration.get("bypass", False):
            return value
        raise SkipRow(
            f"No static mapping found for {value!r} and no default value provided "
            f"for destination property {destination_property}."
        )


class FormatDate(ProcessPlugin):
    """
    Reformat a date string.

    Configuration:
        to_format: strftime format of the output (required)
        from_format: strptime format of the input; parsed leniently if omitted
    """
    required_keys = ("to_format",)

    def transform(self, value: Any, executor: Any, row: Row, destination_property: str) -> Any:
        if value is None or value == "":
            return None
        try:
            if isinstance(value, (int, float)):
                dt = datetime.fromtimestamp(value, tz=timezone.utc)
            elif self.configuration.get("from_format"):
                dt = datetime.strptime(str(value), self.configuration["from_format"])
            else:
                dt = date_parser.parse(str(value))
        except (ValueError, OverflowError, OSError) as e:
            raise SkipRow(f"Format date plugin could not transform {value!r} for {destination_property}: {e}")
        return dt.strftime(self.configuration["to_format"])


class SkipOnEmpty(ProcessPlugin):
    """
    Skip the row, or stop the property's pipeline, when the value is empty.

    Configuration:
        method: "row" or "process" (required)
        message: Message recorded when the row is skipped
    """
    required_keys = ("method",)

    def validate_configuration(self) -> None:
        super().validate_configuration()
        if self.configuration["method"] not in ("row", "process"):
            raise ConfigurationError(
                f'The "method" option of the "{self.plugin_id}" plugin must be "row" or "process".'
            )

    def transform(self, value: Any, executor: Any, row: Row, destination_property: str) -> Any:
        if value:
            return value
        if self.configuration["method"] == "process":
            raise StopPipeline()
        message = self.configuration.get("message") or f"Empty value for {destination_property}"
        raise SkipRow(message)


class SkipOnValue(ProcessPlugin):
    """
    Skip the row, or stop the property's pipeline, when the value matches.

    Configuration:
        value: A value or list of values to match (required)
        method: "row" or "process" (required)
        not_equals: Invert the match (default False)
        message: Message recorded when the row is skipped
    """
    required_keys = ("method",)

    def validate_configuration(self) -> None:
        super().validate_configuration()
        if "value" not in self.configuration:
            raise ConfigurationError(f'The "{self.plugin_id}" plugin requires the "value" configuration option.')
        if self.configuration["method"] not in ("row", "process"):
            raise ConfigurationError(
                f'The "method" option of the "{self.plugin_id}" plugin must be "row" or "process".'
            )

    def _matches(self, value: Any) -> bool:
        candidates: List[Any] = self.configuration["value"]
        if not isinstance(candidates, list):
            candidates = [candidates]
        matched = value in candidates or str(value) in [str(c) for c in candidates]
        return not matched if self.configuration.get("not_equals", False) else matched

    def transform(self, value: Any, executor: Any, row: Row, destination_property: str) -> Any:
        if not self._matches(value):
            return value
        if self.configuration["method"] == "process":
            raise StopPipeline()
        message: Optional[str] = self.configuration.get("message")
        raise SkipRow(message or f"Value {value!r} of {destination_property} excluded the row")


BUILTIN_PLUGINS = {
    "default_value": DefaultValue,
    "static_map": StaticMap,
    "format_date": FormatDate,
    "skip_on_empty": SkipOnEmpty,
    "skip_on_value": SkipOnValue,
}
