from __future__ import annotations

import math

from scorecard.constants import DEFAULT_STEP_TOLERANCE
from scorecard.models import MetricDefinition, MetricType


def _is_missing(value) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def _is_empty(value) -> bool:
    if _is_missing(value):
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return len(value) == 0
    return False


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_finite_number(value) -> bool:
    if not _is_number(value):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # ints beyond float range
        return False


def _attr_number(attrs: dict, name: str):
    raw = attrs.get(name)
    if raw is None or isinstance(raw, bool) or raw == "":
        return None
    try:
        parsed = float(raw)
    except (TypeError, ValueError, OverflowError):
        return None
    return parsed if math.isfinite(parsed) else None


def _display_number(value) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _is_required(definition: MetricDefinition) -> bool:
    return bool(definition.input_attrs.get("required"))


class ValueCodec:
    def parse(self, definition: MetricDefinition, raw):
        raise NotImplementedError

    def check(self, definition: MetricDefinition, value, tolerance: float) -> str | None:
        raise NotImplementedError

    def format(self, definition: MetricDefinition, value) -> str:
        return "" if _is_missing(value) else str(value)

    def validate(self, definition: MetricDefinition, value, tolerance: float = DEFAULT_STEP_TOLERANCE) -> str | None:
        if _is_empty(value):
            return f"{definition.label} is required." if _is_required(definition) else None
        return self.check(definition, value, tolerance)


class NumberCodec(ValueCodec):
    def __init__(self, integer: bool):
        self.integer = integer

    def parse(self, definition, raw):
        if raw is None or isinstance(raw, bool):
            return None
        if isinstance(raw, str):
            raw = raw.strip()
            if not raw:
                return None
        try:
            number = float(raw)
        except (TypeError, ValueError, OverflowError):
            return None
        if not math.isfinite(number):
            return None
        if self.integer:
            return int(math.trunc(number))
        return number

    def check(self, definition, value, tolerance):
        label = definition.label
        if not is_finite_number(value):
            return f"{label} must be a number."
        if self.integer and not float(value).is_integer():
            return f"{label} must be a whole number."

        attrs = definition.input_attrs
        minimum = _attr_number(attrs, "min")
        maximum = _attr_number(attrs, "max")
        if minimum is not None and maximum is not None and not (minimum <= value <= maximum):
            return f"{label} must be between {_display_number(minimum)} and {_display_number(maximum)}."
        if minimum is not None and value < minimum:
            return f"{label} must be at least {_display_number(minimum)}."
        if maximum is not None and value > maximum:
            return f"{label} must be at most {_display_number(maximum)}."

        step = _attr_number(attrs, "step")
        if step is not None and step > 0:
            steps = (value - (minimum or 0.0)) / step
            if abs(steps - round(steps)) > tolerance:
                return f"{label} must be in increments of {_display_number(step)}."
        return None

    def format(self, definition, value):
        if _is_missing(value):
            return ""
        return _display_number(value)


class BinaryCodec(ValueCodec):
    def __init__(self, true_tokens, description: str):
        self.true_tokens = frozenset(true_tokens)
        self.description = description

    def parse(self, definition, raw):
        if isinstance(raw, bool):
            return raw
        if raw is None:
            return False
        if _is_number(raw):
            return raw != 0
        return str(raw).strip().lower() in self.true_tokens

    def check(self, definition, value, tolerance):
        if not isinstance(value, bool):
            return f"{definition.label} must be {self.description}."
        return None

    def format(self, definition, value):
        if _is_missing(value):
            return ""
        return "true" if value else "false"


class TextCodec(ValueCodec):
    def parse(self, definition, raw):
        if raw is None:
            return ""
        return str(raw).strip()

    def check(self, definition, value, tolerance):
        if not isinstance(value, str):
            return f"{definition.label} must be text."
        maxlength = _attr_number(definition.input_attrs, "maxlength")
        if maxlength is not None and len(value) > maxlength:
            return f"{definition.label} must be at most {_display_number(maxlength)} characters."
        return None


class SingleSelectCodec(ValueCodec):
    def parse(self, definition, raw):
        if raw is None:
            return None
        value = str(raw).strip()
        return value or None

    def check(self, definition, value, tolerance):
        if not isinstance(value, str) or value not in definition.option_values:
            return f"{definition.label}: {value!r} is not one of the allowed options."
        return None


class MultiSelectCodec(ValueCodec):
    def parse(self, definition, raw):
        if raw is None:
            return []
        if isinstance(raw, str):
            items = raw.split(",")
        elif isinstance(raw, (list, tuple, set)):
            items = list(raw)
        else:
            items = [raw]
        selected = []
        for item in items:
            if item is None:
                continue
            value = str(item).strip()
            if value and value not in selected:
                selected.append(value)
        return selected

    def check(self, definition, value, tolerance):
        if not isinstance(value, list):
            return f"{definition.label} must be a list of options."
        allowed = definition.option_values
        for item in value:
            if item not in allowed:
                return f"{definition.label}: {item!r} is not one of the allowed options."
        return None

    def format(self, definition, value):
        if _is_missing(value):
            return ""
        if not isinstance(value, (list, tuple)):
            value = [value]
        return ",".join(str(item) for item in value)


CODECS = {
    MetricType.NUMBER_INT: NumberCodec(integer=True),
    MetricType.NUMBER_FLOAT: NumberCodec(integer=False),
    MetricType.BINARY_YES_NO: BinaryCodec({"true", "1", "yes", "y", "on", "checked"}, "yes or no"),
    MetricType.BINARY_POS_NEG: BinaryCodec({"true", "1", "pos", "positive", "+", "yes", "on"}, "positive or negative"),
    MetricType.TEXT_SHORT: TextCodec(),
    MetricType.TEXT_LONG: TextCodec(),
    MetricType.SELECT_SINGLE: SingleSelectCodec(),
    MetricType.SELECT_MULTI: MultiSelectCodec(),
}

_missing_codecs = set(MetricType) - set(CODECS)
if _missing_codecs:
    raise RuntimeError(f"No value codec for metric types: {sorted(item.value for item in _missing_codecs)}")


def codec_for(definition: MetricDefinition) -> ValueCodec:
    return CODECS[definition.type]


def parse_value(definition: MetricDefinition, raw):
    return codec_for(definition).parse(definition, raw)


def validate_value(definition: MetricDefinition, value, tolerance: float = DEFAULT_STEP_TOLERANCE) -> str | None:
    return codec_for(definition).validate(definition, value, tolerance)


def format_value(definition: MetricDefinition, value) -> str:
    return codec_for(definition).format(definition, value)


def empty_value(definition: MetricDefinition):
    if definition.type is MetricType.SELECT_MULTI:
        return []
    if definition.type in (MetricType.BINARY_YES_NO, MetricType.BINARY_POS_NEG):
        return False
    if definition.type in (MetricType.NUMBER_INT, MetricType.NUMBER_FLOAT, MetricType.SELECT_SINGLE):
        return None
    return ""
