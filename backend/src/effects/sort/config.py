"""Sort configuration — parameter schema, enums and validation."""

import math
from dataclasses import dataclass, fields
from enum import Enum


class SortConfigError(ValueError):
    """Raised when a sort configuration is rejected at run start."""


class SortMode(Enum):
    BRIGHTNESS = "brightness"
    HUE = "hue"
    SATURATION = "saturation"
    COLOR = "color"


class SortDirection(Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"


class Orientation(Enum):
    HORIZONTAL = "horizontal"  # rows
    VERTICAL = "vertical"  # columns

    @classmethod
    def from_angle(cls, degrees: float) -> "Orientation":
        """0° sorts columns, 90° sorts rows."""
        if abs(degrees % 180) == 90:
            return cls.HORIZONTAL
        return cls.VERTICAL


PARAMS: dict = {
    "mode": {
        "type": "choice",
        "choices": [m.value for m in SortMode],
        "default": "brightness",
        "label": "Sort Mode",
    },
    "strength": {
        "type": "float",
        "min": 0.0,
        "max": 100.0,
        "default": 50.0,
        "label": "Strength",
    },
    "direction": {
        "type": "choice",
        "choices": [d.value for d in SortDirection],
        "default": "ascending",
        "label": "Sort Direction",
    },
    "section_length": {
        "type": "int",
        "min": 1,
        "max": 4096,
        "default": 50,
        "label": "Section Length",
    },
    "gap_width": {
        "type": "int",
        "min": 0,
        "max": 4096,
        "default": 0,
        "label": "Slice Width",
    },
    "noise_threshold": {
        "type": "float",
        "min": 0.0,
        "max": 255.0,
        "default": 10.0,
        "label": "Noise Threshold",
    },
    "orientation": {
        "type": "choice",
        "choices": [o.value for o in Orientation],
        "default": "vertical",
        "label": "Orientation",
    },
    "chunk_lines": {
        "type": "int",
        "min": 1,
        "max": 4096,
        "default": 10,
        "label": "Lines Per Chunk",
    },
}


def _parse_enum(enum_cls, key: str, value):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        choices = [m.value for m in enum_cls]
        raise SortConfigError(
            f"{key} must be one of {choices}, got {value!r}"
        ) from None


def _parse_number(key: str, value, kind):
    if isinstance(value, bool):
        raise SortConfigError(f"{key} must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise SortConfigError(f"{key} must be a number, got {value!r}") from None
    if math.isnan(number) or math.isinf(number):
        raise SortConfigError(f"{key} must be finite, got {value!r}")
    if kind is int:
        if number != int(number):
            raise SortConfigError(f"{key} must be an integer, got {value!r}")
        return int(number)
    return number


_ENUM_FIELDS = (
    ("mode", SortMode),
    ("direction", SortDirection),
    ("orientation", Orientation),
)
_INT_FIELDS = ("section_length", "gap_width", "chunk_lines")
_FLOAT_FIELDS = ("strength", "noise_threshold")


@dataclass(frozen=True)
class SortConfig:
    """Immutable snapshot of every knob a sort run reads.

    ``strength`` is the single 0-100 control that both sets the activation
    threshold (``strength / 100 * 255``) and the fraction of each section
    that actually gets reordered.
    """

    mode: SortMode = SortMode.BRIGHTNESS
    strength: float = 50.0
    direction: SortDirection = SortDirection.ASCENDING
    section_length: int = 50
    gap_width: int = 0
    noise_threshold: float = 10.0
    orientation: Orientation = Orientation.VERTICAL
    chunk_lines: int = 10

    @property
    def reverse(self) -> bool:
        return self.direction is SortDirection.DESCENDING

    def validate(self) -> "SortConfig":
        """Raise SortConfigError for values that would degenerate the run loop.

        Types are checked before ranges, so a config built by hand fails
        here rather than partway through a run.
        """
        errors: list[str] = []
        for name, enum_cls in _ENUM_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, enum_cls):
                errors.append(f"{name} must be a {enum_cls.__name__}, got {value!r}")

        ints = {}
        for name in _INT_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                errors.append(f"{name} must be an integer, got {value!r}")
            else:
                ints[name] = value

        floats = {}
        for name in _FLOAT_FIELDS:
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                errors.append(f"{name} must be a number, got {value!r}")
            elif math.isnan(value) or math.isinf(value):
                errors.append(f"{name} must be finite, got {value!r}")
            else:
                floats[name] = value

        if ints.get("section_length", 1) < 1:
            errors.append(f"section_length must be >= 1, got {self.section_length}")
        if ints.get("gap_width", 0) < 0:
            errors.append(f"gap_width must be >= 0, got {self.gap_width}")
        if ints.get("chunk_lines", 1) < 1:
            errors.append(f"chunk_lines must be >= 1, got {self.chunk_lines}")
        if not 0.0 <= floats.get("strength", 0.0) <= 100.0:
            errors.append(f"strength must be within 0-100, got {self.strength}")
        if floats.get("noise_threshold", 0.0) < 0:
            errors.append(
                f"noise_threshold must be >= 0, got {self.noise_threshold}"
            )
        if errors:
            raise SortConfigError("; ".join(errors))
        return self

    @classmethod
    def from_params(cls, params: dict | None) -> "SortConfig":
        """Build a validated config from a UI params dict.

        Missing keys fall back to the PARAMS defaults. An ``angle`` key
        (degrees) picks the orientation when ``orientation`` is absent.
        """
        params = dict(params or {})
        known = {f.name for f in fields(cls)} | {"angle"}
        unknown = sorted(set(params) - known)
        if unknown:
            raise SortConfigError(f"unknown sort parameters: {unknown}")

        values = {key: spec["default"] for key, spec in PARAMS.items()}
        if "orientation" not in params and "angle" in params:
            angle = _parse_number("angle", params.pop("angle"), float)
            values["orientation"] = Orientation.from_angle(angle)
        params.pop("angle", None)
        values.update(params)

        config = cls(
            mode=_parse_enum(SortMode, "mode", values["mode"]),
            strength=_parse_number("strength", values["strength"], float),
            direction=_parse_enum(SortDirection, "direction", values["direction"]),
            section_length=_parse_number(
                "section_length", values["section_length"], int
            ),
            gap_width=_parse_number("gap_width", values["gap_width"], int),
            noise_threshold=_parse_number(
                "noise_threshold", values["noise_threshold"], float
            ),
            orientation=_parse_enum(
                Orientation, "orientation", values["orientation"]
            ),
            chunk_lines=_parse_number("chunk_lines", values["chunk_lines"], int),
        )
        return config.validate()

    def to_params(self) -> dict:
        return {
            "mode": self.mode.value,
            "strength": self.strength,
            "direction": self.direction.value,
            "section_length": self.section_length,
            "gap_width": self.gap_width,
            "noise_threshold": self.noise_threshold,
            "orientation": self.orientation.value,
            "chunk_lines": self.chunk_lines,
        }
