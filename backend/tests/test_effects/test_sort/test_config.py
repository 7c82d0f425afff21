"""Tests for effects.sort.config — params parsing and run-start validation."""

import pytest

from effects.sort.config import (
    PARAMS,
    Orientation,
    SortConfig,
    SortConfigError,
    SortDirection,
    SortMode,
)

pytestmark = pytest.mark.smoke


def test_defaults_match_schema():
    config = SortConfig.from_params(None)
    assert config == SortConfig()
    for key, spec in PARAMS.items():
        value = config.to_params()[key]
        assert value == spec["default"]


def test_parses_names_case_insensitively():
    config = SortConfig.from_params(
        {"mode": "Hue", "direction": "DESCENDING", "orientation": "horizontal"}
    )
    assert config.mode is SortMode.HUE
    assert config.direction is SortDirection.DESCENDING
    assert config.reverse is True
    assert config.orientation is Orientation.HORIZONTAL


def test_roundtrip_through_params():
    config = SortConfig(
        mode=SortMode.COLOR,
        strength=72.5,
        direction=SortDirection.DESCENDING,
        section_length=12,
        gap_width=4,
        noise_threshold=3.0,
        orientation=Orientation.HORIZONTAL,
        chunk_lines=25,
    )
    assert SortConfig.from_params(config.to_params()) == config


def test_integral_floats_accepted_for_ints():
    config = SortConfig.from_params({"section_length": 8.0, "chunk_lines": "4"})
    assert config.section_length == 8
    assert config.chunk_lines == 4


@pytest.mark.parametrize(
    "params",
    [
        {"section_length": 0},
        {"section_length": -3},
        {"gap_width": -1},
        {"strength": -1},
        {"strength": 100.5},
        {"noise_threshold": -0.5},
        {"chunk_lines": 0},
        {"mode": "luminance"},
        {"direction": "sideways"},
        {"orientation": "diagonal"},
        {"strength": float("nan")},
        {"noise_threshold": float("inf")},
        {"section_length": 2.5},
        {"strength": "strong"},
        {"strength": True},
        {"sort_length": 10},
    ],
)
def test_invalid_params_rejected(params):
    with pytest.raises(SortConfigError):
        SortConfig.from_params(params)


def test_config_error_is_value_error():
    assert issubclass(SortConfigError, ValueError)


def test_validate_direct_construction():
    with pytest.raises(SortConfigError, match="section_length"):
        SortConfig(section_length=0).validate()
    with pytest.raises(SortConfigError, match="chunk_lines"):
        SortConfig(chunk_lines=0).validate()


@pytest.mark.parametrize(
    "kwargs,field",
    [
        ({"section_length": 2.5}, "section_length"),
        ({"chunk_lines": 2.5}, "chunk_lines"),
        ({"gap_width": "3"}, "gap_width"),
        ({"chunk_lines": True}, "chunk_lines"),
        ({"mode": "brightness"}, "mode"),
        ({"direction": "descending"}, "direction"),
        ({"orientation": 0}, "orientation"),
        ({"strength": "50"}, "strength"),
        ({"noise_threshold": float("nan")}, "noise_threshold"),
    ],
)
def test_validate_rejects_wrong_types(kwargs, field):
    with pytest.raises(SortConfigError, match=field):
        SortConfig(**kwargs).validate()


def test_validate_accepts_int_strength():
    assert SortConfig(strength=75, noise_threshold=0).validate().strength == 75


def test_multiple_errors_reported_together():
    with pytest.raises(SortConfigError) as exc_info:
        SortConfig(section_length=0, chunk_lines=0).validate()
    assert "section_length" in str(exc_info.value)
    assert "chunk_lines" in str(exc_info.value)


@pytest.mark.parametrize(
    "angle,expected",
    [
        (0, Orientation.VERTICAL),
        (90, Orientation.HORIZONTAL),
        (180, Orientation.VERTICAL),
        (270, Orientation.HORIZONTAL),
        (-90, Orientation.HORIZONTAL),
        (45, Orientation.VERTICAL),
    ],
)
def test_angle_selects_orientation(angle, expected):
    assert SortConfig.from_params({"angle": angle}).orientation is expected


def test_explicit_orientation_wins_over_angle():
    config = SortConfig.from_params({"angle": 90, "orientation": "vertical"})
    assert config.orientation is Orientation.VERTICAL


def test_config_is_frozen():
    config = SortConfig()
    with pytest.raises(AttributeError):
        config.strength = 10
