"""Tests for color parsing and interpolation."""
import numpy as np
import pytest

from galaxy.colors import lerp_colors, parse_color, to_hex
from galaxy.errors import InvalidParameterError


def test_parse_hex_forms_agree():
    expected = np.array([255, 96, 48]) / 255.0
    np.testing.assert_allclose(parse_color("#ff6030"), expected)
    np.testing.assert_allclose(parse_color("FF6030"), expected)
    np.testing.assert_allclose(parse_color(0xFF6030), expected)


def test_parse_short_hex():
    np.testing.assert_allclose(parse_color("#f00"), [1.0, 0.0, 0.0])


def test_parse_float_triple():
    np.testing.assert_allclose(parse_color((0.1, 0.2, 0.3)), [0.1, 0.2, 0.3])
    np.testing.assert_allclose(parse_color([0.0, 1.0, 0.5]), [0.0, 1.0, 0.5])


@pytest.mark.parametrize("value", ["#ggg000", "#1234", "", 0x1000000, -1, (0.1, 0.2), (0.1, 2.0, 0.3), None, True])
def test_parse_rejects_invalid(value):
    with pytest.raises(InvalidParameterError):
        parse_color(value, field="inside_color")


def test_to_hex_round_trips_default_colors():
    assert to_hex(parse_color("#ff6030")) == "#ff6030"
    assert to_hex(parse_color("#1b3984")) == "#1b3984"


def test_lerp_endpoints_and_midpoint():
    inside = np.array([1.0, 0.0, 0.2])
    outside = np.array([0.0, 1.0, 0.6])
    blended = lerp_colors(inside, outside, np.array([0.0, 0.5, 1.0]))

    assert blended.shape == (3, 3)
    np.testing.assert_array_equal(blended[0], inside)
    np.testing.assert_allclose(blended[1], [0.5, 0.5, 0.4])
    np.testing.assert_array_equal(blended[2], outside)
