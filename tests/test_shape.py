"""Unit tests for spot shape matrices and the view transform.

Test suites:
1. SpotShape construction and dispatch
2. SpotShape operations (scale, stretch, rotate, invert, apply)
3. Effective radius
4. Transform composition order and primitives
"""

import logging

import numpy as np
import pytest

from spotfield.renderer.pattern import SIZE_FACTOR
from spotfield.renderer.shape import SpotShape, Transform


def assert_shape_close(shape, expected, tol=1e-9):
    np.testing.assert_allclose(
        [shape.xx, shape.xy, shape.yx, shape.yy], expected, atol=tol
    )


# ============================================================================
# SPOT SHAPE CONSTRUCTION
# ============================================================================

def test_default_is_identity():
    assert SpotShape() == SpotShape(1.0, 0.0, 0.0, 1.0)


def test_from_scalar():
    assert SpotShape.from_scalar(2.5) == SpotShape(2.5, 0.0, 0.0, 2.5)


def test_from_pair():
    assert SpotShape.from_pair((2.0, 3.0)) == SpotShape(2.0, 0.0, 0.0, 3.0)


def test_from_matrix():
    assert SpotShape.from_matrix([[3.0, -1.5], [2.5, 5.0]]) == SpotShape(3.0, -1.5, 2.5, 5.0)


@pytest.mark.parametrize("value,expected", [
    (4.5, SpotShape(4.5, 0.0, 0.0, 4.5)),
    (np.float64(2.0), SpotShape(2.0, 0.0, 0.0, 2.0)),
    ((1.5, 0.5), SpotShape(1.5, 0.0, 0.0, 0.5)),
    ([[1, 2], [3, 4]], SpotShape(1.0, 2.0, 3.0, 4.0)),
])
def test_from_value_dispatch(value, expected):
    assert SpotShape.from_value(value) == expected


def test_from_value_passthrough():
    shape = SpotShape(1.0, 2.0, 3.0, 4.0)
    assert SpotShape.from_value(shape) is shape


# ============================================================================
# SPOT SHAPE OPERATIONS
# ============================================================================

def test_scale():
    assert SpotShape(1.0, 2.0, 3.0, 4.0).scale(2.0) == SpotShape(2.0, 4.0, 6.0, 8.0)


def test_stretch_scales_rows():
    assert SpotShape(1.0, 2.0, 3.0, 4.0).stretch(2.0, 0.5) == SpotShape(2.0, 4.0, 1.5, 2.0)


def test_rotate_90():
    assert_shape_close(SpotShape().rotate(90.0), [0.0, -1.0, 1.0, 0.0])


def test_rotate_left_multiplies():
    m = SpotShape(3.0, -1.5, 2.5, 5.0)
    phi = np.radians(30.0)
    r = np.array([[np.cos(phi), -np.sin(phi)], [np.sin(phi), np.cos(phi)]])
    expected = r @ np.array(m.to_matrix())
    assert_shape_close(m.rotate(30.0), expected.ravel())


def test_rotate_preserves_determinant():
    m = SpotShape(3.0, -1.5, 2.5, 5.0)
    assert m.rotate(37.0).determinant() == pytest.approx(m.determinant())


def test_operations_are_pure():
    m = SpotShape(1.0, 2.0, 3.0, 4.0)
    m.scale(3.0)
    m.stretch(2.0, 2.0)
    m.rotate(45.0)
    assert m == SpotShape(1.0, 2.0, 3.0, 4.0)


def test_invert():
    m = SpotShape(3.0, -1.5, 2.5, 5.0)
    assert m.determinant() == pytest.approx(18.75)
    inv = m.invert()
    product = np.array(m.to_matrix()) @ np.array(inv.to_matrix())
    np.testing.assert_allclose(product, np.eye(2), atol=1e-12)


def test_identity_self_inverse():
    assert SpotShape().invert() == SpotShape()


@pytest.mark.parametrize("shape", [
    SpotShape(3.0, -1.5, 2.5, 5.0),
    SpotShape().scale(4.5).stretch(1.7, 0.7).rotate(45.0),
    SpotShape(0.2, 0.0, 0.1, -0.3),
])
def test_invert_roundtrip(shape):
    assert_shape_close(shape.invert().invert(), [shape.xx, shape.xy, shape.yx, shape.yy])
    v = (0.75, -2.25)
    np.testing.assert_allclose(shape.apply(shape.invert().apply(v)), v, atol=1e-12)


def test_invert_singular_returns_identity(caplog):
    with caplog.at_level(logging.WARNING, logger="spotfield.renderer.shape"):
        inv = SpotShape(1.0, 1.0, 1.0, 1.0).invert()
    assert inv == SpotShape()
    assert "Singular shape matrix" in caplog.text


def test_invert_threshold():
    # |det| = 0.01 is still invertible
    inv = SpotShape(0.1, 0.0, 0.0, 0.1).invert()
    assert_shape_close(inv, [10.0, 0.0, 0.0, 10.0])
    assert SpotShape(0.09, 0.0, 0.0, 0.09).invert() == SpotShape()


def test_apply_scalar():
    m = SpotShape(1.0, 2.0, 3.0, 4.0)
    assert m.apply((1.0, 1.0)) == (3.0, 7.0)


def test_apply_arrays():
    m = SpotShape(1.0, 2.0, 3.0, 4.0)
    vx = np.array([1.0, 0.0])
    vy = np.array([0.0, 1.0])
    tx, ty = m.apply((vx, vy))
    np.testing.assert_array_equal(tx, [1.0, 2.0])
    np.testing.assert_array_equal(ty, [3.0, 4.0])


# ============================================================================
# EFFECTIVE RADIUS
# ============================================================================

def test_effective_radius_identity():
    rx, ry = SpotShape().effective_radius_xy()
    assert rx == pytest.approx(SIZE_FACTOR)
    assert ry == pytest.approx(SIZE_FACTOR)


def test_effective_radius_skewed():
    rx, ry = SpotShape(3.0, -1.5, 2.5, 5.0).effective_radius_xy()
    assert rx == pytest.approx(6.1411, abs=1e-3)
    assert ry == pytest.approx(10.2352, abs=1e-3)


# ============================================================================
# TRANSFORM
# ============================================================================

def test_transform_default_identity():
    t = Transform()
    assert t.is_identity()
    assert t.apply((3.5, -2.0)) == (3.5, -2.0)


def test_transform_compose_order():
    a = Transform().translate(10.0, 0.0)
    b = Transform().scale(2.0)
    p = (1.0, 1.0)
    assert a.compose(b).apply(p) == b.apply(a.apply(p)) == (22.0, 2.0)
    assert b.compose(a).apply(p) == (12.0, 2.0)


def test_transform_chain_applies_in_call_order():
    t = Transform().translate(10.0, 0.0).scale(2.0)
    assert t.apply((1.0, 1.0)) == (22.0, 2.0)
    t = Transform().scale(2.0).translate(10.0, 0.0)
    assert t.apply((1.0, 1.0)) == (12.0, 2.0)


def test_transform_stretch():
    assert Transform().stretch(2.0, 3.0).apply((1.0, 1.0)) == (2.0, 3.0)


def test_transform_rotate():
    x, y = Transform().rotate(90.0).apply((1.0, 0.0))
    assert x == pytest.approx(0.0, abs=1e-12)
    assert y == pytest.approx(1.0)


def test_transform_rotates_translation():
    x, y = Transform().translate(1.0, 0.0).rotate(90.0).apply((0.0, 0.0))
    assert x == pytest.approx(0.0, abs=1e-12)
    assert y == pytest.approx(1.0)


def test_transform_from_matrix():
    t = Transform.from_matrix([[1.0, 0.0, 5.0], [0.0, 1.0, -3.0]])
    assert t.apply((1.0, 1.0)) == (6.0, -2.0)
    t = Transform.from_matrix([[0.0, 1.0], [1.0, 0.0]])
    assert t.apply((1.0, 2.0)) == (2.0, 1.0)


def test_transform_from_matrix_invalid():
    with pytest.raises(ValueError, match="2x2 or 2x3"):
        Transform.from_matrix([[1.0, 0.0, 0.0, 0.0], [0.0, 1.0, 0.0, 0.0]])


def test_transform_from_value():
    assert Transform.from_value(2.0) == Transform(2.0, 0.0, 0.0, 2.0)
    assert Transform.from_value((2.0, 3.0)) == Transform(2.0, 0.0, 0.0, 3.0)
    t = Transform().translate(1.0, 1.0)
    assert Transform.from_value(t) is t
