"""Tests for particle computation and the regeneration lifecycle."""
import math

import numpy as np
import pytest

from galaxy.colors import parse_color
from galaxy.config import GalaxyParams
from galaxy.errors import InvalidParameterError, ResourceDisposalError, SceneError
from galaxy.generator import GalaxyGenerator, ParticleBuffer, compute_particles, validate_params
from galaxy.random_source import NumpyRandomSource
from galaxy.scene import Scene


class FixedSource:
    """Random source returning preset radial fractions, samples and signs."""

    def __init__(self, radial, samples=None, signs=None):
        n = len(radial)
        self.radial = np.asarray(radial, dtype=float)
        self.samples = np.full((n, 3), 0.5) if samples is None else np.asarray(samples, dtype=float)
        self.sign_values = np.ones((n, 3)) if signs is None else np.asarray(signs, dtype=float)

    def uniform(self, shape):
        return self.radial if isinstance(shape, int) else self.samples

    def signs(self, shape):
        return self.sign_values


def make_params(**overrides):
    base = dict(
        particle_count=300,
        particle_size=0.01,
        branches=3,
        radius=2.0,
        spin=1.0,
        randomness=0.5,
        randomness_power=3.0,
    )
    base.update(overrides)
    return GalaxyParams(**base)


# ============================================================================
# Particle computation
# ============================================================================

def test_six_particle_scenario_exact_coordinates():
    """With spin=0 and randomness=0 every particle lies on its arm at its drawn radius."""
    params = GalaxyParams(particle_count=6, branches=3, radius=1.0, spin=0.0, randomness=0.0)
    radial = [0.1, 0.2, 0.3, 0.4, 0.5, 0.6]
    buffer = compute_particles(params, FixedSource(radial))

    expected_angles = [0.0, 2 * math.pi / 3, 4 * math.pi / 3] * 2
    for i, (angle, r) in enumerate(zip(expected_angles, radial)):
        x, y, z = buffer.positions[i]
        assert x == pytest.approx(math.cos(angle) * r, abs=1e-6)
        assert y == 0.0
        assert z == pytest.approx(math.sin(angle) * r, abs=1e-6)


def test_particles_share_branch_angle_by_index_modulo():
    params = GalaxyParams(particle_count=6, branches=3, radius=1.0, spin=0.0, randomness=0.0)
    buffer = compute_particles(params, FixedSource([0.5] * 6))
    positions = buffer.positions

    for i in range(3):
        np.testing.assert_allclose(positions[i], positions[i + 3], atol=1e-7)
    assert not np.allclose(positions[0], positions[1])


def test_spin_rotates_by_distance():
    params = GalaxyParams(particle_count=6, branches=3, radius=2.0, spin=1.5, randomness=0.0)
    radial = [0.25] * 6
    buffer = compute_particles(params, FixedSource(radial))

    r = 0.5
    angle = 1.5 * r
    assert buffer.positions[0, 0] == pytest.approx(math.cos(angle) * r, abs=1e-6)
    assert buffer.positions[0, 2] == pytest.approx(math.sin(angle) * r, abs=1e-6)


def test_randomness_offset_uses_power_sign_and_radius():
    params = GalaxyParams(particle_count=6, branches=3, radius=1.0, spin=0.0,
                          randomness=2.0, randomness_power=2.0)
    radial = [0.5] * 6
    samples = [[0.5, 0.5, 0.5]] * 6
    signs = [[1.0, -1.0, 1.0]] * 6
    buffer = compute_particles(params, FixedSource(radial, samples, signs))

    offset = 0.5 ** 2 * 2.0 * 0.5
    x, y, z = buffer.positions[0]
    assert x == pytest.approx(0.5 + offset, abs=1e-6)
    assert y == pytest.approx(-offset, abs=1e-6)
    assert z == pytest.approx(offset, abs=1e-6)


def test_zero_randomness_gives_no_offset_for_any_power():
    for power in (1.0, 3.0, 10.0):
        params = make_params(randomness=0.0, randomness_power=power, spin=0.0)
        buffer = compute_particles(params, NumpyRandomSource(seed=7))
        assert np.all(buffer.positions[:, 1] == 0.0)
        radii = np.hypot(buffer.positions[:, 0], buffer.positions[:, 2])
        assert np.all(radii <= params.radius + 1e-5)


def test_count_invariant():
    for count in (100, 1234, 5000):
        buffer = compute_particles(make_params(particle_count=count), NumpyRandomSource(seed=1))
        assert buffer.count == count
        assert buffer.positions.shape == (count, 3)
        assert buffer.colors.shape == (count, 3)
        assert len(buffer.flat_positions()) == 3 * count


def test_bounds_invariant_at_extreme_parameters():
    params = make_params(
        particle_count=20000, radius=100.0, spin=-5.0, randomness=2.0, randomness_power=1.0,
        inside_color="#ffffff", outside_color="#000000",
    )
    buffer = compute_particles(params, NumpyRandomSource(seed=3))
    assert np.all(np.isfinite(buffer.positions))
    assert buffer.colors.min() >= 0.0
    assert buffer.colors.max() <= 1.0


def test_branch_assignment_independent_of_randomness():
    """Two runs with different seeds put particles on the same set of arm angles."""
    params = make_params(branches=5, spin=0.0, randomness=0.0)

    def arm_angles(seed):
        buffer = compute_particles(params, NumpyRandomSource(seed=seed))
        angles = np.arctan2(buffer.positions[:, 2], buffer.positions[:, 0]) % (2 * np.pi)
        return np.round(angles, 3) % round(2 * np.pi, 3)

    first, second = arm_angles(1), arm_angles(2)
    np.testing.assert_allclose(first, second, atol=2e-3)
    assert len(set(first.tolist())) == 5


def test_color_endpoints_are_exact():
    params = GalaxyParams(particle_count=6, branches=3, radius=1.0, randomness=0.0)
    radial = [0.0, 1.0, 0.5, 0.0, 1.0, 0.5]
    buffer = compute_particles(params, FixedSource(radial))

    inside = parse_color(params.inside_color).astype(np.float32)
    outside = parse_color(params.outside_color).astype(np.float32)
    np.testing.assert_array_equal(buffer.colors[0], inside)
    np.testing.assert_array_equal(buffer.colors[1], outside)
    np.testing.assert_allclose(buffer.colors[2], (inside + outside) / 2, atol=1e-6)


def test_random_source_shape_mismatch_raises():
    params = GalaxyParams(particle_count=6)
    with pytest.raises(ValueError):
        compute_particles(params, FixedSource([0.5] * 5))


def test_buffer_is_read_only():
    buffer = compute_particles(make_params(), NumpyRandomSource(seed=0))
    with pytest.raises(ValueError):
        buffer.positions[0, 0] = 1.0


def test_released_buffer_raises_on_access():
    buffer = ParticleBuffer(np.zeros((4, 3)), np.zeros((4, 3)))
    buffer.release()
    assert buffer.released
    with pytest.raises(ResourceDisposalError):
        _ = buffer.positions


def test_buffer_rejects_mismatched_arrays():
    with pytest.raises(ValueError):
        ParticleBuffer(np.zeros((4, 3)), np.zeros((5, 3)))


# ============================================================================
# Validation
# ============================================================================

@pytest.mark.parametrize(
    "field, value",
    [
        ("particle_count", 99),
        ("particle_count", 300001),
        ("particle_count", 1000.5),
        ("particle_size", 0.0),
        ("branches", 2),
        ("branches", 31),
        ("radius", 0.05),
        ("spin", 5.5),
        ("randomness", -0.1),
        ("randomness_power", 0.5),
        ("radius", float("nan")),
        ("branches", True),
        ("spin", "1"),
        ("inside_color", "#12345"),
        ("outside_color", "not a color"),
    ],
)
def test_validate_rejects_out_of_range(field, value):
    params = make_params(**{field: value})
    with pytest.raises(InvalidParameterError) as info:
        validate_params(params)
    assert info.value.field == field


def test_validate_accepts_bounds_inclusive():
    validate_params(make_params(particle_count=100, branches=30, radius=100.0, spin=-5.0,
                                randomness=0.0, randomness_power=10.0, particle_size=0.1))
    validate_params(GalaxyParams())


# ============================================================================
# Lifecycle
# ============================================================================

def test_first_generate_installs_one_object():
    scene = Scene()
    generator = GalaxyGenerator(scene, NumpyRandomSource(seed=0))
    buffer = generator.generate(make_params())

    assert len(scene) == 1
    assert scene.objects[0].buffer is buffer
    assert scene.objects[0].material.size == pytest.approx(0.01)
    assert generator.generation == 1


def test_disposal_happens_before_install():
    scene = Scene()
    events = []
    scene.subscribe(lambda event, obj: events.append((event, obj.id, len(scene))))
    generator = GalaxyGenerator(scene, NumpyRandomSource(seed=0))

    generator.generate(make_params())
    first = generator.current
    generator.generate(make_params(branches=4))
    second = generator.current

    assert [e[0] for e in events] == ["add", "remove", "add"]
    assert max(live for _, _, live in events) == 1
    assert events[1][1] == first.id
    assert scene.objects == (second,)
    assert first.disposed
    assert first.material.disposed
    assert first.buffer.released
    assert not second.disposed


def test_invalid_params_keep_previous_galaxy():
    scene = Scene()
    generator = GalaxyGenerator(scene, NumpyRandomSource(seed=0))
    generator.generate(make_params())
    previous = generator.current

    with pytest.raises(InvalidParameterError):
        generator.generate(make_params(particle_count=0))

    assert scene.objects == (previous,)
    assert not previous.disposed
    assert generator.generation == 1


class BrokenScene(Scene):
    def remove(self, obj):
        raise SceneError("display refused removal")


def test_scene_removal_failure_propagates():
    scene = BrokenScene()
    generator = GalaxyGenerator(scene, NumpyRandomSource(seed=0))
    generator.generate(make_params())
    previous = generator.current

    with pytest.raises(ResourceDisposalError):
        generator.generate(make_params())

    assert scene.objects == (previous,)
    assert generator.current is previous
    assert not previous.disposed


def test_failing_listener_does_not_leak_a_second_galaxy():
    scene = Scene()
    calls = []

    def flaky(event, obj):
        calls.append(event)
        if len(calls) == 1:
            raise RuntimeError("panel not ready")

    scene.subscribe(flaky)
    generator = GalaxyGenerator(scene, NumpyRandomSource(seed=0))
    generator.generate(make_params())
    first = generator.current
    generator.generate(make_params())

    assert calls == ["add", "remove", "add"]
    assert len(scene) == 1
    assert scene.objects == (generator.current,)
    assert first.disposed


def test_listener_failing_on_remove_keeps_generator_usable():
    scene = Scene()

    def on_remove(event, obj):
        if event == "remove":
            raise RuntimeError("stale handle")

    scene.subscribe(on_remove)
    generator = GalaxyGenerator(scene, NumpyRandomSource(seed=0))
    for _ in range(3):
        generator.generate(make_params())

    assert generator.generation == 3
    assert scene.objects == (generator.current,)


def test_context_manager_releases_on_exit():
    scene = Scene()
    with GalaxyGenerator(scene, NumpyRandomSource(seed=0)) as generator:
        generator.generate(make_params())
        cloud = generator.current
    assert len(scene) == 0
    assert cloud.disposed
    assert generator.current is None

    # Releasing again is a no-op
    generator.release()
