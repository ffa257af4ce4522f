"""
Tests for the sub-stepped semi-implicit Euler integrator.

Validates:
1. Single-tick result against a hand-written sub-step loop
2. Angle normalization into [0, 2π)
3. Pause semantics and atomic (rolled back) degenerate ticks
4. Periodicity at reference parameters
5. Zero-mass straight-line motion
6. First-order convergence in the number of sub-steps
7. Diagnostics and the batch loop
"""

import numpy as np
import pytest

from orbit.constants import (
    Constants,
    InitialConditions,
    DEFAULT_CONSTANTS,
    DEFAULT_INITIAL_CONDITIONS,
    days_to_seconds,
)
from orbit.dynamics import (
    advance,
    compute_diagnostics,
    estimate_orbital_period,
    estimate_periapsis,
    estimate_substep_fraction,
    integrate_ticks,
    normalize_angle,
    substep,
)
from orbit.errors import ConfigurationError, DegenerateOrbitError
from orbit.geometry import collision_check
from orbit.state import OrbitState, PolarCoordinate

TWO_PI = 2.0 * np.pi


def fresh_state(constants=DEFAULT_CONSTANTS, initial=DEFAULT_INITIAL_CONDITIONS):
    return OrbitState.from_initial_conditions(initial, constants)


def angle_difference(a, b):
    """Signed difference a − b wrapped into [−π, π)."""
    return (a - b + np.pi) % TWO_PI - np.pi


class TestSingleTick:
    """One tick of the reference scenario."""

    def test_matches_sequential_substeps(self):
        """1000 sub-steps of dt = (50 d / 60) / 1000 at the reference orbit."""
        G = 6.67408e-11
        M = 1.98855e30
        r, r_dot = 1.496e11, 0.0
        theta, theta_dot = np.pi / 6, 1.990986e-7
        dt = (50 * 86400 / 60) / 1000

        for _ in range(1000):
            a_r = r * theta_dot ** 2 - G * M / r ** 2
            a_theta = -2.0 * r_dot * theta_dot / r
            r_dot = r_dot + dt * a_r
            r = r + dt * r_dot
            theta_dot = theta_dot + dt * a_theta
            theta = theta + dt * theta_dot

        state = fresh_state()
        state.simulation_speed = days_to_seconds(50)
        advance(state, DEFAULT_CONSTANTS, 1 / 60)

        assert state.distance.value == pytest.approx(r, rel=1e-12)
        assert state.distance.speed == pytest.approx(r_dot, rel=1e-9, abs=1e-12)
        assert state.angle.value == pytest.approx(theta % TWO_PI, rel=1e-12)
        assert state.angle.speed == pytest.approx(theta_dot, rel=1e-12)

    def test_substep_uses_start_of_step_accelerations(self):
        r, r_dot, theta, theta_dot = 2.0, 3.0, 0.0, 5.0
        mass, G, dt = 0.0, 1.0, 0.1
        a_r = r * theta_dot ** 2
        a_theta = -2.0 * r_dot * theta_dot / r

        new = substep(r, r_dot, theta, theta_dot, mass, G, dt)

        expected_r_dot = r_dot + dt * a_r
        expected_theta_dot = theta_dot + dt * a_theta
        assert new == pytest.approx((
            r + dt * expected_r_dot,
            expected_r_dot,
            theta + dt * expected_theta_dot,
            expected_theta_dot,
        ))

    def test_zero_duration_tick_does_not_move(self):
        state = fresh_state()
        advance(state, DEFAULT_CONSTANTS, 0.0)
        assert state.distance.value == DEFAULT_INITIAL_CONDITIONS.distance
        assert state.angle.value == pytest.approx(DEFAULT_INITIAL_CONDITIONS.angle)

    @pytest.mark.parametrize("dt", [-1 / 60, float('nan'), float('inf')])
    def test_invalid_tick_duration(self, dt):
        state = fresh_state()
        before = state.snapshot()
        with pytest.raises(ConfigurationError):
            advance(state, DEFAULT_CONSTANTS, dt)
        assert state == before

    def test_speed_and_duration_combine(self):
        """Sub-step size depends only on simulation_speed * tick duration."""
        a = fresh_state()
        b = fresh_state()
        a.simulation_speed = days_to_seconds(20)
        b.simulation_speed = days_to_seconds(10)
        advance(a, DEFAULT_CONSTANTS, 1 / 60)
        advance(b, DEFAULT_CONSTANTS, 2 / 60)
        assert a.distance == b.distance
        assert a.angle == b.angle


class TestAngleNormalization:
    """θ stays in [0, 2π)."""

    def test_normalize_angle(self):
        assert normalize_angle(0.5) == 0.5
        assert normalize_angle(TWO_PI) == 0.0
        assert normalize_angle(TWO_PI + 0.25) == pytest.approx(0.25)
        assert normalize_angle(-0.5) == pytest.approx(TWO_PI - 0.5)
        assert normalize_angle(-1e-17) == 0.0

    def test_every_tick_in_range(self):
        state = fresh_state()
        state.simulation_speed = days_to_seconds(365)
        for _ in range(120):
            advance(state, DEFAULT_CONSTANTS, 1 / 60)
            assert 0.0 <= state.angle.value < TWO_PI

    def test_retrograde_orbit_wraps_below_zero(self):
        initial = InitialConditions(angle=0.1, angle_speed=-1.990986e-7)
        state = fresh_state(initial=initial)
        state.simulation_speed = days_to_seconds(50)
        angles = []
        for _ in range(30):
            advance(state, DEFAULT_CONSTANTS, 1 / 60)
            assert 0.0 <= state.angle.value < TWO_PI
            angles.append(state.angle.value)
        # Started at 0.1 rad moving backwards, so it crossed zero
        assert max(angles) > np.pi

    @pytest.mark.parametrize("angle", [7.0, -1.0, 4 * np.pi + 0.3])
    def test_initial_angle_is_wrapped(self, angle):
        state = fresh_state(initial=InitialConditions(angle=angle))
        assert 0.0 <= state.angle.value < TWO_PI
        assert state.angle.value == pytest.approx(angle % TWO_PI)

    def test_state_built_directly_is_wrapped(self):
        state = OrbitState(PolarCoordinate(1.0e11), PolarCoordinate(-0.5, 0.0), central_mass_kg=0.0)
        assert state.angle.value == pytest.approx(TWO_PI - 0.5)


class TestPause:
    """Paused states never change."""

    def test_paused_tick_is_noop(self):
        state = fresh_state()
        advance(state, DEFAULT_CONSTANTS, 1 / 60)
        state.paused = True
        before = state.snapshot()
        for _ in range(25):
            advance(state, DEFAULT_CONSTANTS, 1 / 60)
        assert state == before

    def test_paused_tick_ignores_invalid_duration(self):
        state = fresh_state()
        state.paused = True
        advance(state, DEFAULT_CONSTANTS, -1.0)


class TestDegenerateTick:
    """A tick that reaches r <= 0 is rejected and rolled back."""

    def test_radial_fall_raises_and_rolls_back(self):
        state = fresh_state(initial=InitialConditions(angle_speed=0.0))
        state.simulation_speed = days_to_seconds(365)
        before = state.snapshot()
        with pytest.raises(DegenerateOrbitError):
            for _ in range(1000):
                before = state.snapshot()
                advance(state, DEFAULT_CONSTANTS, 1 / 60)
        assert state == before
        assert np.isfinite(state.distance.value)
        assert state.distance.value > 0


class TestLongTermBehavior:
    """Periodicity, divergence and convergence properties."""

    def test_one_period_returns_to_start(self):
        state = fresh_state()
        state.simulation_speed = DEFAULT_CONSTANTS.reference_period
        start_angle = state.angle.value
        start_scaled = state.distance.value / DEFAULT_CONSTANTS.scale_factor

        for _ in range(60):
            advance(state, DEFAULT_CONSTANTS, 1 / 60)

        end_scaled = state.distance.value / DEFAULT_CONSTANTS.scale_factor
        assert abs(angle_difference(state.angle.value, start_angle)) < 1e-3
        assert end_scaled == pytest.approx(start_scaled, rel=1e-3)

    def test_zero_mass_moves_in_straight_line(self):
        state = fresh_state()
        state.central_mass_kg = 0.0
        state.simulation_speed = DEFAULT_CONSTANTS.reference_period
        theta0 = state.angle.value
        r0 = state.distance.value

        previous_speed = state.distance.speed
        for _ in range(60):
            advance(state, DEFAULT_CONSTANTS, 1 / 60)
            assert state.distance.speed > previous_speed
            previous_speed = state.distance.speed

        # Unbound: far beyond the starting distance after one "year"
        assert state.distance.value > 2 * r0
        # Straight line: projection on the initial radial direction is constant
        projection = state.distance.value * np.cos(state.angle.value - theta0)
        assert projection == pytest.approx(r0, rel=1e-2)

    def test_substep_convergence_is_monotonic(self):
        """Doubling sub-steps shrinks the change each time (first order)."""
        results = []
        for n in (100, 200, 400):
            constants = Constants(sub_steps=n)
            state = fresh_state(constants=constants)
            state.central_mass_kg = 2 * constants.reference_central_mass
            state.simulation_speed = days_to_seconds(50)
            advance(state, constants, 1.0)
            results.append((state.distance.value, state.angle.value))

        r = [res[0] for res in results]
        theta = [res[1] for res in results]
        assert abs(r[0] - r[1]) > abs(r[1] - r[2])
        assert abs(theta[0] - theta[1]) > abs(theta[1] - theta[2])

    def test_deterministic(self):
        a = fresh_state()
        b = fresh_state()
        for dt in (1 / 60, 1 / 30, 0.0, 1 / 120, 1 / 60):
            advance(a, DEFAULT_CONSTANTS, dt)
            advance(b, DEFAULT_CONSTANTS, dt)
        assert a == b


class TestDiagnostics:
    """Energy, angular momentum, eccentricity and period estimates."""

    def test_reference_orbit_nearly_circular(self):
        diag = compute_diagnostics(fresh_state(), DEFAULT_CONSTANTS)
        assert diag['eccentricity'] < 1e-3
        assert diag['specific_energy'] < 0
        assert diag['scaled_distance'] == pytest.approx(10.0)

    def test_conserved_quantities(self):
        state = fresh_state()
        state.central_mass_kg *= 2
        state.simulation_speed = days_to_seconds(50)
        d0 = compute_diagnostics(state, DEFAULT_CONSTANTS)
        for _ in range(60):
            advance(state, DEFAULT_CONSTANTS, 1 / 60)
        d1 = compute_diagnostics(state, DEFAULT_CONSTANTS)
        assert d1['specific_angular_momentum'] == pytest.approx(d0['specific_angular_momentum'], rel=1e-4)
        assert d1['specific_energy'] == pytest.approx(d0['specific_energy'], rel=1e-4)
        assert d1['eccentricity'] == pytest.approx(0.5, abs=1e-3)

    def test_zero_mass_eccentricity_is_infinite(self):
        state = fresh_state()
        state.central_mass_kg = 0.0
        assert compute_diagnostics(state, DEFAULT_CONSTANTS)['eccentricity'] == float('inf')

    def test_estimate_orbital_period(self):
        T = estimate_orbital_period(fresh_state(), DEFAULT_CONSTANTS)
        assert T == pytest.approx(DEFAULT_CONSTANTS.reference_period, rel=1e-4)

    def test_period_undefined_without_gravity(self):
        state = fresh_state()
        state.central_mass_kg = 0.0
        with pytest.raises(ValueError):
            estimate_orbital_period(state, DEFAULT_CONSTANTS)

    def test_period_undefined_when_unbound(self):
        state = fresh_state(initial=InitialConditions(angle_speed=2 * 1.990986e-7))
        with pytest.raises(ValueError):
            estimate_orbital_period(state, DEFAULT_CONSTANTS)

    def test_periapsis_of_heavier_sun(self):
        state = fresh_state()
        state.central_mass_kg *= 2
        # e = 1/2 with the start at apoapsis: r_p = r0 (1 − e) / (1 + e)
        assert estimate_periapsis(state, DEFAULT_CONSTANTS) == pytest.approx(
            DEFAULT_INITIAL_CONDITIONS.distance / 3, rel=1e-3)

    def test_substep_fraction(self):
        fraction = estimate_substep_fraction(fresh_state(), DEFAULT_CONSTANTS)
        expected = days_to_seconds(50) / 60 / 1000 / DEFAULT_CONSTANTS.reference_period
        assert fraction == pytest.approx(expected, rel=1e-4)


class TestIntegrateTicks:
    """Batch loop with recording and collision feedback."""

    def test_trajectory_shapes(self):
        state = fresh_state()
        traj, diags = integrate_ticks(state, DEFAULT_CONSTANTS, 20, opts={'save_every': 5})
        assert len(traj['t']) == 5
        assert len(diags) == 5
        assert list(traj['tick']) == [0, 5, 10, 15, 20]
        assert traj['t'][-1] == pytest.approx(20 * days_to_seconds(50) / 60)
        assert traj['r'][-1] == state.distance.value
        assert traj['theta'][-1] == state.angle.value
        assert np.allclose(traj['scaled_r'], traj['r'] / DEFAULT_CONSTANTS.scale_factor)
        assert diags[-1]['tick'] == 20

    def test_matches_manual_ticks(self):
        a = fresh_state()
        b = fresh_state()
        integrate_ticks(a, DEFAULT_CONSTANTS, 10, tick_seconds=1 / 30)
        for _ in range(10):
            advance(b, DEFAULT_CONSTANTS, 1 / 30)
        assert a == b

    def test_paused_time_does_not_advance(self):
        state = fresh_state()
        state.paused = True
        traj, _ = integrate_ticks(state, DEFAULT_CONSTANTS, 5)
        assert np.all(traj['t'] == 0.0)
        assert np.all(traj['paused'])
        assert np.all(traj['r'] == traj['r'][0])

    def test_collision_pauses(self):
        constants = Constants(sub_steps=100)
        # Slow start: highly eccentric orbit that plunges toward the Sun
        initial = InitialConditions(angle_speed=0.2 * 1.990986e-7)
        state = fresh_state(constants=constants, initial=initial)
        state.simulation_speed = days_to_seconds(5)
        check = collision_check(1.0, 0.25, constants)

        traj, _ = integrate_ticks(state, constants, 2000, opts={'collision_check': check})

        assert state.paused
        assert traj['paused'][-1]
        assert 0 < traj['scaled_r'][-1] <= 1.125
        # Time stops once paused
        assert traj['t'][-1] == traj['t'][-2]

    def test_verbose_progress(self, capsys):
        state = fresh_state()
        integrate_ticks(state, DEFAULT_CONSTANTS, 4, opts={'verbose': True, 'progress_every': 2})
        out = capsys.readouterr().out
        assert "Starting integration" in out
        assert "2/4" in out
        assert "Integration complete!" in out

    def test_invalid_options(self):
        with pytest.raises(ConfigurationError):
            integrate_ticks(fresh_state(), DEFAULT_CONSTANTS, -1)
        with pytest.raises(ConfigurationError):
            integrate_ticks(fresh_state(), DEFAULT_CONSTANTS, 5, opts={'save_every': 0})

    @pytest.mark.parametrize("save_every", [2.5, 2.0, True])
    def test_save_every_must_be_integer(self, save_every):
        with pytest.raises(ConfigurationError):
            integrate_ticks(fresh_state(), DEFAULT_CONSTANTS, 5, opts={'save_every': save_every})
