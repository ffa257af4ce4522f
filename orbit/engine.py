"""
Orbit engine: lifecycle controller and render-facing API.

OrbitEngine owns exactly one OrbitState together with the read-only
Constants and InitialConditions it was built from. A render loop calls
tick() once per frame and reads scaled_distance() / current_angle(); UI
handlers call the setters; the renderer's collision test calls
report_collision().

Simulation lifecycle:

    Running --pause() / report_collision() / degenerate tick--> Paused
    Paused  --resume() / restart()--------------------------> Running

restart() is available from either state. There is no terminal state.
"""

import math
from typing import Dict, List, Optional, Tuple

import numpy as np

from orbit.constants import (
    Constants,
    InitialConditions,
    DEFAULT_CONSTANTS,
    DEFAULT_INITIAL_CONDITIONS,
)
from orbit.dynamics import advance, compute_diagnostics, integrate_ticks
from orbit.errors import ConfigurationError, DegenerateOrbitError
from orbit.state import OrbitState


class OrbitEngine:
    """Two-body orbit simulation with pause / reset / restart semantics.

    Parameters
    ----------
    constants : Constants, optional
        Physical constants and integration controls.
    initial_conditions : InitialConditions, optional
        Starting point of the orbit, also used by reset() and restart().

    Examples
    --------
    >>> engine = OrbitEngine()
    >>> engine.tick()                       # one frame at 1/60 s
    >>> round(engine.scaled_distance(), 3)
    10.0
    >>> engine.set_mass_multiplier(2.0)     # heavier Sun, orbit falls inward
    >>> engine.report_collision()
    >>> engine.is_paused()
    True
    >>> engine.restart()
    >>> engine.is_paused(), engine.mass_multiplier
    (False, 1.0)
    """

    def __init__(
        self,
        constants: Constants = DEFAULT_CONSTANTS,
        initial_conditions: InitialConditions = DEFAULT_INITIAL_CONDITIONS,
    ):
        self.constants = constants
        self.initial_conditions = initial_conditions
        self._mass_multiplier = 1.0
        self._state = OrbitState.from_initial_conditions(initial_conditions, constants)

    @classmethod
    def from_config(cls, config: Dict) -> "OrbitEngine":
        """Build an engine from the dict returned by io_cfg.load_config()."""
        engine = cls(config['constants'], config['initial_conditions'])
        simulation = config.get('simulation', {})
        if 'mass_multiplier' in simulation:
            engine.set_mass_multiplier(simulation['mass_multiplier'])
        if 'simulation_speed' in simulation:
            engine.set_simulation_speed(simulation['simulation_speed'])
        return engine

    @property
    def state(self) -> OrbitState:
        return self._state

    @property
    def mass_multiplier(self) -> float:
        return self._mass_multiplier

    # ------------------------------------------------------------------
    # Render loop
    # ------------------------------------------------------------------

    def tick(self, dt_seconds: Optional[float] = None) -> None:
        """Advance one frame.

        Parameters
        ----------
        dt_seconds : float, optional
            Real seconds since the previous frame. Defaults to the fixed
            frame rate in constants.

        Raises
        ------
        DegenerateOrbitError
            If the orbit hits the central singularity during this frame.
            The frame is discarded and the engine is left paused.
        """
        if dt_seconds is None:
            dt_seconds = self.constants.frame_rate
        try:
            advance(self._state, self.constants, dt_seconds)
        except DegenerateOrbitError:
            self._state.paused = True
            raise

    def scaled_distance(self) -> float:
        """Distance in display units; the only distance a renderer should use."""
        return self.constants.to_display_units(self._state.distance.value)

    def current_angle(self) -> float:
        """Polar angle in radians, within [0, 2π) after any tick."""
        return self._state.angle.value

    def is_paused(self) -> bool:
        return self._state.paused

    def orbiting_body_rotation_per_frame(self, dt_seconds: Optional[float] = None) -> float:
        """Spin of the orbiting body about its own axis during one frame [rad]."""
        return self._rotation_per_frame(self.constants.orbiting_body_spin_period, dt_seconds)

    def central_body_rotation_per_frame(self, dt_seconds: Optional[float] = None) -> float:
        """Spin of the central body about its own axis during one frame [rad]."""
        return self._rotation_per_frame(self.constants.central_body_spin_period, dt_seconds)

    def orbiting_body_axial_tilt(self) -> float:
        """Tilt of the orbiting body's spin axis from the orbit normal [rad]."""
        return self.constants.orbiting_body_axial_tilt

    def central_body_axial_tilt(self) -> float:
        """Tilt of the central body's spin axis from the orbit normal [rad]."""
        return self.constants.central_body_axial_tilt

    def _rotation_per_frame(self, spin_period: float, dt_seconds: Optional[float]) -> float:
        if dt_seconds is None:
            dt_seconds = self.constants.frame_rate
        return self._state.simulation_speed * dt_seconds * 2.0 * np.pi / spin_period

    # ------------------------------------------------------------------
    # Parameter changes
    # ------------------------------------------------------------------

    def set_mass_multiplier(self, multiplier: float) -> None:
        """Set the central mass to M0 * multiplier.

        Any finite non-negative multiplier is accepted. Zero removes gravity
        entirely and the body continues in a straight line.

        Raises
        ------
        ConfigurationError
            If multiplier is negative or not finite. State is unchanged.
        """
        try:
            multiplier = float(multiplier)
        except (TypeError, ValueError):
            raise ConfigurationError(f"Mass multiplier must be a number, got {multiplier!r}")
        if not math.isfinite(multiplier) or multiplier < 0:
            raise ConfigurationError(
                f"Mass multiplier must be a finite non-negative number, got {multiplier}"
            )
        self._mass_multiplier = multiplier
        self._state.central_mass_kg = self.constants.reference_central_mass * multiplier

    def set_simulation_speed(self, seconds_per_second: float) -> None:
        """Set simulated seconds per real second, effective from the next tick.

        Raises
        ------
        ConfigurationError
            If the speed is not a finite positive number. State is unchanged.
        """
        try:
            seconds_per_second = float(seconds_per_second)
        except (TypeError, ValueError):
            raise ConfigurationError(f"Simulation speed must be a number, got {seconds_per_second!r}")
        if not math.isfinite(seconds_per_second) or seconds_per_second <= 0:
            raise ConfigurationError(
                f"Simulation speed must be a finite positive number, got {seconds_per_second}"
            )
        self._state.simulation_speed = seconds_per_second

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self, reset_parameters: bool = False) -> None:
        """Put distance and angle back to the initial conditions.

        The paused flag is left alone. Mass multiplier and simulation speed
        are kept unless reset_parameters is True, in which case they return
        to 1 and the default speed.
        """
        self._state.apply_initial_conditions(self.initial_conditions)
        if reset_parameters:
            self.set_mass_multiplier(1.0)
            self._state.simulation_speed = self.constants.default_simulation_speed

    def restart(self) -> None:
        """Full restart: initial conditions, mass multiplier 1, running.

        The simulation speed setting survives a restart.
        """
        self.reset()
        self.set_mass_multiplier(1.0)
        self._state.paused = False

    def pause(self) -> None:
        self._state.paused = True

    def resume(self) -> None:
        self._state.paused = False

    def report_collision(self) -> None:
        """Called by the renderer when the bodies' display radii overlap."""
        self._state.paused = True

    # ------------------------------------------------------------------
    # Headless helpers
    # ------------------------------------------------------------------

    def diagnostics(self) -> Dict:
        return compute_diagnostics(self._state, self.constants)

    def run(
        self,
        n_ticks: int,
        tick_seconds: Optional[float] = None,
        opts: Optional[Dict] = None,
    ) -> Tuple[Dict, List[Dict]]:
        """Run n_ticks frames without a renderer. See dynamics.integrate_ticks."""
        try:
            return integrate_ticks(self._state, self.constants, n_ticks, tick_seconds, opts)
        except DegenerateOrbitError:
            self._state.paused = True
            raise

    def __repr__(self) -> str:
        return (f"OrbitEngine(r={self.scaled_distance():.4f} units, "
                f"theta={self.current_angle():.4f} rad, "
                f"multiplier={self._mass_multiplier!r}, paused={self.is_paused()!r})")
