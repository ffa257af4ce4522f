"""Mutable orbit state.

The orbiting body is described in polar coordinates centred on the central
body. Each coordinate carries its value and its first time derivative:
- distance: r [m] and dr/dt [m/s]
- angle: theta [rad] and dtheta/dt [rad/s]

OrbitState is created once from InitialConditions and mutated in place by
the integrator and by OrbitEngine. It is never recreated during a session;
a restart writes the initial conditions back into the same object.
"""

from dataclasses import dataclass
import copy
import numpy as np

from orbit.constants import Constants, InitialConditions, normalize_angle
from orbit.errors import ConfigurationError


@dataclass
class PolarCoordinate:
    """One polar coordinate and its rate of change."""

    value: float
    speed: float = 0.0


@dataclass
class OrbitState:
    """State of the orbiting body and of the simulation.

    Attributes
    ----------
    distance : PolarCoordinate
        Distance from the central body [m] and radial speed [m/s].
        The value must stay strictly positive.
    angle : PolarCoordinate
        Polar angle [rad], normalized into [0, 2π) on construction and
        after every tick, and
        angular speed [rad/s].
    central_mass_kg : float
        Mass of the central body [kg]. Zero is allowed and gives a
        straight-line, unaccelerated trajectory.
    paused : bool
        When True, ticks are no-ops.
    simulation_speed : float
        Simulated seconds elapsed per real second.

    Examples
    --------
    >>> from orbit.constants import DEFAULT_CONSTANTS, DEFAULT_INITIAL_CONDITIONS
    >>> state = OrbitState.from_initial_conditions(DEFAULT_INITIAL_CONDITIONS, DEFAULT_CONSTANTS)
    >>> state.distance.value
    149600000000.0
    >>> state.paused
    False
    """

    distance: PolarCoordinate
    angle: PolarCoordinate
    central_mass_kg: float
    paused: bool = False
    simulation_speed: float = 1.0

    def __post_init__(self):
        """Validate state."""
        if not np.isfinite(self.distance.value) or self.distance.value <= 0:
            raise ConfigurationError(
                f"Distance must be a finite positive number, got {self.distance.value}"
            )
        if not (np.isfinite(self.angle.value) and np.isfinite(self.angle.speed)):
            raise ConfigurationError(
                f"Angle and angular speed must be finite, got {self.angle.value}, {self.angle.speed}"
            )
        if not np.isfinite(self.central_mass_kg) or self.central_mass_kg < 0:
            raise ConfigurationError(
                f"Central mass must be a finite non-negative number, got {self.central_mass_kg}"
            )
        if not np.isfinite(self.simulation_speed) or self.simulation_speed <= 0:
            raise ConfigurationError(
                f"Simulation speed must be a finite positive number, got {self.simulation_speed}"
            )
        self.angle.value = normalize_angle(self.angle.value)

    @classmethod
    def from_initial_conditions(
        cls,
        initial: InitialConditions,
        constants: Constants,
    ) -> "OrbitState":
        """Create a running state at the initial conditions, multiplier 1."""
        return cls(
            distance=PolarCoordinate(initial.distance, initial.distance_speed),
            angle=PolarCoordinate(initial.angle, initial.angle_speed),
            central_mass_kg=constants.reference_central_mass,
            paused=False,
            simulation_speed=constants.default_simulation_speed,
        )

    def apply_initial_conditions(self, initial: InitialConditions) -> None:
        """Write distance and angle back to the initial conditions, in place."""
        self.distance.value = initial.distance
        self.distance.speed = initial.distance_speed
        self.angle.value = initial.angle
        self.angle.speed = initial.angle_speed

    def snapshot(self) -> "OrbitState":
        """Independent copy, for recording or comparing trajectories."""
        return copy.deepcopy(self)

    def __str__(self) -> str:
        lines = [
            f"OrbitState(r={self.distance.value:.6e} m, dr/dt={self.distance.speed:+.3e} m/s, "
            f"theta={self.angle.value:.6f} rad, dtheta/dt={self.angle.speed:.6e} rad/s)"
        ]
        lines.append(
            f"  M = {self.central_mass_kg:.5e} kg, speed = {self.simulation_speed:.3e} s/s"
            + (", PAUSED" if self.paused else "")
        )
        return "\n".join(lines)
