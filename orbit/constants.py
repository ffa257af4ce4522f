"""Physical constants, reference values and display units for the orbit engine.

This module defines the immutable, process-wide parameters of the simulated
Sun-Earth system:
- Gravitational constant G and the reference central mass M0
- Reference distance D0 (one astronomical unit) and reference angular
  velocity omega0 (one revolution per year)
- Display scale factor S = D0 / display_units_per_reference_distance, the
  only conversion between meters and renderer units
- Integration controls: sub-steps per tick, fixed frame rate, default
  simulation speed

Integration always happens in SI units (meters, seconds, radians). Only the
value returned by scaled_distance() is expressed in display units.
"""

from dataclasses import dataclass
import numpy as np

from orbit.errors import ConfigurationError


SECONDS_PER_DAY = 24 * 60 * 60

# UI hints. The physics accepts any non-negative multiplier and any positive
# speed; these only describe the ranges the UI controls expose.
MASS_MULTIPLIER_RANGE = (0.1, 3.0)
COLLISION_FRACTION = 0.5


def days_to_seconds(days: float) -> float:
    """Convert a number of days to seconds."""
    return days * SECONDS_PER_DAY


SPEED_PRESETS = {
    'Slow (1)': days_to_seconds(1),
    'Medium (50)': days_to_seconds(50),
    'Fast (365)': days_to_seconds(365),
}

TWO_PI = 2.0 * np.pi


def normalize_angle(angle: float) -> float:
    """Wrap an angle into [0, 2π)."""
    wrapped = angle % TWO_PI
    # -1e-17 % 2π rounds to exactly 2π
    if wrapped >= TWO_PI:
        wrapped = 0.0
    return wrapped


@dataclass(frozen=True)
class Constants:
    """Read-only parameters shared by the force model and the integrator.

    Attributes
    ----------
    G : float
        Gravitational constant [m³ kg⁻¹ s⁻²].
    reference_distance : float
        D0, initial Sun-Earth distance [m].
    reference_angular_velocity : float
        omega0, angular velocity of a circular orbit at D0 [rad/s].
    reference_central_mass : float
        M0, mass of the central body at multiplier 1 [kg].
    display_units_per_reference_distance : float
        Number of renderer units that represent D0.
    sub_steps : int
        Semi-implicit Euler sub-steps performed per tick.
    frame_rate : float
        Real seconds per tick when the caller does not supply one.
    default_simulation_speed : float
        Simulated seconds per real second at startup.
    orbiting_body_spin_period, central_body_spin_period : float
        Sidereal spin periods used for per-frame rotation [s].
    orbiting_body_axial_tilt, central_body_axial_tilt : float
        Axial tilts [rad].

    Examples
    --------
    >>> c = Constants()
    >>> print(f"S = {c.scale_factor:.3e} m per display unit")
    S = 1.496e+10 m per display unit
    >>> round(c.reference_period / SECONDS_PER_DAY, 2)
    365.26
    """

    G: float = 6.67408e-11
    reference_distance: float = 1.496e11
    reference_angular_velocity: float = 1.990986e-7
    reference_central_mass: float = 1.98855e30
    display_units_per_reference_distance: float = 10.0
    sub_steps: int = 1000
    frame_rate: float = 1.0 / 60.0
    default_simulation_speed: float = 50.0 * SECONDS_PER_DAY
    orbiting_body_spin_period: float = 1.0 * SECONDS_PER_DAY
    central_body_spin_period: float = 27.0 * SECONDS_PER_DAY
    orbiting_body_axial_tilt: float = float(np.deg2rad(23.43667))
    central_body_axial_tilt: float = float(np.deg2rad(7.25))

    def __post_init__(self):
        """Validate constants."""
        positive = (
            'G',
            'reference_distance',
            'reference_angular_velocity',
            'reference_central_mass',
            'display_units_per_reference_distance',
            'frame_rate',
            'default_simulation_speed',
            'orbiting_body_spin_period',
            'central_body_spin_period',
        )
        for name in positive:
            value = getattr(self, name)
            if not np.isfinite(value) or value <= 0:
                raise ConfigurationError(f"{name} must be a finite positive number, got {value}")
        if isinstance(self.sub_steps, bool) or not isinstance(self.sub_steps, (int, np.integer)) \
                or self.sub_steps < 1:
            raise ConfigurationError(f"sub_steps must be a positive integer, got {self.sub_steps}")

    @property
    def scale_factor(self) -> float:
        """Meters per display unit, S = D0 / display_units_per_reference_distance."""
        return self.reference_distance / self.display_units_per_reference_distance

    @property
    def reference_period(self) -> float:
        """Orbital period of the reference orbit, 2π / omega0 [s]."""
        return 2.0 * np.pi / self.reference_angular_velocity

    def to_display_units(self, meters: float) -> float:
        """Convert a distance in meters to renderer units."""
        return meters / self.scale_factor


@dataclass(frozen=True)
class InitialConditions:
    """Starting point of every orbit (and of every restart).

    The default is the Earth on a near-circular orbit: one reference distance
    from the Sun, no radial speed, reference angular velocity, and an
    arbitrary non-zero starting angle. The angle is wrapped into [0, 2π)
    on construction.
    """

    distance: float = 1.496e11
    distance_speed: float = 0.0
    angle: float = np.pi / 6
    angle_speed: float = 1.990986e-7

    def __post_init__(self):
        if not np.isfinite(self.distance) or self.distance <= 0:
            raise ConfigurationError(f"Initial distance must be a finite positive number, got {self.distance}")
        for name in ('distance_speed', 'angle', 'angle_speed'):
            value = getattr(self, name)
            if not np.isfinite(value):
                raise ConfigurationError(f"Initial {name} must be finite, got {value}")
        object.__setattr__(self, 'angle', normalize_angle(float(self.angle)))


DEFAULT_CONSTANTS = Constants()
DEFAULT_INITIAL_CONDITIONS = InitialConditions()
