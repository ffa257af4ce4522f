"""
Renderer-side geometry for the orbit engine.

The engine only produces polar coordinates in display units. Placing the
orbiting body on screen and deciding whether it has run into the central
body are the renderer's job; the helpers here are what a renderer needs for
both:
- polar_to_cartesian: screen-plane position from (distance, angle)
- bodies_collided: overlap test on display radii
- collision_check: the same test packaged as a state predicate for
  dynamics.integrate_ticks

The collision threshold lets the orbiting body sink partway into the central
body before the overlap counts:

    separation <= R_central + fraction * R_orbiting
"""

import numpy as np
from typing import Callable
from numpy.typing import NDArray

from orbit.constants import Constants, COLLISION_FRACTION
from orbit.state import OrbitState


def polar_to_cartesian(distance: float, angle: float) -> NDArray[np.float64]:
    """
    Screen-plane position of the orbiting body.

    The y axis is flipped (y = −d sin θ) so that increasing θ runs
    counter-clockwise when viewed from above the orbital plane.

    Parameters
    ----------
    distance : float
        Distance from the central body, in any unit (usually display units).
    angle : float
        Polar angle [rad].

    Returns
    -------
    ndarray, shape (2,)
        (x, y) in the same unit as distance.

    Examples
    --------
    >>> polar_to_cartesian(10.0, 0.0)
    array([10.,  0.])
    >>> np.allclose(polar_to_cartesian(10.0, np.pi / 2), [0.0, -10.0])
    True
    """
    return np.array([np.cos(angle) * distance, np.sin(-angle) * distance])


def bodies_collided(
    separation: float,
    central_radius: float,
    orbiting_radius: float,
    collision_fraction: float = COLLISION_FRACTION,
) -> bool:
    """
    True when the rendered bodies overlap beyond the allowed fraction.

    Parameters
    ----------
    separation : float
        Distance between the body centres [display units].
    central_radius, orbiting_radius : float
        Rendered radii [display units].
    collision_fraction : float
        Fraction of the orbiting body's radius allowed to sink into the
        central body before a collision is reported (default 0.5).
    """
    if central_radius < 0 or orbiting_radius < 0:
        raise ValueError(
            f"Radii must be non-negative, got {central_radius} and {orbiting_radius}"
        )
    return separation <= central_radius + collision_fraction * orbiting_radius


def collision_check(
    central_radius: float,
    orbiting_radius: float,
    constants: Constants,
    collision_fraction: float = COLLISION_FRACTION,
) -> Callable[[OrbitState], bool]:
    """
    Build a state predicate for integrate_ticks(opts={'collision_check': ...}).

    The central body sits at the origin, so the separation is the scaled
    distance of the orbiting body.

    Examples
    --------
    >>> from orbit.constants import DEFAULT_CONSTANTS, DEFAULT_INITIAL_CONDITIONS
    >>> from orbit.dynamics import integrate_ticks
    >>> state = OrbitState.from_initial_conditions(DEFAULT_INITIAL_CONDITIONS, DEFAULT_CONSTANTS)
    >>> check = collision_check(1.0, 0.25, DEFAULT_CONSTANTS)
    >>> traj, diags = integrate_ticks(state, DEFAULT_CONSTANTS, 600,
    ...                               opts={'collision_check': check})
    """
    def check(state: OrbitState) -> bool:
        separation = constants.to_display_units(state.distance.value)
        return bodies_collided(separation, central_radius, orbiting_radius, collision_fraction)

    return check
