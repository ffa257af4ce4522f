"""Force model for the central-force problem in polar coordinates.

The orbiting body moves under the attraction of a fixed central body of mass
M. From the Euler-Lagrange equations of the Lagrangian

    L = ½ m (ṙ² + r² θ̇²) + G M m / r

the accelerations of the two polar coordinates are:

    r̈ = r θ̇² − G M / r²          (centrifugal term minus gravity)
    θ̈ = −2 ṙ θ̇ / r               (conservation of angular momentum)

Both functions are pure and stateless. They take plain floats so the
integrator can call them in a tight loop without allocating.
"""

from orbit.errors import DegenerateOrbitError


def _check_distance(distance: float) -> None:
    # `not >` also rejects NaN
    if not distance > 0.0:
        raise DegenerateOrbitError(
            f"Distance reached {distance!r} m; the central-force equations are singular at r <= 0"
        )


def distance_acceleration(
    distance: float,
    angle_speed: float,
    central_mass_kg: float,
    G: float,
) -> float:
    """
    Radial acceleration r̈ = r θ̇² − G M / r².

    Parameters
    ----------
    distance : float
        Current distance r from the central body [m], must be > 0.
    angle_speed : float
        Current angular speed θ̇ [rad/s].
    central_mass_kg : float
        Central mass M [kg]. With M = 0 only the centrifugal term remains.
    G : float
        Gravitational constant [m³ kg⁻¹ s⁻²].

    Returns
    -------
    float
        Radial acceleration [m/s²].

    Raises
    ------
    DegenerateOrbitError
        If distance is not a positive number.

    Examples
    --------
    >>> # Circular orbit: the two terms cancel
    >>> a = distance_acceleration(1.496e11, 1.990986e-7, 1.98855e30, 6.67408e-11)
    >>> abs(a) < 1e-6
    True
    """
    _check_distance(distance)
    return distance * angle_speed ** 2 - G * central_mass_kg / distance ** 2


def angle_acceleration(
    distance: float,
    distance_speed: float,
    angle_speed: float,
) -> float:
    """
    Angular acceleration θ̈ = −2 ṙ θ̇ / r.

    This is the coupling term that keeps the specific angular momentum
    h = r² θ̇ constant: moving outward slows the angular motion down.

    Raises
    ------
    DegenerateOrbitError
        If distance is not a positive number.
    """
    _check_distance(distance)
    return -2.0 * distance_speed * angle_speed / distance
