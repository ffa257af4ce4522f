"""Configuration and I/O module for the orbit engine.

This module provides:
- YAML configuration loading and validation
- Example config generation
- CSV output for trajectories
- JSON output for diagnostics

Every section of the configuration is optional; an empty mapping per section
reproduces the built-in Sun-Earth defaults. Values are always in SI units
(meters, seconds, kilograms, radians) except the *_days conveniences.
"""

from typing import Dict, List, Tuple, Any
from pathlib import Path
import dataclasses
import json
import warnings

import numpy as np
import yaml

from orbit.constants import (
    Constants,
    InitialConditions,
    MASS_MULTIPLIER_RANGE,
    days_to_seconds,
)
from orbit.dynamics import estimate_orbital_period, estimate_periapsis, estimate_substep_fraction
from orbit.errors import ConfigurationError
from orbit.state import OrbitState


_CONSTANT_FIELDS = {f.name for f in dataclasses.fields(Constants)}
_INITIAL_FIELDS = {f.name for f in dataclasses.fields(InitialConditions)}


def _as_float(section: str, key: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{section}.{key} must be a number, got {value!r}")


def _as_int(section: str, key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{section}.{key} must be an integer, got {value!r}")
    try:
        as_float = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{section}.{key} must be an integer, got {value!r}")
    if not as_float.is_integer():
        raise ConfigurationError(f"{section}.{key} must be an integer, got {value!r}")
    return int(as_float)


def _section(raw_config: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = raw_config.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Configuration section '{name}' must be a mapping")
    return section


def load_config(yaml_path: str) -> Dict[str, Any]:
    """Load and parse YAML configuration file.

    Parameters
    ----------
    yaml_path : str
        Path to YAML configuration file.

    Returns
    -------
    dict
        Configuration dictionary with keys:
        - 'constants': Constants instance
        - 'initial_conditions': InitialConditions instance
        - 'simulation': dict with mass_multiplier, simulation_speed [s/s],
          ticks, tick_seconds
        - 'outputs': dict with save_every, write_csv, plots

    Raises
    ------
    FileNotFoundError
        If yaml_path does not exist.
    yaml.YAMLError
        If YAML parsing fails.
    ConfigurationError
        If the file is empty, a section is not a mapping, a key is unknown,
        or a value has the wrong type or range.

    Examples
    --------
    >>> config = load_config("earth_orbit.yaml")
    >>> engine = OrbitEngine.from_config(config)
    >>> traj, diags = engine.run(config['simulation']['ticks'],
    ...                          config['simulation']['tick_seconds'])

    See Also
    --------
    validate_config : Validate loaded configuration for numerical sanity
    create_example_config : Generate example YAML file
    """
    yaml_path = Path(yaml_path)
    if not yaml_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

    with open(yaml_path, 'r') as f:
        raw_config = yaml.safe_load(f)

    if raw_config is None:
        raise ConfigurationError(f"Empty or invalid YAML file: {yaml_path}")
    if not isinstance(raw_config, dict):
        raise ConfigurationError(f"Top level of {yaml_path} must be a mapping")

    # Parse constants
    constants_cfg = dict(_section(raw_config, 'constants'))
    if 'default_simulation_speed_days' in constants_cfg:
        days = _as_float('constants', 'default_simulation_speed_days',
                         constants_cfg.pop('default_simulation_speed_days'))
        constants_cfg['default_simulation_speed'] = days_to_seconds(days)
    kwargs = {}
    for key, value in constants_cfg.items():
        if key not in _CONSTANT_FIELDS:
            raise ConfigurationError(f"Unknown key constants.{key}")
        if key == 'sub_steps':
            kwargs[key] = _as_int('constants', key, value)
        else:
            kwargs[key] = _as_float('constants', key, value)
    constants = Constants(**kwargs)

    # Parse initial conditions
    initial_cfg = _section(raw_config, 'initial_conditions')
    kwargs = {}
    for key, value in initial_cfg.items():
        if key not in _INITIAL_FIELDS:
            raise ConfigurationError(f"Unknown key initial_conditions.{key}")
        kwargs[key] = _as_float('initial_conditions', key, value)
    initial_conditions = InitialConditions(**kwargs)

    # Parse simulation options
    simulation_cfg = _section(raw_config, 'simulation')
    if 'simulation_speed' in simulation_cfg and 'simulation_speed_days' in simulation_cfg:
        raise ConfigurationError(
            "Give either simulation.simulation_speed or simulation.simulation_speed_days, not both"
        )
    if 'simulation_speed_days' in simulation_cfg:
        speed = days_to_seconds(_as_float('simulation', 'simulation_speed_days',
                                          simulation_cfg['simulation_speed_days']))
    else:
        speed = _as_float('simulation', 'simulation_speed',
                          simulation_cfg.get('simulation_speed', constants.default_simulation_speed))
    simulation = {
        'mass_multiplier': _as_float('simulation', 'mass_multiplier',
                                     simulation_cfg.get('mass_multiplier', 1.0)),
        'simulation_speed': speed,
        'ticks': _as_int('simulation', 'ticks', simulation_cfg.get('ticks', 60)),
        'tick_seconds': _as_float('simulation', 'tick_seconds',
                                  simulation_cfg.get('tick_seconds', constants.frame_rate)),
    }

    if 'simulation_speed' not in simulation_cfg and 'simulation_speed_days' not in simulation_cfg:
        warnings.warn(
            f"simulation_speed not specified, using default {constants.default_simulation_speed:.6e} s/s",
            UserWarning
        )

    # Parse output options
    outputs_cfg = _section(raw_config, 'outputs')
    outputs = {
        'save_every': _as_int('outputs', 'save_every', outputs_cfg.get('save_every', 1)),
        'write_csv': bool(outputs_cfg.get('write_csv', True)),
        'plots': list(outputs_cfg.get('plots', [])),
    }

    return {
        'constants': constants,
        'initial_conditions': initial_conditions,
        'simulation': simulation,
        'outputs': outputs,
    }


def validate_config(config: Dict[str, Any]) -> Tuple[bool, List[str]]:
    """Validate configuration for physical consistency and numerical stability.

    Parameters
    ----------
    config : dict
        Configuration dictionary from load_config().

    Returns
    -------
    is_valid : bool
        True if configuration passes all checks (may still have warnings).
    warnings_list : list of str
        Messages about errors and potential issues.

    Notes
    -----
    **Errors** (is_valid = False):

    1. simulation_speed <= 0, tick_seconds < 0, ticks < 0
    2. mass_multiplier < 0
    3. save_every <= 0

    **Warnings**:

    1. mass_multiplier outside the range the controls expose
    2. Sub-step dt > 1e-3 of the orbital period (Euler error grows)
    3. Unbound orbit (no period; body escapes)
    4. Periapsis below 1% of the initial distance (close pass, large
       accelerations, likely degenerate tick)

    Examples
    --------
    >>> config = load_config("earth_orbit.yaml")
    >>> is_valid, messages = validate_config(config)
    >>> for m in messages:
    ...     print(f"  - {m}")
    """
    warnings_list = []
    is_valid = True

    try:
        constants = config['constants']
        initial = config['initial_conditions']
        simulation = config['simulation']
        outputs = config['outputs']
    except KeyError as e:
        return False, [f"Missing required config section: {e}"]

    speed = simulation['simulation_speed']
    multiplier = simulation['mass_multiplier']
    tick_seconds = simulation['tick_seconds']

    if not np.isfinite(speed) or speed <= 0:
        is_valid = False
        warnings_list.append(f"simulation_speed must be positive, got {speed}")

    if not np.isfinite(tick_seconds) or tick_seconds < 0:
        is_valid = False
        warnings_list.append(f"tick_seconds must be non-negative, got {tick_seconds}")

    if simulation['ticks'] < 0:
        is_valid = False
        warnings_list.append(f"ticks must be non-negative, got {simulation['ticks']}")

    if not np.isfinite(multiplier) or multiplier < 0:
        is_valid = False
        warnings_list.append(f"mass_multiplier must be non-negative, got {multiplier}")

    if outputs['save_every'] <= 0:
        is_valid = False
        warnings_list.append(f"save_every must be positive, got {outputs['save_every']}")

    if not is_valid:
        return is_valid, warnings_list

    lo, hi = MASS_MULTIPLIER_RANGE
    if not lo <= multiplier <= hi:
        warnings_list.append(
            f"mass_multiplier = {multiplier} is outside the usual range [{lo}, {hi}]"
        )

    if multiplier == 0:
        warnings_list.append("mass_multiplier = 0: no gravity, the body moves in a straight line")
        return is_valid, warnings_list

    state = OrbitState.from_initial_conditions(initial, constants)
    state.central_mass_kg = constants.reference_central_mass * multiplier
    state.simulation_speed = speed

    try:
        period = estimate_orbital_period(state, constants)
    except ValueError:
        warnings_list.append("Orbit is unbound: the body will escape the central body")
        return is_valid, warnings_list

    fraction = estimate_substep_fraction(state, constants, tick_seconds)
    if fraction > 1e-3:
        dt = fraction * period
        warnings_list.append(
            f"Sub-step dt = {dt:.3e} s is large compared to "
            f"estimated orbital period T ~ {period:.3e} s. "
            f"Consider sub_steps >= {int(np.ceil(speed * tick_seconds / (1e-3 * period)))} "
            f"or a lower simulation_speed."
        )

    periapsis = estimate_periapsis(state, constants)
    if periapsis < 0.01 * initial.distance:
        warnings_list.append(
            f"Periapsis r_p ~ {periapsis:.3e} m is below 1% of the initial distance; "
            f"the integration may hit the central singularity."
        )

    return is_valid, warnings_list


def create_example_config(output_path: str) -> None:
    """Generate example YAML configuration file.

    Creates a commented configuration for the reference Sun-Earth system:
    one astronomical unit, one revolution per year, 50 simulated days per
    real second, one simulated year of ticks.

    Examples
    --------
    >>> create_example_config("earth_orbit.yaml")
    >>> config = load_config("earth_orbit.yaml")
    """
    constants = Constants()
    initial = InitialConditions()
    speed_days = constants.default_simulation_speed / days_to_seconds(1)
    ticks = int(round(constants.reference_period / (constants.default_simulation_speed * constants.frame_rate)))

    yaml_content = f"""# Orbit engine configuration
# Reference Sun-Earth system in polar coordinates.
#
# All values are SI (meters, seconds, kilograms, radians) unless the key
# ends in _days.

# ============================================================================
# Constants: physics and integration controls
# ============================================================================
constants:
  # Gravitational constant [m^3 kg^-1 s^-2]
  G: {constants.G}

  # Reference distance D0 [m] (1 AU)
  reference_distance: {constants.reference_distance}

  # Reference central mass M0 [kg] (mass multiplier 1)
  reference_central_mass: {constants.reference_central_mass}

  # Display units per D0; scale factor S = D0 / this
  display_units_per_reference_distance: {constants.display_units_per_reference_distance}

  # Semi-implicit Euler sub-steps per tick.
  # More sub-steps = more accurate orbit, more CPU per frame.
  sub_steps: {constants.sub_steps}

  # Real seconds per tick when the caller gives none
  frame_rate: {constants.frame_rate}

# ============================================================================
# Initial conditions: where every run and every restart begins
# ============================================================================
initial_conditions:
  distance: {initial.distance}
  distance_speed: {initial.distance_speed}
  angle: {initial.angle}
  angle_speed: {initial.angle_speed}

# ============================================================================
# Simulation: parameters a user would change from the controls
# ============================================================================
simulation:
  # Central mass = M0 * mass_multiplier. 0 removes gravity.
  mass_multiplier: 1.0

  # Simulated days per real second (or simulation_speed in s/s)
  simulation_speed_days: {speed_days}

  # Number of ticks to run headless and real seconds per tick
  ticks: {ticks}
  tick_seconds: {constants.frame_rate}

# ============================================================================
# Outputs
# ============================================================================
outputs:
  # Record every N ticks
  save_every: 10

  # Write trajectory.csv and diagnostics.json?
  write_csv: true

  # Plots to generate: orbit, distance_energy
  plots:
    - orbit
"""

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, 'w') as f:
        f.write(yaml_content)

    print(f"Example configuration written to: {output_path}")
    print(f"  S = {constants.scale_factor:.3e} m per display unit")
    print(f"  T_orbit = {constants.reference_period:.3e} s "
          f"({constants.reference_period / days_to_seconds(1):.1f} days)")
    print(f"  {ticks} ticks at {speed_days:g} days/s")


def save_trajectory_csv(filepath: str, trajectory: Dict[str, np.ndarray]) -> None:
    """Save trajectory data to CSV file.

    Writes a CSV file with columns:
    tick, time, distance, distance_speed, scaled_distance, angle, angle_speed, paused

    Parameters
    ----------
    filepath : str
        Output CSV file path.
    trajectory : dict
        Trajectory from dynamics.integrate_ticks().
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    with open(filepath, 'w') as f:
        f.write("tick,time,distance,distance_speed,scaled_distance,angle,angle_speed,paused\n")

        for i in range(len(trajectory['t'])):
            f.write(
                f"{int(trajectory['tick'][i])},{trajectory['t'][i]:.15e},"
                f"{trajectory['r'][i]:.15e},{trajectory['r_dot'][i]:.15e},"
                f"{trajectory['scaled_r'][i]:.15e},"
                f"{trajectory['theta'][i]:.15e},{trajectory['theta_dot'][i]:.15e},"
                f"{int(bool(trajectory['paused'][i]))}\n"
            )

    print(f"Saved {len(trajectory['t'])} states to {filepath}")


def save_diagnostics_json(filepath: str, diagnostics: Any) -> None:
    """Save diagnostics data to JSON file.

    Accepts the diagnostics list from integrate_ticks() or any dict of
    JSON-serializable data; numpy arrays and scalars are converted. Infinite
    eccentricities (zero central mass) are written as null.
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    def convert_to_json_serializable(obj):
        """Recursively convert numpy arrays to lists."""
        if isinstance(obj, np.ndarray):
            return [convert_to_json_serializable(item) for item in obj.tolist()]
        elif isinstance(obj, dict):
            return {key: convert_to_json_serializable(val) for key, val in obj.items()}
        elif isinstance(obj, (list, tuple)):
            return [convert_to_json_serializable(item) for item in obj]
        elif isinstance(obj, (np.integer, np.floating, np.bool_)):
            return convert_to_json_serializable(obj.item())
        elif isinstance(obj, float) and not np.isfinite(obj):
            return None
        else:
            return obj

    serializable_diagnostics = convert_to_json_serializable(diagnostics)

    with open(filepath, 'w') as f:
        json.dump(serializable_diagnostics, f, indent=2)

    print(f"Saved diagnostics to {filepath} ({len(diagnostics)} entries)")
