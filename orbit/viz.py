"""Visualization module for the orbit engine.

Diagnostic plots of a recorded trajectory (the dict returned by
dynamics.integrate_ticks). These are for inspecting runs offline; they are
not a renderer.
- Orbit plot: path of the orbiting body in display units
- Distance / energy plot: r(t) and relative energy drift over time
"""

from typing import Dict, List, Optional
from pathlib import Path

import numpy as np
import matplotlib.pyplot as plt

from orbit.geometry import polar_to_cartesian


def plot_orbit(
    trajectory: Dict[str, np.ndarray],
    output_path: str,
    central_radius: Optional[float] = None,
    dpi: int = 150,
) -> None:
    """Plot the orbit in the screen plane.

    Parameters
    ----------
    trajectory : Dict[str, np.ndarray]
        Trajectory from dynamics.integrate_ticks(). Needs 'scaled_r' and
        'theta'.
    output_path : str
        Output file path (e.g., "output/orbit.png").
    central_radius : float, optional
        Rendered radius of the central body [display units]. Drawn as a
        circle when given, as a marker otherwise.
    dpi : int, optional
        Output resolution (default: 150).

    Examples
    --------
    >>> traj, diags = engine.run(600, opts={'save_every': 5})
    >>> plot_orbit(traj, "output/orbit.png", central_radius=1.0)
    Saved orbit plot to output/orbit.png
    """
    xy = np.array([
        polar_to_cartesian(r, theta)
        for r, theta in zip(trajectory['scaled_r'], trajectory['theta'])
    ])

    fig, ax = plt.subplots(figsize=(8, 8))

    ax.plot(xy[:, 0], xy[:, 1], 'b-', linewidth=1.5, label='Orbit', alpha=0.8)
    ax.plot(xy[0, 0], xy[0, 1], 'go', markersize=8, label='Initial position')
    ax.plot(xy[-1, 0], xy[-1, 1], 'rs', markersize=6, label='Final position')
    if central_radius is not None:
        ax.add_patch(plt.Circle((0.0, 0.0), central_radius, color='orange', alpha=0.6,
                                label='Central body'))
    else:
        ax.plot(0, 0, 'k*', markersize=15, label='Central body')

    ax.set_xlabel('x [display units]', fontsize=12)
    ax.set_ylabel('y [display units]', fontsize=12)
    ax.set_title('Orbit', fontsize=14, fontweight='bold')
    ax.legend(loc='best', fontsize=10)
    ax.grid(True, alpha=0.3)
    ax.axis('equal')

    plt.tight_layout()

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(output_path, dpi=dpi, bbox_inches='tight')
    plt.close(fig)

    print(f"Saved orbit plot to {output_path}")


def plot_distance_energy(
    trajectory: Dict[str, np.ndarray],
    diagnostics: List[Dict],
    output_path: str,
    dpi: int = 150,
) -> None:
    """Two-panel plot: distance over time, relative energy drift over time."""
    days = trajectory['t'] / 86400.0
    energy = np.array([d['specific_energy'] for d in diagnostics])
    E0 = energy[0]
    drift = (energy - E0) / abs(E0) if E0 != 0 else energy - E0

    fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(10, 8), sharex=True)

    ax1.plot(days, trajectory['scaled_r'], 'b-', linewidth=1.5)
    ax1.set_ylabel('Distance [display units]', fontsize=12)
    ax1.set_title('Distance from central body', fontsize=12)
    ax1.grid(True, alpha=0.3)

    ax2.plot(days, drift, 'k-', linewidth=1.5)
    ax2.set_xlabel('Simulated time [days]', fontsize=12)
    ax2.set_ylabel('ΔE / |E₀|', fontsize=12)
    ax2.set_title('Specific energy drift', fontsize=12)
    ax2.grid(True, alpha=0.3)

    textstr = f'Max |ΔE/E₀|: {np.max(np.abs(drift)):.3e}'
    ax2.text(0.02, 0.98, textstr, transform=ax2.transAxes,
             verticalalignment='top', bbox=dict(boxstyle='round',
             facecolor='wheat', alpha=0.5), fontsize=10)

    plt.tight_layout()

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(output_path, dpi=dpi, bbox_inches='tight')
    plt.close(fig)

    print(f"Saved distance/energy plot to {output_path}")
