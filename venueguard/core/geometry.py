"""Camera ground-coverage geometry.

Projects a camera's mounting height, field of view and tilt onto the ground
plane. The visible region is a trapezoid: the near edge at distance `d1` with
width `w1`, the far edge at `d2` with width `w2`.
"""

from __future__ import annotations

import math

from venueguard.core.types import CameraProfile, CoverageArea


def compute_coverage(
    height: float,
    vertical_fov: float,
    horizontal_fov: float,
    tilt: float,
) -> CoverageArea:
    """Compute the ground coverage trapezoid for a camera.

    Args:
        height: Mounting height in metres.
        vertical_fov: Vertical field of view in degrees.
        horizontal_fov: Horizontal field of view in degrees.
        tilt: Tilt in degrees.

    Returns:
        The coverage trapezoid. Distances are clamped so `0 <= d1 <= d2`;
        degenerate geometry yields an area of 0.
    """

    theta = math.radians(vertical_fov)
    phi = math.radians(horizontal_fov)
    alpha = math.radians(tilt)

    d1 = height * math.tan(alpha - theta / 2.0)
    d2 = height * math.tan(alpha + theta / 2.0)

    # Near edge above the horizon projects to a negative distance.
    d1 = max(0.0, d1)
    d2 = max(d1, d2)

    half_tan = math.tan(phi / 2.0)
    w1 = max(0.0, 2.0 * d1 * half_tan)
    w2 = max(0.0, 2.0 * d2 * half_tan)

    area = 0.5 * (w1 + w2) * (d2 - d1)
    return CoverageArea(
        near_distance=d1,
        far_distance=d2,
        near_width=w1,
        far_width=w2,
        area=area,
    )


def coverage_for_profile(profile: CameraProfile) -> CoverageArea:
    """Return the coverage trapezoid for a registered camera profile."""

    return compute_coverage(
        profile.height,
        profile.vertical_fov,
        profile.horizontal_fov,
        profile.tilt,
    )
