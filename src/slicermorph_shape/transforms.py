"""
Point set registration and warping.

Rigid/similarity fits between corresponding landmarks (the SVD solution
used for Procrustes superimposition) and thin-plate spline warps between
control points. Both are consumed by the bilateral landmark reconstruction
in :mod:`slicermorph_shape.mirror`.

Based on Dryden and Mardia (2016) "Statistical Shape Analysis".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
import scipy.linalg as sp
from scipy.interpolate import RBFInterpolator

from slicermorph_shape.errors import DegenerateConfigurationError

if TYPE_CHECKING:
    from numpy.typing import NDArray

# Thin-plate spline kernel per dimension: r^2 log r in the plane, -r in space
_TPS_KERNELS = {2: "thin_plate_spline", 3: "linear"}


@dataclass
class Transform:
    """Similarity transform mapping row-vector points: ``scale * x @ rotation + translation``.

    Attributes:
        rotation: Orthogonal matrix, shape (n_dims, n_dims)
        scale: Isotropic scale factor (1.0 for a rigid transform)
        translation: Translation vector, shape (n_dims,)
    """

    rotation: NDArray[np.floating]
    scale: float
    translation: NDArray[np.floating]


def center(shape: NDArray[np.floating]) -> NDArray[np.floating]:
    """Center a shape by subtracting the centroid.

    Args:
        shape: Landmark coordinates, shape (n_landmarks, n_dims)

    Returns:
        Centered shape with centroid at origin
    """
    return shape - shape.mean(axis=0)


def compute_transform(
    source: NDArray[np.floating],
    target: NDArray[np.floating],
    scale: bool = False,
    reflection: bool = False,
) -> Transform:
    """Fit the transform that best maps ``source`` onto ``target``.

    Uses Singular Value Decomposition (SVD) of the cross-covariance of the
    centered point sets to find the optimal rotation, as in Procrustes
    superimposition.

    Args:
        source: Points to move, shape (n_points, n_dims)
        target: Corresponding points to match, shape (n_points, n_dims)
        scale: If True, also fit an isotropic scale factor (similarity
            transform). If False (default), the fit is rigid.
        reflection: If True, allow an improper rotation (determinant -1)

    Returns:
        Transform minimizing the sum of squared distances to ``target``

    Raises:
        ValueError: If the point sets differ in shape
        DegenerateConfigurationError: If there are too few points, or the
            source points coincide
    """
    source = np.asarray(source, dtype=float)
    target = np.asarray(target, dtype=float)
    if source.shape != target.shape or source.ndim != 2:
        raise ValueError(
            f"Point sets must have matching (n_points, n_dims) shapes, "
            f"got {source.shape} and {target.shape}"
        )
    if source.shape[0] < 2:
        raise DegenerateConfigurationError(
            f"At least 2 corresponding points are needed, got {source.shape[0]}"
        )

    source_mean = source.mean(axis=0)
    target_mean = target.mean(axis=0)
    source_centered = source - source_mean
    target_centered = target - target_mean

    source_norm = np.linalg.norm(source_centered)
    if source_norm == 0:
        raise DegenerateConfigurationError("Source points all coincide")

    u, s, vt = sp.svd(np.dot(source_centered.T, target_centered))
    if not reflection and np.linalg.det(np.dot(u, vt)) < 0:
        u[:, -1] = -u[:, -1]
        s[-1] = -s[-1]
    rotation = np.dot(u, vt)

    factor = float(s.sum() / source_norm**2) if scale else 1.0
    translation = target_mean - factor * np.dot(source_mean, rotation)
    return Transform(rotation=rotation, scale=factor, translation=translation)


def apply_transform(
    points: NDArray[np.floating],
    transform: Transform,
) -> NDArray[np.floating]:
    """Apply a transform to points, shape (n_points, n_dims)."""
    return transform.scale * np.dot(points, transform.rotation) + transform.translation


def tps_warp(
    reference: NDArray[np.floating],
    target: NDArray[np.floating],
    points: NDArray[np.floating],
) -> NDArray[np.floating]:
    """Warp points with the thin-plate spline that maps ``reference`` onto ``target``.

    The spline interpolates the control points exactly and carries an
    affine part, so an affine relation between the two point sets is
    reproduced exactly.

    Args:
        reference: Control points in the source space, shape (n_points, n_dims)
        target: Matching control points in the target space, same shape
        points: Points to warp, shape (n_other, n_dims)

    Returns:
        Warped points, shape (n_other, n_dims)

    Raises:
        ValueError: If shapes disagree or the dimension is not 2 or 3
        DegenerateConfigurationError: If the control points cannot define
            a spline (too few, or all on a line/plane)
    """
    reference = np.asarray(reference, dtype=float)
    target = np.asarray(target, dtype=float)
    points = np.asarray(points, dtype=float)
    if reference.shape != target.shape or reference.ndim != 2:
        raise ValueError(
            f"Control point sets must have matching shapes, "
            f"got {reference.shape} and {target.shape}"
        )
    n_points, n_dims = reference.shape
    if n_dims not in _TPS_KERNELS:
        raise ValueError(f"Thin-plate splines need 2D or 3D points, got {n_dims}D")
    if points.ndim != 2 or points.shape[1] != n_dims:
        raise ValueError(
            f"Points to warp must have shape (n_points, {n_dims}), got {points.shape}"
        )
    if n_points < n_dims + 1:
        raise DegenerateConfigurationError(
            f"A {n_dims}D thin-plate spline needs at least {n_dims + 1} "
            f"control points, got {n_points}"
        )

    try:
        spline = RBFInterpolator(
            reference,
            target,
            kernel=_TPS_KERNELS[n_dims],
            degree=1,
        )
    except (np.linalg.LinAlgError, ValueError) as e:
        raise DegenerateConfigurationError(
            f"Control points do not define a thin-plate spline: {e}"
        ) from e

    if points.shape[0] == 0:
        return points.copy()
    return spline(points)
