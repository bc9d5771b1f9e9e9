"""
Isotropic scale estimation for a sample of landmark configurations.

Estimates one scale factor per configuration from the leading eigenvector
of a sample-level decomposition, the scaling step of a full Procrustes fit
(Dryden and Mardia 2016, ch. 7). Which decomposition is used depends on
the shape of the vectorized sample:

- more specimens than coordinates: eigen-decomposition of the coordinate
  scatter matrix of the standardized configurations;
- otherwise: eigen-decomposition of the correlation matrix between
  configurations.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
import scipy.linalg as sp

from slicermorph_shape.errors import (
    DegenerateSampleError,
    MissingLandmarkError,
    StructureError,
)
from slicermorph_shape.sample import LandmarkSample, vectorize

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)

TALL = "tall"
WIDE = "wide"


@dataclass
class ScaleResult:
    """Result of scale estimation.

    Attributes:
        factors: Non-negative scale factor for each specimen, shape (n_specimens,)
        branch: "tall" if the sample has more specimens than coordinates,
            "wide" otherwise
        eigenvalues: Eigenvalues of the decomposed matrix, descending
        raw_sizes: Sum of squared coordinates of each specimen
    """

    factors: NDArray[np.floating]
    branch: str
    eigenvalues: NDArray[np.floating]
    raw_sizes: NDArray[np.floating]


def estimate_scale(sample) -> ScaleResult:
    """Estimate an isotropic scale factor for every configuration in a sample.

    Args:
        sample: Landmark coordinates, shape (n_landmarks, n_dims, n_specimens),
            or a list of (n_landmarks, n_dims) arrays. Must be complete;
            impute missing landmarks first.

    Returns:
        ScaleResult with one factor per specimen

    Raises:
        StructureError: If the sample container is malformed
        MissingLandmarkError: If any coordinate is missing
        DegenerateSampleError: If the sample has fewer than 2 specimens, or
            the decomposition is undefined (zero-size configuration, zero
            variance, vanishing spectrum)
    """
    landmarks = LandmarkSample.wrap(sample)
    flat = vectorize(landmarks)
    n_specimens, n_coords = flat.shape

    if n_specimens < 2:
        raise DegenerateSampleError(
            f"Scale estimation needs at least 2 specimens, got {n_specimens}"
        )
    if not np.isfinite(flat).all():
        bad = sorted({int(i) for i in np.nonzero(~np.isfinite(flat))[0]})
        raise MissingLandmarkError(
            f"Specimens {bad} have missing coordinates; impute them before scaling"
        )

    raw_sizes = (flat**2).sum(axis=1)
    if np.any(raw_sizes == 0):
        bad = np.flatnonzero(raw_sizes == 0).tolist()
        raise DegenerateSampleError(f"Specimens {bad} have all-zero coordinates")
    logger.debug("Raw size of specimen 0: %f", raw_sizes[0])

    size_ratio = np.sqrt(raw_sizes.sum() / raw_sizes)

    if n_specimens > n_coords:
        logger.debug(
            "%d specimens > %d coordinates: decomposing coordinate scatter",
            n_specimens,
            n_coords,
        )
        component, eigenvalues = _leading_component_tall(flat)
        branch = TALL
    else:
        logger.debug(
            "%d specimens <= %d coordinates: decomposing specimen correlation",
            n_specimens,
            n_coords,
        )
        component, eigenvalues = _leading_component_wide(flat)
        branch = WIDE

    factors = np.abs(size_ratio * component)
    if not np.isfinite(factors).all():
        raise DegenerateSampleError("Scale estimate is not finite")

    return ScaleResult(
        factors=factors,
        branch=branch,
        eigenvalues=eigenvalues,
        raw_sizes=raw_sizes,
    )


def apply_scale(sample, factors):
    """Multiply each configuration by its scale factor.

    Args:
        sample: Landmark coordinates, shape (n_landmarks, n_dims, n_specimens),
            or a list of (n_landmarks, n_dims) arrays
        factors: One factor per specimen, e.g. ``estimate_scale(sample).factors``

    Returns:
        Scaled sample, in the same container kind as ``sample``
    """
    landmarks = LandmarkSample.wrap(sample)
    factors = np.asarray(factors, dtype=float)
    if factors.shape != (len(landmarks),):
        raise StructureError(
            f"Expected {len(landmarks)} scale factors, got shape {factors.shape}"
        )
    return landmarks.restack(
        [config * factor for config, factor in zip(landmarks, factors)]
    )


def _leading_component_tall(
    flat: NDArray[np.floating],
) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
    """Leading specimen-space component from the coordinate scatter matrix.

    Args:
        flat: Vectorized sample, shape (n_specimens, n_coords), n_specimens > n_coords

    Returns:
        The selected unit-length component, shape (n_specimens,), and the
        eigenvalues of the scatter matrix in descending order
    """
    n_specimens, n_coords = flat.shape

    # Per-specimen variance over its own coordinates, rescaled by (n-1)/n
    with np.errstate(invalid="ignore", divide="ignore"):
        variances = flat.var(axis=1, ddof=1) * (n_specimens - 1) / n_specimens
    if not np.all(np.isfinite(variances) & (variances > 0)):
        raise DegenerateSampleError(
            "Every specimen needs non-zero coordinate variance to estimate scale"
        )

    standardized = (flat - flat.mean(axis=1, keepdims=True)) / np.sqrt(variances)[:, None]
    scatter = np.dot(standardized.T, standardized / n_coords)

    eigenvalues, eigenvectors = sp.eigh(scatter)
    # eigh returns ascending order
    eigenvalues = eigenvalues[::-1]
    eigenvectors = eigenvectors[:, ::-1]
    if not np.any(eigenvalues > 0):
        raise DegenerateSampleError("Scatter matrix has no positive eigenvalue")

    projected = np.dot(standardized, eigenvectors)
    norms = np.linalg.norm(projected, axis=0)
    # Row centering leaves one direction exactly null; keep that column at zero
    projected = np.divide(
        projected,
        norms,
        out=np.zeros_like(projected),
        where=norms > 0,
    )

    delta = np.sqrt(np.abs(eigenvalues / n_coords)) * norms
    order = np.argsort(-delta, kind="stable")
    logger.debug("Component order by delta: %s", order.tolist())

    return projected[:, order[0]], eigenvalues


def _leading_component_wide(
    flat: NDArray[np.floating],
) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
    """Leading eigenvector of the correlation matrix between specimens.

    Args:
        flat: Vectorized sample, shape (n_specimens, n_coords), n_specimens <= n_coords

    Returns:
        The eigenvector of the largest eigenvalue, shape (n_specimens,), and
        all eigenvalues in descending order
    """
    if flat.shape[1] < 2:
        raise DegenerateSampleError(
            "Correlation between specimens needs at least 2 coordinates"
        )
    with np.errstate(invalid="ignore", divide="ignore"):
        correlation = np.corrcoef(flat)
    if not np.isfinite(correlation).all():
        raise DegenerateSampleError(
            "Correlation between specimens is undefined; "
            "a specimen has zero coordinate variance"
        )

    eigenvalues, eigenvectors = sp.eigh(correlation)
    if eigenvalues[-1] <= 0:
        raise DegenerateSampleError("Correlation matrix has no positive eigenvalue")

    return eigenvectors[:, -1], eigenvalues[::-1]
