"""
Reconstruction of missing bilateral landmarks by mirroring.

A configuration is reflected across a coordinate plane and relabeled so
that every left landmark takes the place of its right counterpart and vice
versa. The relabeled mirror image is then matched onto the original, and a
missing landmark is read off at its counterpart's mirrored position:

- if one side is missing entirely, the mirror image is aligned rigidly
  using the midline (unpaired) landmarks;
- otherwise the mirror image is deformed onto the original with a
  thin-plate spline driven by all landmarks available on both sides.

Landmarks without a bilateral counterpart, or pairs with both sides
missing, cannot be reconstructed. They are reported as diagnostics and
left missing in the output.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from slicermorph_shape.diagnostics import (
    Diagnostic,
    Issue,
    Severity,
    report,
    warnings_of,
)
from slicermorph_shape.errors import DegenerateConfigurationError, StructureError
from slicermorph_shape.sample import (
    LandmarkSample,
    as_configuration,
    presence,
    unpaired_landmarks,
    validate_pairs,
)
from slicermorph_shape.transforms import (
    apply_transform,
    center,
    compute_transform,
    tps_warp,
)

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

logger = logging.getLogger(__name__)

NONE = "none"
MIRROR = "mirror"
TPS = "tps"


@dataclass
class ImputationResult:
    """Result of reconstructing one configuration.

    Attributes:
        coordinates: Completed configuration, shape (n_landmarks, n_dims).
            Landmarks that could not be reconstructed remain NaN.
        method: "none" (nothing reconstructed), "mirror" (one side missing
            entirely, rigid alignment on the midline) or "tps" (thin-plate
            spline between the mirror image and the original)
        imputed: Indices of reconstructed landmarks
        unresolved: Indices of landmarks still missing
        diagnostics: Notes and warnings about the configuration
    """

    coordinates: NDArray[np.floating]
    method: str
    imputed: list[int] = field(default_factory=list)
    unresolved: list[int] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def warnings(self) -> list[Diagnostic]:
        return warnings_of(self.diagnostics)


@dataclass
class SampleImputation:
    """Result of reconstructing every configuration in a sample.

    Attributes:
        landmarks: Completed sample, in the container kind of the input
        results: Per-specimen results, in sample order
    """

    landmarks: object
    results: list[ImputationResult]

    @property
    def diagnostics(self) -> list[Diagnostic]:
        return [d for result in self.results for d in result.diagnostics]

    @property
    def methods(self) -> list[str]:
        return [result.method for result in self.results]


def mirror_configuration(
    configuration: ArrayLike,
    pairs: ArrayLike,
    axis: int = 0,
) -> NDArray[np.floating]:
    """Reflect a configuration and swap the landmarks of each bilateral pair.

    Args:
        configuration: Landmark coordinates, shape (n_landmarks, n_dims)
        pairs: Pairing table, shape (n_pairs, 2), 0-based indices
        axis: Coordinate axis to negate

    Returns:
        Relabeled mirror image, shape (n_landmarks, n_dims). Missing values
        travel with their landmark to the counterpart's row.
    """
    config = as_configuration(configuration)
    table = validate_pairs(pairs, config.shape[0])
    _check_axis(axis, config.shape[1])

    mirrored = config.copy()
    mirrored[:, axis] = -mirrored[:, axis]
    mirrored[table.ravel()] = mirrored[table[:, ::-1].ravel()]
    return mirrored


def impute_bilateral(
    configuration: ArrayLike,
    pairs: ArrayLike,
    mirror_axis: int = 0,
    allow_scaling: bool = False,
) -> ImputationResult:
    """Estimate missing landmarks from their bilateral counterparts.

    Args:
        configuration: Landmark coordinates, shape (n_landmarks, n_dims),
            with NaN (or masked entries) for missing coordinates. A landmark
            with any missing coordinate counts as missing.
        pairs: Pairing table, shape (n_pairs, 2). Column 0 holds left
            landmark indices, column 1 the matching right ones (0-based).
        mirror_axis: Coordinate axis perpendicular to the plane of symmetry
        allow_scaling: If True, the whole-side alignment may also rescale
            the mirror image

    Returns:
        ImputationResult with the completed configuration. Landmarks present
        on input are copied unchanged.

    Raises:
        StructureError: If the configuration or pairing table is malformed
        DegenerateConfigurationError: If too few landmarks remain to align
            the mirror image onto the original
    """
    original = as_configuration(configuration)
    n_landmarks, n_dims = original.shape
    table = validate_pairs(pairs, n_landmarks)
    _check_axis(mirror_axis, n_dims)

    diagnostics: list[Diagnostic] = []
    present = presence(original)
    missing = np.flatnonzero(~present)

    if missing.size == 0:
        report(diagnostics, logger, Severity.INFO, Issue.COMPLETE, "No missing landmarks")
        return ImputationResult(
            coordinates=original, method=NONE, diagnostics=diagnostics
        )

    # Classify each pair by which side is missing
    excluded: list[int] = []
    affected: list[int] = []
    good_paired: list[int] = []
    for i, (left, right) in enumerate(table):
        left_missing, right_missing = not present[left], not present[right]
        if left_missing and right_missing:
            report(
                diagnostics,
                logger,
                Severity.WARNING,
                Issue.BOTH_SIDES_MISSING,
                f"Paired landmarks {left} and {right}: "
                "one landmark of each side must be present",
                landmarks=(left, right),
            )
            excluded.extend((int(left), int(right)))
        elif left_missing or right_missing:
            affected.append(i)
            good_paired.append(int(right if left_missing else left))

    midline = unpaired_landmarks(table, n_landmarks)
    unilateral_missing = np.intersect1d(missing, midline)
    if unilateral_missing.size:
        report(
            diagnostics,
            logger,
            Severity.WARNING,
            Issue.UNILATERAL_MISSING,
            f"Missing landmarks {unilateral_missing.tolist()} are not bilateral "
            "and cannot be mirrored",
            landmarks=unilateral_missing,
        )
        excluded.extend(unilateral_missing.tolist())

    if not affected:
        report(
            diagnostics,
            logger,
            Severity.INFO,
            Issue.NO_BILATERAL_MISSING,
            "No bilateral landmark can be reconstructed",
        )
        return ImputationResult(
            coordinates=original,
            method=NONE,
            unresolved=missing.tolist(),
            diagnostics=diagnostics,
        )

    mirrored = mirror_configuration(original, table, axis=mirror_axis)
    affected_pairs = table[affected]
    # Missing member of each affected pair, in pair order
    to_impute = np.where(
        present[affected_pairs[:, 0]], affected_pairs[:, 1], affected_pairs[:, 0]
    )

    good = np.sort(good_paired)
    side_missing = _entirely_missing_side(table, good)
    if side_missing is not None:
        side = "left" if side_missing == 0 else "right"
        report(
            diagnostics,
            logger,
            Severity.INFO,
            Issue.ENTIRE_SIDE_MISSING,
            f"The {side} side is missing entirely: aligning the mirror image on the midline",
            landmarks=table[:, side_missing],
        )
        anchors = midline[present[midline]]
        estimate = _align_on_midline(original, mirrored, anchors, allow_scaling)
        method = MIRROR
    else:
        keep = np.ones(n_landmarks, dtype=bool)
        keep[excluded] = False
        keep[affected_pairs.ravel()] = False
        logger.debug(
            "Warping mirror image with %d control points", int(keep.sum())
        )
        estimate = _warp_mirror(original, mirrored, keep, to_impute)
        method = TPS

    completed = original.copy()
    completed[to_impute] = estimate[to_impute]

    unresolved = np.flatnonzero(~presence(completed))
    if unresolved.size:
        report(
            diagnostics,
            logger,
            Severity.WARNING,
            Issue.UNRESOLVED,
            f"Landmarks {unresolved.tolist()} remain missing",
            landmarks=unresolved,
        )

    return ImputationResult(
        coordinates=completed,
        method=method,
        imputed=sorted(int(i) for i in to_impute),
        unresolved=unresolved.tolist(),
        diagnostics=diagnostics,
    )


def impute_sample(
    sample,
    pairs: ArrayLike,
    mirror_axis: int = 0,
    allow_scaling: bool = False,
) -> SampleImputation:
    """Apply :func:`impute_bilateral` to every configuration of a sample.

    Configurations are processed independently and in order.

    Args:
        sample: Landmark coordinates, shape (n_landmarks, n_dims, n_specimens),
            or a list of (n_landmarks, n_dims) arrays, NaN for missing values
        pairs: Pairing table, shape (n_pairs, 2), 0-based indices
        mirror_axis: Coordinate axis perpendicular to the plane of symmetry
        allow_scaling: See :func:`impute_bilateral`

    Returns:
        SampleImputation with the completed sample and per-specimen results.
        Diagnostics carry the index of the specimen they refer to.
    """
    landmarks = LandmarkSample.wrap(sample)
    table = validate_pairs(pairs, landmarks.n_landmarks)

    results = []
    for i, config in enumerate(landmarks):
        result = impute_bilateral(
            config,
            table,
            mirror_axis=mirror_axis,
            allow_scaling=allow_scaling,
        )
        result.diagnostics = [d.for_specimen(i) for d in result.diagnostics]
        results.append(result)

    return SampleImputation(
        landmarks=landmarks.restack([r.coordinates for r in results]),
        results=results,
    )


def _check_axis(axis: int, n_dims: int) -> None:
    if not 0 <= axis < n_dims:
        raise StructureError(f"Mirror axis {axis} is out of range for {n_dims}D landmarks")


def _entirely_missing_side(
    table: NDArray[np.intp],
    good: NDArray[np.intp],
) -> int | None:
    """Column of the pairing table that is missing as a whole, if any.

    ``good`` holds the present member of every pair with one side missing.
    When these are exactly one full column, the other column is gone.
    """
    for column in (0, 1):
        if np.array_equal(good, np.sort(table[:, column])):
            return 1 - column
    return None


def _align_on_midline(
    original: NDArray[np.floating],
    mirrored: NDArray[np.floating],
    anchors: NDArray[np.intp],
    allow_scaling: bool,
) -> NDArray[np.floating]:
    n_dims = original.shape[1]
    if anchors.size < n_dims:
        raise DegenerateConfigurationError(
            f"Aligning a mirrored side needs at least {n_dims} midline landmarks, "
            f"got {anchors.size}"
        )
    # A rotation is fixed once the anchors span all but one dimension
    if np.linalg.matrix_rank(center(original[anchors])) < n_dims - 1:
        raise DegenerateConfigurationError(
            f"Midline landmarks {anchors.tolist()} are collinear and cannot "
            "fix the orientation of the mirrored side"
        )
    transform = compute_transform(
        mirrored[anchors], original[anchors], scale=allow_scaling
    )
    return apply_transform(mirrored, transform)


def _warp_mirror(
    original: NDArray[np.floating],
    mirrored: NDArray[np.floating],
    keep: NDArray[np.bool_],
    to_impute: NDArray[np.intp],
) -> NDArray[np.floating]:
    estimate = np.full_like(original, np.nan)
    estimate[to_impute] = tps_warp(mirrored[keep], original[keep], mirrored[to_impute])
    return estimate
