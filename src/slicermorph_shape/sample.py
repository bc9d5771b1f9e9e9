"""
Sample containers and landmark bookkeeping.

A sample reaches the package either as an array of shape
(n_landmarks, n_dims, n_specimens) or as a list of (n_landmarks, n_dims)
arrays. :class:`LandmarkSample` wraps both as one indexable sequence of
configurations so the algorithms are written once, and hands results back
in the container kind the caller used.

Missing coordinates are NaN on input. Internally a landmark is either
present (all coordinates finite) or missing, see :func:`presence`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence

import numpy as np

from slicermorph_shape.errors import StructureError

if TYPE_CHECKING:
    from numpy.typing import ArrayLike, NDArray

SUPPORTED_DIMS = (2, 3)


@dataclass
class LandmarkSample:
    """An ordered collection of configurations sharing n_landmarks and n_dims.

    Attributes:
        configurations: One float array per specimen, shape (n_landmarks, n_dims)
        kind: "array" or "list", the container kind the sample came in
    """

    configurations: list[NDArray[np.floating]]
    kind: str

    def __len__(self) -> int:
        return len(self.configurations)

    def __getitem__(self, index: int) -> NDArray[np.floating]:
        return self.configurations[index]

    def __iter__(self):
        return iter(self.configurations)

    @property
    def n_landmarks(self) -> int:
        return self.configurations[0].shape[0]

    @property
    def n_dims(self) -> int:
        return self.configurations[0].shape[1]

    @classmethod
    def wrap(cls, sample) -> LandmarkSample:
        """Adapt a 3D array or a list of matrices.

        Raises:
            StructureError: If the container is not supported, is empty, or
                its configurations disagree in shape
        """
        if isinstance(sample, np.ndarray):
            if sample.ndim != 3:
                raise StructureError(
                    "A sample array must have shape (n_landmarks, n_dims, n_specimens), "
                    f"got {sample.ndim} dimension(s)"
                )
            configurations = [
                as_configuration(sample[:, :, i]) for i in range(sample.shape[2])
            ]
            kind = "array"
        elif isinstance(sample, (list, tuple)):
            configurations = [as_configuration(x) for x in sample]
            kind = "list"
        else:
            raise StructureError(
                f"Unsupported sample container: {type(sample).__name__}. "
                "Use a 3D array or a list of (n_landmarks, n_dims) arrays."
            )

        if not configurations:
            raise StructureError("Sample contains no configurations")

        expected = configurations[0].shape
        for i, config in enumerate(configurations[1:], start=1):
            if config.shape != expected:
                raise StructureError(
                    f"Inconsistent configuration shape for specimen {i}: "
                    f"expected {expected}, got {config.shape}"
                )
        return cls(configurations=configurations, kind=kind)

    def restack(self, configurations: Sequence[NDArray[np.floating]]):
        """Return new configurations in this sample's container kind."""
        if len(configurations) != len(self):
            raise StructureError(
                f"Expected {len(self)} configurations, got {len(configurations)}"
            )
        if self.kind == "array":
            return np.stack(configurations, axis=2)
        return [np.array(config) for config in configurations]


def as_configuration(configuration: ArrayLike) -> NDArray[np.floating]:
    """Copy a single configuration into a float array with NaN for missing values.

    Masked entries of a ``numpy.ma.MaskedArray`` count as missing.

    Raises:
        StructureError: If the input is not an (n_landmarks, 2|3) matrix or
            holds infinite values
    """
    if np.ma.isMaskedArray(configuration):
        config = np.ma.filled(configuration.astype(float), np.nan)
    else:
        config = np.array(configuration, dtype=float)

    if config.ndim != 2:
        raise StructureError(
            f"A configuration must be a (n_landmarks, n_dims) matrix, got shape {config.shape}"
        )
    if config.shape[1] not in SUPPORTED_DIMS:
        raise StructureError(
            f"Landmarks must be 2D or 3D, got {config.shape[1]} coordinates per landmark"
        )
    if config.shape[0] == 0:
        raise StructureError("A configuration needs at least one landmark")
    if np.isinf(config).any():
        raise StructureError("Configuration contains infinite coordinates")
    return config


def presence(configuration: NDArray[np.floating]) -> NDArray[np.bool_]:
    """Flag landmarks whose coordinates are all available.

    Args:
        configuration: Landmark coordinates, shape (n_landmarks, n_dims)

    Returns:
        Boolean array, shape (n_landmarks,), True where the landmark is present
    """
    return ~np.isnan(configuration).any(axis=1)


def missing_landmarks(configuration: NDArray[np.floating]) -> NDArray[np.intp]:
    """Indices of landmarks with at least one missing coordinate."""
    return np.flatnonzero(~presence(configuration))


def vectorize(sample: LandmarkSample) -> NDArray[np.floating]:
    """Stack configurations as rows of an (n_specimens, n_landmarks * n_dims) matrix.

    Each configuration is flattened column by column: all first
    coordinates, then all second coordinates, and so on.
    """
    n_coords = sample.n_landmarks * sample.n_dims
    flat = np.zeros((len(sample), n_coords))
    for i, config in enumerate(sample):
        flat[i, :] = config.reshape(-1, order="F")
    return flat


def validate_pairs(pairs: ArrayLike, n_landmarks: int) -> NDArray[np.intp]:
    """Check a bilateral pairing table and return it as an integer array.

    Args:
        pairs: Table of shape (n_pairs, 2); column 0 holds left landmark
            indices, column 1 the matching right landmark indices (0-based)
        n_landmarks: Number of landmarks in the configurations it refers to

    Returns:
        A new integer array, shape (n_pairs, 2)

    Raises:
        StructureError: If the table is malformed
    """
    table = np.asarray(pairs)
    if table.dtype == bool or not (
        np.issubdtype(table.dtype, np.integer) or np.issubdtype(table.dtype, np.floating)
    ):
        raise StructureError(f"Pairing table must hold integer indices, got {table.dtype}")
    if table.ndim != 2 or table.shape[1] != 2:
        raise StructureError(
            f"Pairing table must have shape (n_pairs, 2), got {table.shape}"
        )
    if table.shape[0] == 0:
        raise StructureError("Pairing table is empty")
    if np.issubdtype(table.dtype, np.floating):
        if not np.all(np.isfinite(table)) or not np.all(table == np.round(table)):
            raise StructureError("Pairing table must hold integer indices")

    table = table.astype(np.intp)
    out_of_range = (table < 0) | (table >= n_landmarks)
    if out_of_range.any():
        bad = sorted(set(table[out_of_range].tolist()))
        raise StructureError(
            f"Pairing table refers to landmarks {bad}, valid range is 0-{n_landmarks - 1}"
        )

    indices, counts = np.unique(table, return_counts=True)
    repeated = indices[counts > 1]
    if repeated.size:
        raise StructureError(
            f"Landmarks {repeated.tolist()} appear more than once in the pairing table"
        )
    return table


def unpaired_landmarks(pairs: NDArray[np.intp], n_landmarks: int) -> NDArray[np.intp]:
    """Indices of midline (unpaired) landmarks, in ascending order."""
    return np.setdiff1d(np.arange(n_landmarks), pairs.ravel())
