"""
SlicerMorph Shape - scale estimation and missing landmark reconstruction.

A standalone Python library for two steps of a geometric morphometrics
workflow on 2D/3D landmark data: estimating an isotropic scale factor for
every specimen of a sample, and reconstructing missing bilateral landmarks
from their mirrored counterparts.

Example usage:
    >>> import slicermorph_shape as shape
    >>>
    >>> # Load landmark data; unplaced landmarks are NaN
    >>> dataset = shape.load_dataset("specimens/*.mrk.json")
    >>>
    >>> # Reconstruct missing bilateral landmarks (0-based left/right indices)
    >>> pairs = [[3, 2], [5, 4], [7, 6]]
    >>> fixed = shape.impute_sample(dataset, pairs)
    >>> for diagnostic in fixed.diagnostics:
    ...     print(diagnostic.specimen, diagnostic.message)
    >>>
    >>> # Estimate one scale factor per specimen
    >>> result = shape.estimate_scale(fixed.landmarks)
    >>> scaled = shape.apply_scale(fixed.landmarks, result.factors)
"""

import logging

from slicermorph_shape.diagnostics import Diagnostic, Issue, Severity
from slicermorph_shape.errors import (
    DegenerateConfigurationError,
    DegenerateSampleError,
    MissingLandmarkError,
    ShapeError,
    StructureError,
)
from slicermorph_shape.io import (
    get_filenames,
    load_dataset,
    read_landmarks,
    write_landmarks,
)
from slicermorph_shape.mirror import (
    ImputationResult,
    SampleImputation,
    impute_bilateral,
    impute_sample,
    mirror_configuration,
)
from slicermorph_shape.sample import (
    LandmarkSample,
    missing_landmarks,
    presence,
    validate_pairs,
    vectorize,
)
from slicermorph_shape.scale import ScaleResult, apply_scale, estimate_scale
from slicermorph_shape.transforms import (
    Transform,
    apply_transform,
    center,
    compute_transform,
    tps_warp,
)

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # Version
    "__version__",
    # Scale estimation
    "ScaleResult",
    "estimate_scale",
    "apply_scale",
    # Missing landmark reconstruction
    "ImputationResult",
    "SampleImputation",
    "impute_bilateral",
    "impute_sample",
    "mirror_configuration",
    # Diagnostics and errors
    "Diagnostic",
    "Issue",
    "Severity",
    "ShapeError",
    "StructureError",
    "MissingLandmarkError",
    "DegenerateSampleError",
    "DegenerateConfigurationError",
    # Samples
    "LandmarkSample",
    "presence",
    "missing_landmarks",
    "validate_pairs",
    "vectorize",
    # Transforms
    "Transform",
    "compute_transform",
    "apply_transform",
    "tps_warp",
    "center",
    # I/O functions
    "read_landmarks",
    "write_landmarks",
    "load_dataset",
    "get_filenames",
]
