"""
Exceptions raised by slicermorph_shape.

All of them derive from ``ValueError`` so code written against plain
``ValueError`` keeps working.
"""


class ShapeError(ValueError):
    """Base class for landmark data errors."""


class StructureError(ShapeError):
    """Malformed input: bad pairing table, mismatched dimensions or an
    unsupported sample container."""


class MissingLandmarkError(ShapeError):
    """Missing coordinates where a complete sample is required."""


class DegenerateSampleError(ShapeError):
    """The sample cannot support the scale estimate (too few specimens,
    zero variance, singular scatter or correlation)."""


class DegenerateConfigurationError(ShapeError):
    """Too few usable correspondences to fit a transform or a spline."""
