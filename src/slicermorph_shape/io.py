"""
I/O functions for reading and writing landmark files with missing points.

Supports:
- FCSV format (.fcsv) - 3D Slicer fiducial CSV format
- Markup JSON format (.mrk.json) - 3D Slicer 5.x markup format

A landmark that was not placed on a specimen is read as a row of NaN, the
not-available value the rest of the package works with. In FCSV files such
a landmark has empty (or non-numeric) coordinates; in markup JSON files its
``positionStatus`` is "missing" or "undefined", or it has no position.
"""

from __future__ import annotations

import glob as glob_module
import json
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
import pandas as pd

from slicermorph_shape.errors import StructureError

if TYPE_CHECKING:
    from numpy.typing import NDArray

FCSV_COLUMNS = [
    "id", "x", "y", "z", "ow", "ox", "oy", "oz",
    "vis", "sel", "lock", "label", "desc", "associatedNodeID",
]
MISSING_STATUSES = {"missing", "undefined"}


def read_landmarks(
    filepath: str | Path,
) -> NDArray[np.floating]:
    """Read landmarks from a file.

    Automatically detects the file format based on extension.

    Args:
        filepath: Path to landmark file (.fcsv or .mrk.json)

    Returns:
        Landmark coordinates, shape (n_landmarks, 3), NaN rows for
        landmarks marked as missing

    Raises:
        ValueError: If file format is not supported
        FileNotFoundError: If file does not exist
    """
    filepath = Path(filepath)

    if not filepath.exists():
        raise FileNotFoundError(f"File not found: {filepath}")

    suffix = filepath.suffix.lower()
    name = filepath.name.lower()

    if name.endswith(".mrk.json") or suffix == ".json":
        return _read_markup_json(filepath)
    elif suffix == ".fcsv":
        return _read_fcsv(filepath)
    else:
        raise ValueError(
            f"Unsupported file format: {suffix}. "
            "Supported formats: .fcsv, .mrk.json"
        )


def write_landmarks(
    landmarks: NDArray[np.floating],
    filepath: str | Path,
    labels: list[str] | None = None,
) -> None:
    """Write landmarks to a file.

    Rows containing NaN are written as missing landmarks.

    Args:
        landmarks: Landmark coordinates, shape (n_landmarks, 3)
        filepath: Output file path (.fcsv or .mrk.json)
        labels: Optional labels for each landmark

    Raises:
        ValueError: If file format is not supported
        StructureError: If the landmarks are not 3D points
    """
    filepath = Path(filepath)
    suffix = filepath.suffix.lower()
    name = filepath.name.lower()
    landmarks = np.asarray(landmarks, dtype=float)
    if landmarks.ndim != 2 or landmarks.shape[1] != 3:
        raise StructureError(
            f"Landmark files hold 3D points, got landmarks of shape {landmarks.shape}"
        )

    if name.endswith(".mrk.json") or suffix == ".json":
        _write_markup_json(landmarks, filepath, labels)
    elif suffix == ".fcsv":
        _write_fcsv(landmarks, filepath, labels)
    else:
        raise ValueError(
            f"Unsupported file format: {suffix}. "
            "Supported formats: .fcsv, .mrk.json"
        )


def load_dataset(
    source: str | Path | list[str] | list[Path],
) -> NDArray[np.floating]:
    """Load multiple landmark files into a single sample array.

    Args:
        source: Either:
            - A glob pattern (e.g., "data/*.fcsv")
            - A directory path (loads all .fcsv and .mrk.json files)
            - A list of file paths

    Returns:
        Landmark coordinates, shape (n_landmarks, 3, n_specimens), NaN for
        missing landmarks

    Raises:
        ValueError: If no files found or landmarks have inconsistent shapes
    """
    files = _resolve_files(source)
    if not files:
        raise ValueError(f"No landmark files found: {source}")

    first = read_landmarks(files[0])
    n_landmarks, n_dims = first.shape

    dataset = np.zeros((n_landmarks, n_dims, len(files)))
    dataset[:, :, 0] = first

    for i, filepath in enumerate(files[1:], start=1):
        lm = read_landmarks(filepath)
        if lm.shape != (n_landmarks, n_dims):
            raise ValueError(
                f"Inconsistent landmark shape in {filepath}: "
                f"expected {(n_landmarks, n_dims)}, got {lm.shape}"
            )
        dataset[:, :, i] = lm

    return dataset


def get_filenames(
    source: str | Path | list[str] | list[Path],
) -> list[str]:
    """Get list of filenames from a source (for labeling specimens).

    Args:
        source: Same as load_dataset

    Returns:
        List of filenames (without directory path), in load_dataset order
    """
    return [f.name for f in _resolve_files(source)]


def _resolve_files(source) -> list[Path]:
    if isinstance(source, (str, Path)):
        source_path = Path(source)
        if source_path.is_dir():
            files = list(source_path.glob("*.fcsv")) + list(
                source_path.glob("*.mrk.json")
            )
        else:
            files = [Path(f) for f in glob_module.glob(str(source))]
    else:
        files = [Path(f) for f in source]
    # Sorted for reproducible specimen order
    return sorted(files)


def _read_fcsv(filepath: Path) -> NDArray[np.floating]:
    """Read landmarks from FCSV format.

    Lines starting with # are headers; data columns are id, x, y, z, ...
    Only the first four fields are parsed, so files with fewer trailing
    columns or with commas inside a label or description are accepted.
    """
    with open(filepath) as f:
        rows = [
            line.rstrip("\r\n")
            for line in f
            if line.strip() and not line.startswith("#")
        ]
    if not rows:
        raise ValueError(f"No valid landmarks found in {filepath}")

    # id, x, y, z and everything after the fourth comma
    fields = pd.Series(rows, dtype=object).str.split(",", n=4, expand=True)
    if fields.shape[1] < 4:
        raise ValueError(f"No valid landmarks found in {filepath}")
    fields = fields[fields[3].notna()]
    if fields.empty:
        raise ValueError(f"No valid landmarks found in {filepath}")

    coords = fields[[1, 2, 3]].apply(pd.to_numeric, errors="coerce")
    return coords.to_numpy(dtype=float)


def _read_markup_json(filepath: Path) -> NDArray[np.floating]:
    """Read landmarks from 3D Slicer markup JSON format."""
    with open(filepath) as f:
        content = json.load(f)

    try:
        control_points = content["markups"][0]["controlPoints"]
    except (KeyError, IndexError, TypeError) as e:
        raise ValueError(f"Invalid markup JSON format in {filepath}") from e

    if not control_points:
        raise ValueError(f"No valid landmarks found in {filepath}")

    df = pd.DataFrame.from_dict(control_points)
    if "position" not in df:
        df["position"] = None
    if "positionStatus" not in df:
        df["positionStatus"] = "defined"

    landmarks = np.full((len(df), 3), np.nan)
    for i, (position, status) in enumerate(zip(df["position"], df["positionStatus"])):
        if status in MISSING_STATUSES or not isinstance(position, list):
            continue
        landmarks[i] = position

    return landmarks


def _default_labels(n_landmarks: int, labels: list[str] | None) -> list[str]:
    labels = list(labels or [])
    return labels[:n_landmarks] + [
        f"F-{i + 1}" for i in range(len(labels), n_landmarks)
    ]


def _write_fcsv(
    landmarks: NDArray[np.floating],
    filepath: Path,
    labels: list[str] | None = None,
) -> None:
    """Write landmarks to FCSV format; missing landmarks get empty coordinates."""
    n_landmarks = landmarks.shape[0]
    df = pd.DataFrame(
        {
            "id": [f"vtkMRMLMarkupsFiducialNode_{i}" for i in range(n_landmarks)],
            "x": landmarks[:, 0],
            "y": landmarks[:, 1],
            "z": landmarks[:, 2],
            "ow": 0,
            "ox": 0,
            "oy": 0,
            "oz": 1,
            "vis": 1,
            "sel": 1,
            "lock": 0,
            "label": _default_labels(n_landmarks, labels),
            "desc": "",
            "associatedNodeID": "",
        },
        columns=FCSV_COLUMNS,
    )

    with open(filepath, "w", newline="") as f:
        f.write("# Markups fiducial file version = 4.11\n")
        f.write("# CoordinateSystem = LPS\n")
        f.write(f"# columns = {','.join(FCSV_COLUMNS)}\n")
        df.to_csv(f, header=False, index=False, na_rep="", float_format="%.17g")


def _write_markup_json(
    landmarks: NDArray[np.floating],
    filepath: Path,
    labels: list[str] | None = None,
) -> None:
    """Write landmarks to 3D Slicer markup JSON format."""
    n_landmarks = landmarks.shape[0]
    labels = _default_labels(n_landmarks, labels)

    control_points = []
    for i in range(n_landmarks):
        point = {
            "id": str(i + 1),
            "label": labels[i],
            "description": "",
            "associatedNodeID": "",
            "orientation": [-1.0, -0.0, -0.0, -0.0, -1.0, -0.0, 0.0, 0.0, 1.0],
            "selected": True,
            "locked": False,
            "visibility": True,
        }
        if np.isnan(landmarks[i]).any():
            point["positionStatus"] = "missing"
        else:
            point["position"] = [float(v) for v in landmarks[i]]
            point["positionStatus"] = "defined"
        control_points.append(point)

    markup = {
        "@schema": "https://raw.githubusercontent.com/slicer/slicer/master/Modules/Loadable/Markups/Resources/Schema/markups-schema-v1.0.3.json#",
        "markups": [
            {
                "type": "Fiducial",
                "coordinateSystem": "LPS",
                "coordinateUnits": "mm",
                "locked": False,
                "fixedNumberOfControlPoints": False,
                "labelFormat": "%N-%d",
                "lastUsedControlPointNumber": n_landmarks,
                "controlPoints": control_points,
            }
        ],
    }

    with open(filepath, "w") as f:
        json.dump(markup, f, indent=2)
