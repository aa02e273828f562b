"""Project-level configuration and sheet files.

A project directory may hold ``gridcalc.yaml`` (settings, merged over
``DEFAULT_CONFIG``) and a sheet file::

    # gridcalc sheet v1
    n_rows: 20
    n_cols: 5
    cells:
      A1: 10
      A2: "=A1 * 2"
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


CONFIG_FILENAME = "gridcalc.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "n_rows": 100,
    "n_cols": 26,
    "sheet_file": "sheet.yaml",
    "logging_enabled": True,
    "logging_fsync": False,
    "logging_tail_bytes": 2_097_152,  # 2 MB
}


class SheetSpecError(ValueError):
    """A sheet file that does not have the expected shape."""


def load_project_config(project_dir: Path) -> dict[str, Any]:
    """Load project configuration from ``gridcalc.yaml``, with defaults.

    Args:
        project_dir: Root of the gridcalc project.

    Returns:
        Merged configuration dict.
    """
    config = dict(DEFAULT_CONFIG)
    config_path = Path(project_dir) / CONFIG_FILENAME
    if config_path.exists():
        user_config = yaml.safe_load(config_path.read_text()) or {}
        if not isinstance(user_config, dict):
            raise ValueError(f"{config_path} must contain a mapping")
        config.update(user_config)
    return config


def _raw_text(value: Any) -> str:
    """Cell contents as the text a user would have typed."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def load_sheet_spec(path: Path, config: dict[str, Any] | None = None) -> dict[str, Any]:
    """Read and validate a YAML sheet file.

    Missing dimensions fall back to ``n_rows``/``n_cols`` from *config*
    (or ``DEFAULT_CONFIG``).  Cell values are normalised to raw text.

    Returns:
        ``{"n_rows": int, "n_cols": int, "cells": {A1: raw_text}}``

    Raises:
        SheetSpecError: If the file is not a mapping or ``cells`` is not a
            mapping of addresses.
    """
    cfg = config or DEFAULT_CONFIG
    data = yaml.safe_load(Path(path).read_text()) or {}
    if not isinstance(data, dict):
        raise SheetSpecError(f"{path}: sheet file must contain a mapping")

    cells = data.get("cells") or {}
    if not isinstance(cells, dict):
        raise SheetSpecError(f"{path}: 'cells' must be a mapping of address -> value")

    try:
        n_rows = int(data.get("n_rows", cfg["n_rows"]))
        n_cols = int(data.get("n_cols", cfg["n_cols"]))
    except (TypeError, ValueError) as exc:
        raise SheetSpecError(f"{path}: n_rows/n_cols must be integers") from exc

    return {
        "n_rows": n_rows,
        "n_cols": n_cols,
        "cells": {str(addr).upper(): _raw_text(value) for addr, value in cells.items()},
    }
