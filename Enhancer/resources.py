"""
Resource path utilities for frozen (PyInstaller) and development modes.

Bundled data files (default config, sample game data, sample market
snapshot) are resolved through ``get_resource_path`` so the CLI works both
from a checkout and from a packaged executable.
"""
from __future__ import annotations

import sys
from pathlib import Path


def get_resource_path(relative_path: str) -> Path:
    """
    Get absolute path to resource, works for dev and PyInstaller.

    Parameters
    ----------
    relative_path : str
        Path relative to project root (e.g., "Enhancer/data/game_data.json")

    Returns
    -------
    Path
        Absolute path to the resource

    Examples
    --------
    >>> config_path = get_resource_path("Enhancer/DefaultEnhancerConfig.yaml")
    >>> catalog_path = get_resource_path("Enhancer/data/game_data.json")
    """
    if getattr(sys, 'frozen', False):
        base_path = Path(sys._MEIPASS)  # type: ignore[attr-defined]
    else:
        # this file is in Enhancer/, so parent.parent is project root
        base_path = Path(__file__).resolve().parent.parent
    return base_path / relative_path
