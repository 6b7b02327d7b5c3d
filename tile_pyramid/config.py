from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from common.types import GridConfig
from tile_pyramid.retry import RetryPolicy
from tile_pyramid.source import DEFAULT_URL_TEMPLATE, DEFAULT_USER_AGENT


DEFAULT_CONFIG_PATH = "config/params.yaml"

DEFAULTS: Dict[str, Any] = {
    "source": {
        "url_template": DEFAULT_URL_TEMPLATE,
        "timeout": 10.0,
        "user_agent": DEFAULT_USER_AGENT,
    },
    "pipeline": {
        "workers": 20,
        "commit_every": 500,
        "progress_every": 100,
    },
    "retry": {
        "max_retries": 3,
        "base_seconds": 0.5,
        "factor": 2.0,
        "max_seconds": 30.0,
    },
    "grid": {
        "max_zoom": 19,
        "tile_size": 256,
        "strict_edge": True,
    },
    "metadata": {
        "name": "tile-pyramid",
        "description": "Tiles fetched by tile-pyramid-builder",
        "version": "1.0",
        "type": "baselayer",
        "format": "png",
    },
    "server": {
        "store_path": "tiles.mbtiles",
        "host": "127.0.0.1",
        "port": 8000,
    },
    "logging": {"level": "INFO"},
}


def _merge(base: Dict[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in override.items():
        if isinstance(v, Mapping) and isinstance(out.get(k), dict):
            out[k] = _merge(out[k], v)
        else:
            out[k] = v
    return out


def load_config(path: Optional[str] = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """
    Built-in defaults, overlaid with the YAML file at `path` when it exists.
    A missing file is not an error; a file that is not a mapping is.
    """
    if not path or not Path(path).exists():
        return copy.deepcopy(DEFAULTS)
    with open(path, "r") as f:
        loaded = yaml.safe_load(f) or {}
    if not isinstance(loaded, Mapping):
        raise ValueError(f"config {path} must be a YAML mapping, got {type(loaded).__name__}")
    return _merge(DEFAULTS, loaded)


def grid_from_config(P: Mapping[str, Any]) -> GridConfig:
    g = P.get("grid", {})
    return GridConfig(
        max_zoom=int(g.get("max_zoom", 19)),
        tile_size=int(g.get("tile_size", 256)),
        strict_edge=bool(g.get("strict_edge", True)),
    )


def retry_from_config(P: Mapping[str, Any]) -> RetryPolicy:
    r = P.get("retry", {})
    return RetryPolicy(
        max_retries=int(r.get("max_retries", 3)),
        base_seconds=float(r.get("base_seconds", 0.5)),
        factor=float(r.get("factor", 2.0)),
        max_seconds=float(r.get("max_seconds", 30.0)),
    )
