# utils/io.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Union

import yaml

PathLike = Union[str, Path]

YAML_SUFFIXES = (".yaml", ".yml")


def to_path(p: PathLike) -> Path:
    """Convert string-like to pathlib.Path."""
    return p if isinstance(p, Path) else Path(p)


def ensure_parent(path: PathLike) -> Path:
    """Ensure parent directory exists for a file path."""
    p = to_path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    return p


def _replace_atomically(path: PathLike, dump) -> Path:
    p = ensure_parent(path)
    tmp = p.with_suffix(p.suffix + ".tmp")
    with tmp.open("w", encoding="utf-8") as f:
        dump(f)
    tmp.replace(p)
    return p


# -------- JSON / YAML --------
def read_json(path: PathLike) -> Any:
    """Load JSON file with UTF-8."""
    with to_path(path).open("r", encoding="utf-8") as f:
        return json.load(f)


def write_json(path: PathLike, data: Any, indent: int = 2) -> Path:
    """Write JSON atomically, pretty-formatted."""
    return _replace_atomically(path, lambda f: json.dump(data, f, ensure_ascii=False, indent=indent))


def read_yaml(path: PathLike) -> Any:
    with to_path(path).open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def write_yaml(path: PathLike, data: Any) -> Path:
    # keep camelCase keys in document order
    return _replace_atomically(path, lambda f: yaml.safe_dump(data, f, sort_keys=False, allow_unicode=True))


def load_document(path: PathLike) -> Any:
    """
    Load a flow document by extension:
      - .json -> JSON
      - .yaml/.yml -> YAML
    """
    p = to_path(path)
    suf = p.suffix.lower()
    if suf == ".json":
        return read_json(p)
    if suf in YAML_SUFFIXES:
        return read_yaml(p)
    raise ValueError(f"Unsupported extension: {suf} for {p}")


def save_document(path: PathLike, data: Any) -> Path:
    """Write ``data`` as YAML for .yaml/.yml paths, JSON otherwise."""
    if to_path(path).suffix.lower() in YAML_SUFFIXES:
        return write_yaml(path, data)
    return write_json(path, data)


# -------- Matplotlib integration --------
def save_fig(fig, path: PathLike, **kwargs) -> Path:
    """
    Save matplotlib figure with sensible defaults.
    Example kwargs: bbox_inches="tight", pad_inches=0.03, dpi=200
    """
    p = ensure_parent(path)
    fig.savefig(p, **({"bbox_inches": "tight", "pad_inches": 0.03, "dpi": 200} | kwargs))
    return p
