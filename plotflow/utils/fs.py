"""Flow documents, resource tables and rendered paths on disk.

The format follows the file extension: ``.json`` is JSON, anything else
is YAML (PyYAML ``safe_load`` / ``safe_dump``).  Writes go to a sibling
``.tmp`` file that is fsynced and renamed over the target, so an editor
polling the output never reads a half-written file.

Usage:
    from plotflow.utils import fs
    doc = fs.load_document("drawing.flow.json")
    fs.dump_document({"paths": [...]}, "out/paths.yaml")

Note: module named ``fs`` to avoid shadowing stdlib ``io``.
"""

import json
import os
from pathlib import Path
from typing import Any, Union

import yaml

PathLike = Union[str, Path]


def _is_json(path: Path) -> bool:
    return path.suffix.lower() == ".json"


def _replace_atomically(path: Path, payload: str) -> None:
    """Write ``payload`` beside ``path`` and rename it into place.

    Raises
    ------
    RuntimeError
        If any step fails; the temporary file is removed first.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    staging = path.with_name(path.name + ".tmp")
    try:
        with open(staging, "w", encoding="utf-8") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(staging, path)
    except OSError as e:
        staging.unlink(missing_ok=True)
        raise RuntimeError(f"Could not write {path}: {e}") from e


def load_yaml(path: PathLike) -> Any:
    """Parse a YAML file.

    Parameters
    ----------
    path : str or Path
        File to read.

    Returns
    -------
    Any
        Parsed content; None for an empty file.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    yaml.YAMLError
        If the content is not valid YAML; the message names the file.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"YAML file not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"{path}: {e}") from e


def load_document(path: PathLike) -> Any:
    """Read a JSON or YAML document, chosen by extension.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    json.JSONDecodeError, yaml.YAMLError
        If the content does not parse.
    """
    path = Path(path)
    if not _is_json(path):
        return load_yaml(path)
    if not path.is_file():
        raise FileNotFoundError(f"JSON file not found: {path}")
    return json.loads(path.read_text(encoding="utf-8"))


def dump_document(obj: Any, path: PathLike) -> None:
    """Atomically write ``obj`` as JSON or YAML, chosen by extension."""
    path = Path(path)
    if _is_json(path):
        payload = json.dumps(obj, indent=2, ensure_ascii=False)
    else:
        payload = yaml.safe_dump(obj, default_flow_style=False, sort_keys=False, allow_unicode=True)
    _replace_atomically(path, payload)
