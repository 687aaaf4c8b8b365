"""
Workflow Loader for the IdLE Engine.

Reads workflow definitions from YAML or JSON into plain nested data. The
engine never loads executable content from workflow files: YAML is read
with safe_load, which only builds mappings, lists and scalars.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml

from ..models import LifecycleRequest

logger = logging.getLogger(__name__)

BUNDLED_WORKFLOW_DIR = Path(__file__).parent / "definitions"
SUPPORTED_SUFFIXES = (".yaml", ".yml", ".json")


def load_data_file(path: Union[str, Path], kind: str = "Workflow") -> Dict[str, Any]:
    """
    Load a YAML or JSON document whose root is a mapping.

    Args:
        path: Path to a .yaml, .yml or .json file
        kind: What the file holds, used in error messages

    Returns:
        Parsed data

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: For unsupported file types or a non-mapping root
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"{kind} file not found: {path}")

    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise ValueError(f"Unsupported {kind.lower()} file type: {path.suffix}")

    with open(path, encoding="utf-8") as f:
        if suffix == ".json":
            data = json.load(f)
        else:
            data = yaml.safe_load(f)

    if not isinstance(data, dict):
        raise ValueError(f"{kind} root must be a mapping: {path}")

    return data


def load_workflow(path: Union[str, Path]) -> Dict[str, Any]:
    """Load a workflow definition from a YAML or JSON file."""
    data = load_data_file(path, "Workflow")
    logger.info(f"Loaded workflow '{data.get('Name')}' from {path}")
    return data


def load_request(path: Union[str, Path]) -> LifecycleRequest:
    """Load a lifecycle request (PascalCase keys) from a YAML or JSON file."""
    return LifecycleRequest.model_validate(load_data_file(path, "Request"))


def list_bundled_workflows() -> List[str]:
    """Names of the workflow definitions shipped with the engine."""
    return sorted(p.stem for p in BUNDLED_WORKFLOW_DIR.glob("*.yaml"))


def get_bundled_workflow_path(name: str) -> Path:
    """Path of a bundled workflow definition ('joiner', 'mover', 'leaver')."""
    path = BUNDLED_WORKFLOW_DIR / f"{name.lower()}.yaml"
    if not path.exists():
        raise ValueError(
            f"No bundled workflow named '{name}'. Available: {', '.join(list_bundled_workflows())}"
        )
    return path
