"""
Workflows Package for the IdLE Engine.

This package loads workflow definitions from YAML/JSON files and ships
the standard Joiner, Mover and Leaver definitions.
"""

from .loader import (
    BUNDLED_WORKFLOW_DIR,
    get_bundled_workflow_path,
    list_bundled_workflows,
    load_data_file,
    load_request,
    load_workflow,
)

__all__ = [
    "BUNDLED_WORKFLOW_DIR",
    "load_data_file",
    "load_workflow",
    "load_request",
    "list_bundled_workflows",
    "get_bundled_workflow_path",
]
