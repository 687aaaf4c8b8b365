"""
Engine configuration file support.

Loads the host configuration (execution options, registry overrides,
provider declarations) used by the CLI and the API server.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field

from .models import ExecutionOptions, RetryProfile
from .providers import MockProvider

logger = logging.getLogger(__name__)


class ProviderConfig(BaseModel):
    """Provider declaration in the engine configuration file."""
    type: str = Field("mock", description="Provider implementation (only 'mock' is bundled)")
    capabilities: Optional[List[str]] = Field(None, description="Capabilities advertised by the provider")


class EngineConfig(BaseModel):
    """Engine configuration loaded from YAML or JSON."""
    execution_options: ExecutionOptions = Field(
        default_factory=lambda: ExecutionOptions(retry_profiles={"Standard": RetryProfile()})
    )
    step_metadata: Dict[str, Any] = Field(default_factory=dict, description="Host step metadata overrides")
    step_handlers: Dict[str, str] = Field(default_factory=dict, description="Host step handler overrides")
    providers: Dict[str, ProviderConfig] = Field(
        default_factory=lambda: {
            "Identity": ProviderConfig(),
            "DirectorySync": ProviderConfig(capabilities=["IdLE.DirectorySync.Trigger", "IdLE.DirectorySync.Status"]),
        },
        description="Provider alias to provider declaration",
    )
    audit_dir: Optional[str] = Field(None, description="Directory for the JSONL event audit trail")
    working_directory: Optional[str] = Field(None, description="Base directory for FromFile templates")


def load_engine_config(config_path: Optional[Union[str, Path]] = None) -> EngineConfig:
    """
    Load the engine configuration.

    Args:
        config_path: Path to a .yaml/.yml or .json file. None returns defaults.

    Returns:
        Parsed EngineConfig
    """
    if config_path is None:
        return EngineConfig()

    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, encoding="utf-8") as f:
        if config_path.suffix.lower() == ".json":
            data = json.load(f)
        else:
            data = yaml.safe_load(f)

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration root must be a mapping: {config_path}")

    logger.info(f"Loaded engine configuration from {config_path}")
    return EngineConfig(**data)


def build_providers(config: EngineConfig) -> Dict[str, Any]:
    """Instantiate the providers declared in the configuration."""
    providers = {}
    for alias, provider_config in config.providers.items():
        if provider_config.type.lower() != "mock":
            raise ValueError(f"Unsupported provider type for '{alias}': {provider_config.type}")
        providers[alias] = MockProvider(capabilities=provider_config.capabilities)

    return providers
