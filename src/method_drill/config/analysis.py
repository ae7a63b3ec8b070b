"""
Analysis configuration for method-drill.

Loaded from a JSON or YAML file; every field has a usable default.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "METHOD_DRILL_CONFIG"


@dataclass
class OracleConfig:
    """Configuration for LLM-based call-target disambiguation."""

    # Disabled oracle means every multi-candidate call takes the first candidate
    enabled: bool = False

    # "ollama" or "lmstudio"
    provider: str = "ollama"
    base_url: str = "http://localhost:11434"
    model: str = "qwen2.5-coder:1.5b"

    timeout_seconds: float = 15.0
    temperature: float = 0.0
    max_response_tokens: int = 128

    # Reuse answers for identical (interface, call site, candidates) requests
    cache_decisions: bool = True

    def __post_init__(self):
        self.provider = self.provider.lower()
        if self.provider not in ("ollama", "lmstudio"):
            raise ValueError(f"Unknown oracle provider: {self.provider}")

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'OracleConfig':
        """Create config from the 'oracle' section of a dictionary."""
        defaults = cls()
        return cls(
            enabled=config_dict.get('enabled', defaults.enabled),
            provider=config_dict.get('provider', defaults.provider),
            base_url=config_dict.get('base_url', defaults.base_url),
            model=config_dict.get('model', defaults.model),
            timeout_seconds=config_dict.get('timeout_seconds', defaults.timeout_seconds),
            temperature=config_dict.get('temperature', defaults.temperature),
            max_response_tokens=config_dict.get('max_response_tokens', defaults.max_response_tokens),
            cache_decisions=config_dict.get('cache_decisions', defaults.cache_decisions),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return {
            'enabled': self.enabled,
            'provider': self.provider,
            'base_url': self.base_url,
            'model': self.model,
            'timeout_seconds': self.timeout_seconds,
            'temperature': self.temperature,
            'max_response_tokens': self.max_response_tokens,
            'cache_decisions': self.cache_decisions,
        }


@dataclass
class AnalysisConfig:
    """Configuration for the analysis service and server"""

    # Codebase index snapshot (JSON/YAML)
    index_path: Optional[str] = None

    # Server settings
    host: str = "127.0.0.1"
    port: int = 9830

    # Logging settings
    log_level: str = "INFO"

    # Stop the ancestor search after this many paths (None = unbounded)
    max_ancestor_paths: Optional[int] = None

    # Attach method bodies as plain-text context to analysis reports
    include_method_context: bool = False

    oracle: OracleConfig = field(default_factory=OracleConfig)

    def __post_init__(self):
        """Validate and normalize the configuration"""
        if self.index_path:
            self.index_path = os.path.abspath(os.path.expanduser(self.index_path))
        if self.max_ancestor_paths is not None and self.max_ancestor_paths < 1:
            raise ValueError("max_ancestor_paths must be at least 1")
        self.log_level = self.log_level.upper()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            'index_path': self.index_path,
            'host': self.host,
            'port': self.port,
            'log_level': self.log_level,
            'max_ancestor_paths': self.max_ancestor_paths,
            'include_method_context': self.include_method_context,
            'oracle': self.oracle.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AnalysisConfig':
        """Create from dictionary"""
        return cls(
            index_path=data.get('index_path'),
            host=data.get('host', '127.0.0.1'),
            port=data.get('port', 9830),
            log_level=data.get('log_level', 'INFO'),
            max_ancestor_paths=data.get('max_ancestor_paths'),
            include_method_context=data.get('include_method_context', False),
            oracle=OracleConfig.from_dict(data.get('oracle', {})),
        )

    @classmethod
    def from_file(cls, config_path: str) -> 'AnalysisConfig':
        """Load configuration from a JSON or YAML file"""
        config_path = Path(config_path)

        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            content = f.read()

        if config_path.suffix in ('.yaml', '.yml'):
            import yaml
            data = yaml.safe_load(content)
        else:
            data = json.loads(content)

        config = cls.from_dict(data or {})

        # Relative index paths are relative to the config file
        index_path = (data or {}).get('index_path')
        if index_path and not os.path.isabs(os.path.expanduser(index_path)):
            config.index_path = str((config_path.parent / index_path).resolve())

        return config

    def save_to_file(self, config_path: str) -> None:
        """Save configuration to a JSON or YAML file"""
        config_path = Path(config_path)

        data = self.to_dict()

        with open(config_path, 'w', encoding='utf-8') as f:
            if config_path.suffix in ('.yaml', '.yml'):
                import yaml
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
            else:
                json.dump(data, f, indent=2)

        logger.info(f"Saved configuration to: {config_path}")

    @classmethod
    def discover(cls, explicit_path: Optional[str] = None) -> 'AnalysisConfig':
        """
        Load configuration from the first location that exists.

        Priority order:
        1. explicit_path
        2. METHOD_DRILL_CONFIG environment variable
        3. ~/.method-drill/config.json
        4. ./method_drill_config.json

        Returns defaults if none exists.
        """
        locations = []
        if explicit_path:
            locations.append(Path(explicit_path))
        env_config = os.environ.get(CONFIG_ENV_VAR)
        if env_config:
            locations.append(Path(env_config))
        locations.append(Path.home() / ".method-drill" / "config.json")
        locations.append(Path.cwd() / "method_drill_config.json")

        for location in locations:
            if location.exists():
                logger.info(f"Using config: {location}")
                return cls.from_file(str(location))

        if explicit_path:
            raise FileNotFoundError(f"Config file not found: {explicit_path}")

        logger.info("No config file found, using defaults")
        return cls()


def generate_example_config(output_path: str = "method_drill_config.json") -> None:
    """Generate an example configuration file"""
    config = AnalysisConfig(
        index_path="./codebase_index.json",
        host="127.0.0.1",
        port=9830,
        log_level="INFO",
        max_ancestor_paths=None,
        include_method_context=True,
        oracle=OracleConfig(
            enabled=True,
            provider="ollama",
            base_url="http://localhost:11434",
            model="qwen2.5-coder:1.5b",
        ),
    )

    config.save_to_file(output_path)
