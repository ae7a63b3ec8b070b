"""Configuration classes for method-drill"""

from .analysis import AnalysisConfig, OracleConfig, generate_example_config, CONFIG_ENV_VAR

__all__ = [
    "AnalysisConfig",
    "OracleConfig",
    "generate_example_config",
    "CONFIG_ENV_VAR",
]
