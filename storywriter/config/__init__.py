from storywriter.config.settings import (
    AgentOverride,
    AgentsConfig,
    APIConfig,
    BackendConfig,
    BackendType,
    Config,
    PipelineConfig,
    get_config,
    reload_config,
)

__all__ = [
    "AgentOverride",
    "AgentsConfig",
    "APIConfig",
    "BackendConfig",
    "BackendType",
    "Config",
    "PipelineConfig",
    "get_config",
    "reload_config",
]
