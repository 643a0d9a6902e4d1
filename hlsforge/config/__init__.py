from hlsforge.config.generation_config import GenerationConfig
from hlsforge.config.loader import load_config, load_options
from hlsforge.config.source_options import SourceOptions

__all__ = [
    "GenerationConfig",
    "SourceOptions",
    "load_config",
    "load_options",
]
