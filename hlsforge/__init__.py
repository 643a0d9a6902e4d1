"""
hlsforge: Keras-style ``model.add(...)`` layer descriptions to HLS C++.

Example usage:
    from hlsforge import GenerationConfig, compile_source

    result = compile_source(source, GenerationConfig(data_type_mode="floating-point"))
    result.write("build/")
"""

from .compiler import (
    CompilationResult,
    Compiler,
    GeneratedSources,
    compile_source,
    validate_source,
)
from .config import GenerationConfig, SourceOptions, load_config
