from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from hlsforge.config.generation_config import parse_flag
from hlsforge.dsl.errors import DSLConfigError, DSLSourceError
from hlsforge.utils.dict import DictDefault

INLINE_SOURCE_NAME = "<keras-source-text>"
LOG_LEVELS = ("trace", "debug", "info", "success", "warning", "error", "critical")


@dataclass
class SourceOptions:
    """
    Where the DSL comes from and where generated files go.

    Args:
        keras_source_file (Optional[str]): Path of the DSL file.
        keras_source_text (Optional[str]): Inline DSL; a list of lines is joined with newlines.
            Takes precedence over keras_source_file.
        output_directory (str): Directory that receives main.cpp and the headers. Default is '.'.
        dump_layers (bool): Also write the layer table to DumpLayers.txt.
        log_location (Optional[str]): Log file path. No file sink when unset.
        log_level (str): Console/file log level. Default is 'info'.
    """
    keras_source_file: Optional[str] = None
    keras_source_text: Optional[str] = None
    output_directory: str = "."
    dump_layers: bool = False
    log_location: Optional[str] = None
    log_level: str = "info"

    def __init__(self, cfg: DictDefault):
        self.keras_source_file = cfg['keras-source-file']
        text = cfg['keras-source-text']
        if isinstance(text, (list, tuple)):
            text = "\n".join(str(line) for line in text)
        self.keras_source_text = text
        self.output_directory = cfg['output-directory'] or "."
        self.dump_layers = parse_flag("dump-layers", cfg['dump-layers'])
        self.log_location = cfg['log-location']
        self.log_level = str(cfg['log-level'] or "info").lower()
        self.__post_init__()

    def __post_init__(self):
        if self.log_level not in LOG_LEVELS:
            raise DSLConfigError(
                f"unknown log-level {self.log_level!r}",
                hint=f"Use one of: {', '.join(LOG_LEVELS)}",
            )

    @property
    def has_source(self) -> bool:
        return bool(self.keras_source_text) or bool(self.keras_source_file)

    def read_source(self) -> Tuple[str, str]:
        """Return the DSL text and the name used in diagnostics."""
        if self.keras_source_text:
            return self.keras_source_text, INLINE_SOURCE_NAME
        if not self.keras_source_file:
            raise DSLConfigError(
                "no DSL source given",
                hint="Set keras-source-file or keras-source-text",
            )
        try:
            return Path(self.keras_source_file).read_text(encoding="utf-8"), self.keras_source_file
        except (OSError, UnicodeDecodeError) as e:
            raise DSLSourceError(f"cannot read '{self.keras_source_file}': {e}") from e
