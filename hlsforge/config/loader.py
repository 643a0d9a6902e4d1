import json
import os
import re
from typing import Any, Mapping, Optional, Tuple

import yaml

from hlsforge.config.generation_config import GenerationConfig
from hlsforge.config.source_options import SourceOptions
from hlsforge.dsl.errors import DiagnosticCollector, DSLConfigError
from hlsforge.utils.dict import DictDefault
from hlsforge.utils.logger import get_logger

logger = get_logger()


def load_options(path: Optional[str] = None, overrides: Optional[Mapping[str, Any]] = None) -> DictDefault:
    """
    Read a YAML/JSON options file and merge command-line overrides on top.

    Override values of None are treated as "not given" and leave the file value in place.
    """
    cfg_dict = {}
    if path:
        try:
            with open(path, encoding="utf-8") as file:
                cfg_dict = yaml.safe_load(file) or {}
        except OSError as e:
            raise DSLConfigError(f"cannot read options file '{path}': {e}") from e
        except yaml.YAMLError as e:
            raise DSLConfigError(f"options file '{path}' is not valid YAML/JSON: {e}") from e
        if not isinstance(cfg_dict, dict):
            raise DSLConfigError(f"options file '{path}' must contain a mapping")

    cfg_dict = _expand_env_vars(cfg_dict)
    for key, value in (overrides or {}).items():
        if value is not None:
            cfg_dict[key] = value

    cfg: DictDefault = DictDefault(cfg_dict)

    cfg_to_log = {
        k: v for k, v in cfg.items() if v is not None
    }
    logger.debug(
        "options:\n{}",
        json.dumps(cfg_to_log, indent=2, default=str, sort_keys=True),
    )
    return cfg


def load_config(
    path: Optional[str] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    diagnostics: Optional[DiagnosticCollector] = None,
) -> Tuple[SourceOptions, GenerationConfig]:
    cfg = load_options(path, overrides)
    return SourceOptions(cfg), GenerationConfig.from_options(cfg, diagnostics)


def _expand_env_vars(obj: Any) -> Any:
    """
    Recursively expand environment variables in options.
    Supports ${VAR_NAME} syntax.
    """
    if isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        pattern = r'\$\{([^}]+)\}'

        def replace_env_var(match):
            var_name = match.group(1)
            value = os.environ.get(var_name)
            if value is None:
                logger.warning(f"Environment variable not found: {var_name}")
                return match.group(0)
            return value

        return re.sub(pattern, replace_env_var, obj)
    else:
        return obj
