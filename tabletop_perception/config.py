import logging
import yaml
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any, Dict, Union

from tabletop_perception.pipeline import PipelineParams

logger = logging.getLogger(__name__)

# Sequence fields and their required lengths
_TUPLE_FIELDS = {"filter_limits": 2, "plane_offsets": 4, "crop_min": 3}


def params_from_dict(values: Dict[str, Any]) -> PipelineParams:
    """
    Build PipelineParams from a mapping, starting from the defaults.
    Accepts either the flat mapping or one nested under a `detector` key.
    """
    if isinstance(values, dict) and isinstance(values.get("detector"), dict):
        values = values["detector"]
    if not isinstance(values, dict):
        raise ValueError(f"Expected a mapping of detector parameters, got {type(values).__name__}")

    known = {f.name for f in fields(PipelineParams)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ValueError(f"Unknown detector parameters: {', '.join(unknown)}")

    overrides = {}
    for name, value in values.items():
        if name in _TUPLE_FIELDS:
            length = _TUPLE_FIELDS[name]
            if not isinstance(value, (list, tuple)) or len(value) != length:
                raise ValueError(f"{name} must be a list of {length} numbers, got {value!r}")
            value = tuple(float(v) for v in value)
        overrides[name] = value

    return PipelineParams(**overrides)


def load_params(config_path: Union[str, Path]) -> PipelineParams:
    """Load detector parameters from a YAML file."""
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        with open(config_path, "r") as file:
            values = yaml.safe_load(file) or {}
        params = params_from_dict(values)
    except (yaml.YAMLError, ValueError, TypeError) as e:
        logger.error(f"Failed to load detector config: {e}")
        raise

    logger.info(f"Loaded detector config from: {config_path}")
    return params


def params_to_dict(params: PipelineParams) -> Dict[str, Any]:
    values = asdict(params)
    for name in _TUPLE_FIELDS:
        values[name] = list(values[name])
    return values
