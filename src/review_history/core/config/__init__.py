"""
Pipeline configuration loading.
"""

from .pipeline_config import (
    DEFAULT_DATE_FORMATS,
    SIMULATABLE_FIELDS,
    FieldMap,
    PipelineConfig,
    PipelineConfigLoader,
    SimulationConfig,
    load_pipeline_config,
)

__all__ = [
    "DEFAULT_DATE_FORMATS",
    "SIMULATABLE_FIELDS",
    "FieldMap",
    "SimulationConfig",
    "PipelineConfig",
    "PipelineConfigLoader",
    "load_pipeline_config",
]
