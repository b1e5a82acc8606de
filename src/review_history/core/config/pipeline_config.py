"""
Pipeline configuration management.

Loads source field mapping, parsing options, tracked fields and mutation
simulation settings from a YAML file into validated Pydantic models.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from review_history.core.versioning.change_detection import validate_tracked_fields
from review_history.observability.logger import get_logger

logger = get_logger(__name__)

DEFAULT_DATE_FORMATS = ["%b %d, %Y", "%m %d, %Y", "%Y-%m-%d", "%d-%b-%Y"]

# Attributes the mutation simulator knows how to synthesize values for
SIMULATABLE_FIELDS = ("measured_value",)


class FieldMap(BaseModel):
    """Source column name for each canonical role."""

    entity_ref: str = "asin"
    measured_value: str = "overall"
    flag: str = "verified"
    event_time_text: str = "reviewTime"
    epoch_timestamp: str = "unixReviewTime"
    free_text_1: str = "reviewText"
    free_text_2: str = "summary"
    actor_id: str = "reviewerID"
    actor_label: str = "reviewerName"


class SimulationConfig(BaseModel):
    """Mutation simulator settings (disabled unless explicitly enabled)."""

    enabled: bool = False
    sample_size: int = Field(10, ge=0)
    seed: int | None = None
    field: str = "measured_value"
    low: float = 1.0
    high: float = 5.0
    decimals: int = Field(1, ge=0)

    @field_validator("field")
    @classmethod
    def check_field(cls, v):
        if v not in SIMULATABLE_FIELDS:
            raise ValueError(f"Cannot simulate changes to '{v}'. Supported: {', '.join(SIMULATABLE_FIELDS)}")
        return v

    @model_validator(mode="after")
    def check_bounds(self) -> "SimulationConfig":
        if self.low > self.high:
            raise ValueError(f"Simulation low bound {self.low} exceeds high bound {self.high}")
        return self


class PipelineConfig(BaseModel):
    """
    Complete pipeline configuration.

    Attributes:
        field_map: Source column mapping
        date_formats: strptime formats tried in order for the event date
        value_min: Lower clamp for the measured value
        value_max: Upper clamp for the measured value
        tracked_fields: Attributes whose change produces a new version
        table_name: History table name
        simulation: Mutation simulator settings
    """

    field_map: FieldMap = Field(default_factory=FieldMap)
    date_formats: list[str] = Field(default_factory=lambda: list(DEFAULT_DATE_FORMATS))
    value_min: float = 0.0
    value_max: float = 5.0
    tracked_fields: list[str] = Field(default_factory=lambda: ["measured_value"])
    table_name: str = Field("review_history", pattern=r"^[a-z_][a-z0-9_]*$")
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)

    @field_validator("tracked_fields")
    @classmethod
    def check_tracked_fields(cls, v):
        return list(validate_tracked_fields(v))

    @model_validator(mode="after")
    def check_value_bounds(self) -> "PipelineConfig":
        if self.value_min > self.value_max:
            raise ValueError(f"value_min {self.value_min} exceeds value_max {self.value_max}")
        return self


class PipelineConfigLoader:
    """
    Loads pipeline configuration from YAML files.

    Expected YAML format:
    ```yaml
    pipeline:
      field_map:
        entity_ref: asin
        measured_value: overall
      date_formats:
        - "%b %d, %Y"
        - "%Y-%m-%d"
      tracked_fields:
        - measured_value
      simulation:
        enabled: false
        sample_size: 10
    ```
    """

    def __init__(self, config_path: str | Path):
        """
        Initialize the config loader.

        Args:
            config_path: Path to the YAML configuration file
        """
        self.config_path = Path(config_path)
        if not self.config_path.exists():
            raise FileNotFoundError(f"Pipeline configuration file not found: {config_path}")

    def load(self) -> PipelineConfig:
        """
        Load and validate the pipeline configuration.

        Returns:
            PipelineConfig instance

        Raises:
            ValueError: If YAML is invalid or the 'pipeline' section is missing
        """
        with open(self.config_path) as f:
            config = yaml.safe_load(f)

        if not config or "pipeline" not in config:
            raise ValueError("Configuration file must contain 'pipeline' section")

        section: dict[str, Any] = config["pipeline"] or {}
        if not isinstance(section, dict):
            raise ValueError("'pipeline' section must be a mapping")

        return PipelineConfig(**section)


def load_pipeline_config(config_path: str | Path | None = None) -> PipelineConfig:
    """
    Load configuration from a file, falling back to defaults when it is absent.

    Args:
        config_path: Optional path to the YAML configuration file

    Returns:
        PipelineConfig instance
    """
    if config_path is None:
        return PipelineConfig()

    if not Path(config_path).exists():
        logger.warning(f"Pipeline config file not found: {config_path}; using defaults")
        return PipelineConfig()

    return PipelineConfigLoader(config_path).load()
