"""Configuration management for Qollect"""

import yaml
from pathlib import Path
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..engine.models import KEY_FIELD_TAG
from ..report.rows import REPORT_SECTIONS


class SystemConfig(BaseModel):
    """System configuration"""
    name: str = "qollect"
    version: str = "1.4.0"
    log_level: str = "INFO"
    log_file: Optional[str] = None


class ExpressionsConfig(BaseModel):
    """Expression analysis configuration"""
    max_macro_depth: int = 5
    key_field_tag: str = KEY_FIELD_TAG


class TraversalConfig(BaseModel):
    """Object tree traversal limits"""
    max_walk_depth: int = 50
    max_search_depth: int = 60
    max_container_depth: int = 3


class ReportConfig(BaseModel):
    """Report configuration"""
    sections: list[str] = Field(default_factory=lambda: list(REPORT_SECTIONS))
    expression_preview_length: int = 120

    @field_validator("sections")
    @classmethod
    def check_sections(cls, value: list[str]) -> list[str]:
        unknown = [s for s in value if s not in REPORT_SECTIONS]
        if unknown:
            raise ValueError(f"Unknown report sections: {', '.join(unknown)}")
        return value


class Config(BaseSettings):
    """Main configuration class"""
    model_config = SettingsConfigDict(env_prefix="QOLLECT_", env_nested_delimiter="__")

    system: SystemConfig = Field(default_factory=SystemConfig)
    expressions: ExpressionsConfig = Field(default_factory=ExpressionsConfig)
    traversal: TraversalConfig = Field(default_factory=TraversalConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)

    @classmethod
    def from_yaml(cls, config_path: str | Path) -> "Config":
        """Load configuration from YAML file"""
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, "r", encoding="utf-8") as f:
            config_dict = yaml.safe_load(f) or {}

        return cls(**config_dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary"""
        return self.model_dump()

    def save_yaml(self, output_path: str | Path) -> None:
        """Save configuration to YAML file"""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, "w", encoding="utf-8") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
