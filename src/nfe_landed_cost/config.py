"""Application configuration models and helpers.

The configuration is persisted in a YAML file (``config.yaml`` by default)
and validated with ``pydantic`` models, so the CLI, the API and the tests
all share one typed view of folders, the charge apportionment policy and
the comparison settings.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from .core.allocation import CHARGE_POLICIES, DIRECT_OR_PRORATED


class PathsConfig(BaseModel):
    """Filesystem locations used by the batch processor."""

    input_folder: Path = Field(..., description="Folder containing NF-e XML files")
    output_folder: Path = Field(..., description="Folder where CSV exports are written")
    log_folder: Optional[Path] = Field(default=None, description="Optional folder for log files")

    @field_validator("input_folder", "output_folder", "log_folder", mode="before")
    @classmethod
    def _expand_path(cls, value: Optional[str]) -> Optional[Path]:
        if value is None:
            return None
        return Path(value).expanduser().resolve()

    def ensure_directories(self) -> None:
        """Create the directories required for the processor to operate."""

        for attr in ("input_folder", "output_folder", "log_folder"):
            path: Optional[Path] = getattr(self, attr)
            if path is not None:
                path.mkdir(parents=True, exist_ok=True)


class AllocationConfig(BaseModel):
    """How header charges reach the line items."""

    charge_policy: str = Field(
        DIRECT_OR_PRORATED,
        description="'direct_or_prorated' uses the value stated on the line when present, otherwise the"
        " prorated header share.  'direct_plus_prorated' adds both.",
    )

    @field_validator("charge_policy")
    @classmethod
    def _validate_policy(cls, value: str) -> str:
        if value not in CHARGE_POLICIES:
            raise ValueError(f"Unsupported charge policy '{value}'. Valid values: {sorted(CHARGE_POLICIES)}")
        return value


class ComparisonConfig(BaseModel):
    min_invoices: int = Field(2, description="Distinct invoices a product must appear in to be reported")
    similarity_threshold: float = Field(0.85, description="Ratio used by the description similarity grouper")

    @field_validator("min_invoices")
    @classmethod
    def _validate_min_invoices(cls, value: int) -> int:
        if value < 2:
            raise ValueError("min_invoices must be at least 2")
        return value

    @field_validator("similarity_threshold")
    @classmethod
    def _validate_threshold(cls, value: float) -> float:
        if not 0 < value <= 1:
            raise ValueError("similarity_threshold must be in the (0, 1] interval")
        return value


class ProcessingConfig(BaseModel):
    max_workers: int = Field(4, description="Documents processed in parallel")

    @field_validator("max_workers")
    @classmethod
    def _validate_workers(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("max_workers must be greater than zero")
        return value


class ReportConfig(BaseModel):
    """Information about the generated CSV files."""

    filename_prefix: str = Field("custo_nfe_", description="Prefix applied to generated CSV files")
    delimiter: str = Field(";", description="Delimiter used when writing the CSV")
    decimal: str = Field(",", description="Decimal separator used when writing the CSV")


class Settings(BaseModel):
    """Top level configuration object."""

    paths: PathsConfig
    allocation: AllocationConfig = Field(default_factory=AllocationConfig)
    comparison: ComparisonConfig = Field(default_factory=ComparisonConfig)
    processing: ProcessingConfig = Field(default_factory=ProcessingConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)

    def ensure_folders(self) -> None:
        """Create all folders referenced by the configuration."""

        self.paths.ensure_directories()

    @classmethod
    def defaults(cls, base: Path | str = Path(".")) -> "Settings":
        """Settings rooted at ``base`` for runs without a configuration file."""

        base = Path(base)
        return cls.model_validate({"paths": {"input_folder": base / "input", "output_folder": base / "output"}})

    @classmethod
    def load(cls, path: Path | str = Path("config.yaml")) -> "Settings":
        """Load the configuration from a YAML file."""

        config_path = Path(path).expanduser().resolve()
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with config_path.open("r", encoding="utf-8") as stream:
            data = yaml.safe_load(stream) or {}

        settings = cls.model_validate(data)
        settings.ensure_folders()
        return settings


__all__ = [
    "Settings",
    "PathsConfig",
    "AllocationConfig",
    "ComparisonConfig",
    "ProcessingConfig",
    "ReportConfig",
]
