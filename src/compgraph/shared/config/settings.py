"""
Centralized configuration management for compgraph.

All environment variables and settings are managed here so the builder,
normalizer, diff engine and impact analysis read the same defaults.
"""

from functools import lru_cache
from typing import Optional, Dict, Any, List, Tuple
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


DEFAULT_SEARCH_PATHS: Dict[str, List[str]] = {
    "task": ["Tasks", "tasks", "sys-tasks"],
    "schema": ["Schemas", "schemas", "sys-schemas"],
    "view": ["Views", "views", "sys-views"],
    "function": ["Functions", "functions", "sys-functions"],
    "extension": ["Extensions", "extensions", "sys-extensions"],
    "workflow": ["Workflows", "workflows", "flows", "sys-flows"],
}


class Settings(BaseSettings):
    """
    Centralized settings for compgraph.

    Loaded from ``COMPGRAPH_*`` environment variables (and an optional
    ``.env`` file) with sensible defaults.
    """

    # === Application Settings ===
    app_name: str = Field(default="compgraph", description="Application name")
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: Optional[str] = Field(default=None, description="Optional log file path")

    # === Reference Defaults ===
    default_domain: str = Field(default="core", description="Domain assumed for bare file-path references")
    default_version: str = Field(default="1.0.0", description="Version assumed for bare file-path references")

    # === Scan Settings ===
    search_paths: Dict[str, List[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_SEARCH_PATHS.items()},
        description="Directories scanned per component type",
    )
    exclude_patterns: List[str] = Field(default_factory=lambda: ["*.diagram.json"], description="File globs never read")
    exclude_dirs: List[str] = Field(
        default_factory=lambda: [".git", ".vscode", "node_modules"],
        description="Directory names never descended into",
    )
    max_scan_depth: Optional[int] = Field(default=None, ge=0, description="Max recursion depth (None = unlimited)")

    # === Build Settings ===
    compute_hashes: bool = Field(default=True, description="Compute api/config hashes during builds")
    max_workers: int = Field(default=4, ge=1, le=64, description="Thread pool size for file reads")
    strict_references: bool = Field(default=False, description="Fail builds on unresolvable references")

    # === Impact Settings ===
    risk_thresholds: Tuple[int, int, int] = Field(
        default=(5, 15, 30),
        description="Upper bounds for low/medium/high deployment risk",
    )

    @property
    def logging_config(self) -> Dict[str, Any]:
        """Get logging configuration."""
        return {
            'level': self.log_level,
            'file': self.log_file,
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        }

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = {'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'}
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()

    @field_validator('risk_thresholds')
    @classmethod
    def validate_risk_thresholds(cls, v):
        low, medium, high = v
        if not (0 <= low <= medium <= high):
            raise ValueError("Risk thresholds must be non-decreasing and non-negative")
        return v

    model_config = {
        "env_prefix": "COMPGRAPH_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
    }

    def search_paths_for(self, component_type: str) -> List[str]:
        """Directories scanned for one component type."""
        return list(self.search_paths.get(component_type, []))


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are read-only; services accept an explicit instance so callers
    that need different configuration never touch this cache.
    """
    return Settings()
