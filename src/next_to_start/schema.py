from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProjectConfigDTO(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    app_directory: Optional[str] = Field(default=None, alias="appDirectory")
    routes_directory: Optional[str] = Field(default=None, alias="routesDirectory")
    enabled_migrations: Optional[List[str]] = Field(default=None, alias="enabledMigrations")
    disabled_migrations: Optional[List[str]] = Field(default=None, alias="disabledMigrations")
    migrations: Optional[Dict[str, bool]] = None

    @field_validator("app_directory", "routes_directory", mode="before")
    @classmethod
    def _string_or_none(cls, value: Any) -> Any:
        return value if isinstance(value, str) else None

    @field_validator("enabled_migrations", "disabled_migrations", mode="before")
    @classmethod
    def _string_items(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return None
        return [item for item in value if isinstance(item, str)]

    @field_validator("migrations", mode="before")
    @classmethod
    def _boolean_values(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return None
        return {
            str(key): item for key, item in value.items() if isinstance(item, bool)
        }


class MigrationOutcomeDTO(BaseModel):
    path: str
    target_path: Optional[str] = None
    changed: bool = False
    moved: bool = False
    dry_run: bool = False
    warnings: List[str] = []
    error: Optional[str] = None


class MigrationSummaryDTO(BaseModel):
    files: List[MigrationOutcomeDTO] = []
    metrics: Dict[str, List[Dict[str, Any]]] = {}
