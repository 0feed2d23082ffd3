"""
Project configuration loaded from flowui.yaml.

A missing file means defaults. Every section is a pydantic model so a typo'd
value fails at load time instead of half way through a generation run.
"""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from flowui.diagnostics import ConfigError

CONFIG_FILE = "flowui.yaml"


class LibrarySettings(BaseModel):
    output_path: str = "generated/ui"
    class_prefix: str = "UI_Library_"

    @field_validator("output_path", "class_prefix")
    def validate_not_empty(cls, v):
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()


class HandlerSettings(BaseModel):
    output_path: str = "generated/handlers"
    class_prefix: str = ""

    @field_validator("output_path")
    def validate_output_path(cls, v):
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()


class PanelHandlerSettings(HandlerSettings):
    output_path: str = "generated/handlers/panels"


class NamingSettings(BaseModel):
    auto_standardize_on_add: bool = True
    standardize_child_elements: bool = True
    respect_existing_conventions: bool = True


class SearchSettings(BaseModel):
    debounce_seconds: float = Field(default=0.2, ge=0)


class FlowUISettings(BaseModel):
    scene_file: str = "scenes/sample_scene.yaml"
    registry_file: str = ".flowui/registry.yaml"
    stamp_generated_files: bool = False  # adds a "Generated on:" header line
    library: LibrarySettings = Field(default_factory=LibrarySettings)
    handlers: HandlerSettings = Field(default_factory=HandlerSettings)
    panel_handlers: PanelHandlerSettings = Field(default_factory=PanelHandlerSettings)
    naming: NamingSettings = Field(default_factory=NamingSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)

    # Relative paths are resolved against this directory (the config file's folder)
    base_dir: Path = Field(default_factory=Path.cwd, exclude=True)

    def resolve(self, relative: str) -> Path:
        path = Path(relative)
        return path if path.is_absolute() else self.base_dir / path

    @property
    def scene_path(self) -> Path:
        return self.resolve(self.scene_file)

    @property
    def registry_path(self) -> Path:
        return self.resolve(self.registry_file)

    @property
    def library_dir(self) -> Path:
        return self.resolve(self.library.output_path)

    @property
    def handlers_dir(self) -> Path:
        return self.resolve(self.handlers.output_path)

    @property
    def panel_handlers_dir(self) -> Path:
        return self.resolve(self.panel_handlers.output_path)


def load_settings(path: Optional[str] = None) -> FlowUISettings:
    """Read flowui.yaml (or the given file). Missing file -> defaults."""
    config_path = Path(path) if path else Path(CONFIG_FILE)
    if not config_path.exists():
        if path:
            raise ConfigError(f"Config file not found: {config_path}")
        return FlowUISettings(base_dir=Path.cwd())

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a mapping")

    try:
        return FlowUISettings(**{**data, "base_dir": config_path.resolve().parent})
    except ValidationError as e:
        raise ConfigError(f"Invalid settings in {config_path}: {e}") from e
