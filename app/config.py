from __future__ import annotations

import os
from pathlib import Path
from typing import ClassVar, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings.sources import PydanticBaseSettingsSource, YamlConfigSettingsSource

from domain.models import Size
from domain.ports.layout import DEFAULT_NODE_SIZE, LayoutOptions
from domain.services.estimate_dimensions import EstimatorConfig
from domain.services.load_graph import LoaderConfig

DEFAULT_CONFIG_PATH = Path("config/flowgraph.yaml")


class LayoutSettings(BaseModel):
    rankdir: Literal["TB", "BT", "LR", "RL"] = "LR"
    rank_gap: float = Field(default=150.0, ge=0)
    node_gap: float = Field(default=50.0, ge=0)
    margin_x: float = 20.0
    margin_y: float = 20.0
    default_node_height: float = Field(default=130.0, gt=0)

    @field_validator("rankdir", mode="before")
    @classmethod
    def normalize_rankdir(cls, value: object) -> str:
        return str(value).strip().upper() if value else "LR"

    def to_layout_options(self) -> LayoutOptions:
        return LayoutOptions(
            rankdir=self.rankdir,
            rank_spacing=self.rank_gap,
            node_spacing=self.node_gap,
            margin_x=self.margin_x,
            margin_y=self.margin_y,
            default_size=Size(DEFAULT_NODE_SIZE.width, self.default_node_height),
        )

    def to_loader_config(self) -> LoaderConfig:
        return LoaderConfig(
            rankdir=self.rankdir,
            rank_gap=self.rank_gap,
            node_gap=self.node_gap,
            margin_x=self.margin_x,
            margin_y=self.margin_y,
            default_node_height=self.default_node_height,
        )


class EstimatorSettings(BaseModel):
    id_char_width: float = 7.5
    id_padding: float = 40.0
    header_height: float = 32.0
    separator_height: float = 1.0
    padding_height: float = 16.0
    body_padding: float = 8.0
    body_inset: float = 16.0
    line_height: float = 20.0
    char_width: float = Field(default=7.0, gt=0)
    min_height: float = 80.0

    def to_estimator_config(self) -> EstimatorConfig:
        return EstimatorConfig(**self.model_dump())


class EditorSettings(BaseModel):
    proximity_threshold: float = Field(default=150.0, gt=0)
    grid_columns: int = Field(default=5, ge=1)
    grid_cell_width: float = 300.0
    grid_cell_height: float = 150.0

    def grid_cell(self) -> Size:
        return Size(self.grid_cell_width, self.grid_cell_height)


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="FLOWGRAPH_", env_nested_delimiter="__")

    layout: LayoutSettings = LayoutSettings()
    estimator: EstimatorSettings = EstimatorSettings()
    editor: EditorSettings = EditorSettings()

    _yaml_path: ClassVar[Path | None] = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        sources: list[PydanticBaseSettingsSource] = [
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        ]
        if cls._yaml_path:
            sources.append(YamlConfigSettingsSource(settings_cls, yaml_file=cls._yaml_path))
        return tuple(sources)


def resolve_config_path(config_path: Path | None = None) -> Path | None:
    """Explicit path first, then FLOWGRAPH_CONFIG_PATH, then the repo default if present."""
    if config_path is None:
        from_env = os.getenv("FLOWGRAPH_CONFIG_PATH")
        if from_env:
            config_path = Path(from_env)
        elif DEFAULT_CONFIG_PATH.exists():
            return DEFAULT_CONFIG_PATH
        else:
            return None
    if not config_path.exists():
        msg = f"Config file not found: {config_path}"
        raise FileNotFoundError(msg)
    return config_path


def load_settings(config_path: Path | None = None) -> AppSettings:
    yaml_path = resolve_config_path(config_path)
    saved = AppSettings._yaml_path
    AppSettings._yaml_path = yaml_path
    try:
        return AppSettings()
    finally:
        AppSettings._yaml_path = saved
