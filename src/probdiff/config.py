from functools import lru_cache
from typing import Any, Literal

from matplotlib.backend_bases import FigureCanvasBase
from matplotlib.colors import is_color_like
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigError(RuntimeError):
    """Configuration-related error."""
    pass


# ─────────────────────────────────────────────────────────────
# Section configs
# ─────────────────────────────────────────────────────────────


class LoggingSettings(BaseModel):
    level: Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"] = "INFO"
    format: str = (
        "%(asctime)-20s %(name)-30s "
        "%(levelname)-8s: %(message)s"
    )


class RenderSettings(BaseModel):
    width_px: int = Field(500, gt=0, description="Frame width in pixels.")
    height_px: int = Field(500, gt=0, description="Frame height in pixels.")
    dpi: int = Field(100, gt=0, description="Dots per inch used when saving frames.")

    visited_color: str = Field("red", description="Fill colour of visited nodes.")
    unvisited_color: str = Field("blue", description="Fill colour of unvisited nodes.")
    source_outline_color: str = Field(
        "black", description="Outline colour drawn around the diffusion source."
    )

    edge_width_scale: float = Field(
        5.0, gt=0, description="Edge stroke width per unit of |weight|."
    )
    node_size: float = Field(600.0, gt=0, description="Node marker area in points^2.")
    label_offset: float = Field(
        0.12,
        ge=0,
        description="Vertical distance between a node and its label, in layout units.",
    )

    file_prefix: str = Field("diffusion-", description="Frame file name prefix.")
    file_suffix: str = Field(".png", description="Frame file name suffix / format.")

    layout_mode: Literal["per_frame", "fixed"] = Field(
        "per_frame",
        description=(
            "'per_frame' recomputes the layout for every frame; 'fixed' computes "
            "it once per diffusion run so nodes do not move between frames."
        ),
    )
    layout_seed: int | None = Field(
        default=None,
        description="Seed for the spring layout (None = nondeterministic).",
    )

    def validate_render(self) -> None:
        """Ensure the configured colours and frame format are understood by matplotlib."""
        for field_name in ("visited_color", "unvisited_color", "source_outline_color"):
            value = getattr(self, field_name)
            if not is_color_like(value):
                raise ConfigError(f"render.{field_name}={value!r} is not a valid colour")
        if not self.file_suffix.startswith("."):
            raise ConfigError(
                f"render.file_suffix={self.file_suffix!r} must start with '.'"
            )
        supported = FigureCanvasBase.get_supported_filetypes()
        if self.file_suffix[1:].lower() not in supported:
            raise ConfigError(
                f"render.file_suffix={self.file_suffix!r} is not a supported image format; "
                f"expected one of {sorted(supported)}"
            )


class DiffusionSettings(BaseModel):
    threshold: float = Field(
        0.01,
        ge=0,
        description="Shares at or below this mass are not diffused any further.",
    )
    skip_failed_frames: bool = Field(
        False,
        description=(
            "Log and continue when a frame cannot be written instead of "
            "aborting the diffusion run."
        ),
    )


# ─────────────────────────────────────────────────────────────
# Top-level settings
# ─────────────────────────────────────────────────────────────


class AppSettings(BaseSettings):
    """
    Canonical configuration for probdiff.

    Precedence (highest → lowest):

    1. Init kwargs (tests/overrides)
    2. Environment variables
    3. .env and .env.local
    4. Defaults in this class
    """

    model_config = SettingsConfigDict(
        env_prefix="PROBDIFF_",  # PROBDIFF_RENDER__DPI, PROBDIFF_DIFFUSION__THRESHOLD, ...
        env_file=(".env", ".env.local"),  # .env.local overrides .env
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        validate_default=True,
    )

    app_name: str = "probdiff"
    debug: bool = False

    logging: LoggingSettings = LoggingSettings()
    render: RenderSettings = RenderSettings()  # type: ignore[call-arg]
    diffusion: DiffusionSettings = DiffusionSettings()  # type: ignore[call-arg]


@lru_cache(maxsize=1)
def get_settings(**overrides: Any) -> AppSettings:
    """
    Cached accessor for process-wide settings.

    `overrides` are init kwargs → highest precedence (handy in tests).
    """
    settings = AppSettings(**overrides)
    settings.render.validate_render()
    return settings
