"""
Viewer configuration dataclasses.

Centralizes the settings shared by the terrain viewer components:
provider credentials, the remote tiling service, export settings
and the sky/fog appearance.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


DEFAULT_TITILER_ENDPOINT = "https://titiler.xyz"


@dataclass
class Credentials:
    """API keys keyed by provider name."""

    mapbox: str = ""
    maptiler: str = ""
    google: str = ""
    mapzen: str = ""

    def for_provider(self, provider: str) -> str:
        """Return the key for a provider, or an empty string."""
        key_names = {
            "mapbox": self.mapbox,
            "maptiler": self.maptiler,
            "google3dtiles": self.google,
            "google": self.google,
            "mapzen": self.mapzen,
        }
        return key_names.get(provider, "") or ""

    @classmethod
    def from_env(cls) -> "Credentials":
        """Load credentials from MAPBOX_KEY, MAPTILER_KEY, GOOGLE_KEY, MAPZEN_KEY."""
        return cls(
            mapbox=os.environ.get("MAPBOX_KEY", ""),
            maptiler=os.environ.get("MAPTILER_KEY", ""),
            google=os.environ.get("GOOGLE_KEY", ""),
            mapzen=os.environ.get("MAPZEN_KEY", ""),
        )


@dataclass
class ServiceConfig:
    """Remote tiling service (TiTiler) settings."""

    titiler_endpoint: str = DEFAULT_TITILER_ENDPOINT
    timeout: float = 10.0  # Seconds, applied to every fetch
    use_cog_protocol: bool = True

    @property
    def endpoint(self) -> str:
        return self.titiler_endpoint.rstrip("/")


@dataclass
class ExportConfig:
    """DTM export settings."""

    max_resolution: int = 1024
    output_dir: Path = field(default_factory=lambda: Path("exports"))


@dataclass
class SkyConfig:
    """Sky, horizon and fog colors for the 3D view."""

    sky_color: str = "#80ccff"
    sky_horizon_blend: float = 0.5
    horizon_color: str = "#ccddff"
    horizon_fog_blend: float = 0.5
    fog_color: str = "#fcf0dd"
    fog_ground_blend: float = 0.2
    match_theme_colors: bool = False
    background_layer_active: bool = True


@dataclass
class ViewerConfig:
    """Master configuration for the terrain viewer core."""

    credentials: Credentials = field(default_factory=Credentials)
    service: ServiceConfig = field(default_factory=ServiceConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    sky: SkyConfig = field(default_factory=SkyConfig)

    theme: str = "light"
    color_ramp_type: str = "classic"
    license_filter: str = "open-distribute"

    def __post_init__(self) -> None:
        """Ensure the export directory exists."""
        self.export.output_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_env(cls, output_dir: Optional[Path] = None) -> "ViewerConfig":
        """Build a config with credentials, endpoint and ramp listing defaults from the environment."""
        service = ServiceConfig(
            titiler_endpoint=os.environ.get("TITILER_ENDPOINT", DEFAULT_TITILER_ENDPOINT)
        )
        export = ExportConfig()
        if output_dir is not None:
            export.output_dir = output_dir
        return cls(
            credentials=Credentials.from_env(),
            service=service,
            export=export,
            color_ramp_type=os.environ.get("COLOR_RAMP_TYPE", "classic"),
            license_filter=os.environ.get("LICENSE_FILTER", "open-distribute"),
        )
