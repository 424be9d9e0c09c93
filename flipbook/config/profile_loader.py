"""Profile loader for configurable viewer behavior."""

import yaml
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass, field


@dataclass
class ViewerProfile:
    """Configuration profile for rendering, flipping and sound."""
    name: str
    description: str = ""
    quality_multiplier: float = 2.0
    max_canvas_pixels: int = 16_777_216
    flip_duration_ms: int = 600
    pages_per_flip: int = 1
    cover_cache_capacity: int = 32
    thumbnail_scale: float = 0.3
    display_mode: str = "inline"  # "inline" | "modal" | "fullscreen"
    sound: Dict[str, Any] = field(default_factory=dict)
    layout: Dict[str, Any] = field(default_factory=dict)

    @property
    def flip_duration(self) -> float:
        """Flip duration in seconds."""
        return self.flip_duration_ms / 1000.0

    @property
    def sound_enabled(self) -> bool:
        return bool(self.sound.get('enabled', True))

    @property
    def sound_url(self) -> Optional[str]:
        return self.sound.get('sample_url')

    @property
    def mobile_breakpoint(self) -> int:
        return int(self.layout.get('mobile_breakpoint', 768))

    @property
    def resize_debounce(self) -> float:
        """Resize debounce window in seconds."""
        return self.layout.get('resize_debounce_ms', 120) / 1000.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ViewerProfile':
        """Create ViewerProfile from dictionary."""
        return cls(
            name=data.get('name', 'default'),
            description=data.get('description', ''),
            quality_multiplier=float(data.get('quality_multiplier', 2.0)),
            max_canvas_pixels=int(data.get('max_canvas_pixels', 16_777_216)),
            flip_duration_ms=int(data.get('flip_duration_ms', 600)),
            pages_per_flip=int(data.get('pages_per_flip', 1)),
            cover_cache_capacity=int(data.get('cover_cache_capacity', 32)),
            thumbnail_scale=float(data.get('thumbnail_scale', 0.3)),
            display_mode=data.get('display_mode', 'inline'),
            sound=data.get('sound') or {},
            layout=data.get('layout') or {},
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'name': self.name,
            'description': self.description,
            'quality_multiplier': self.quality_multiplier,
            'max_canvas_pixels': self.max_canvas_pixels,
            'flip_duration_ms': self.flip_duration_ms,
            'pages_per_flip': self.pages_per_flip,
            'cover_cache_capacity': self.cover_cache_capacity,
            'thumbnail_scale': self.thumbnail_scale,
            'display_mode': self.display_mode,
            'sound': self.sound,
            'layout': self.layout,
        }

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ValueError: If a value is outside its allowed range
        """
        if not 1.0 <= self.quality_multiplier <= 3.0:
            raise ValueError(f"quality_multiplier must be in [1, 3], got {self.quality_multiplier}")
        if self.max_canvas_pixels <= 0:
            raise ValueError("max_canvas_pixels must be positive")
        if self.flip_duration_ms < 0:
            raise ValueError("flip_duration_ms must be >= 0")
        if self.pages_per_flip not in (1, 2):
            raise ValueError(f"pages_per_flip must be 1 or 2, got {self.pages_per_flip}")
        if self.cover_cache_capacity < 1:
            raise ValueError("cover_cache_capacity must be >= 1")
        if self.display_mode not in ('inline', 'modal', 'fullscreen'):
            raise ValueError(f"Invalid display_mode: {self.display_mode}")


def get_profiles_dir() -> Path:
    """Get directory containing profile YAML files.

    Returns:
        Path to profiles directory
    """
    # flipbook/config/profile_loader.py -> flipbook/config -> flipbook -> root
    project_root = Path(__file__).resolve().parent.parent.parent
    return project_root / "configs" / "profiles"


def load_profile(profile_name: str = "default") -> ViewerProfile:
    """Load a configuration profile.

    Args:
        profile_name: Name of profile to load (without .yaml extension)

    Returns:
        ViewerProfile object

    Raises:
        FileNotFoundError: If profile file doesn't exist
        ValueError: If profile file is invalid
    """
    profile_path = get_profiles_dir() / f"{profile_name}.yaml"

    if not profile_path.exists():
        raise FileNotFoundError(f"Profile not found: {profile_name} (expected at {profile_path})")

    try:
        with open(profile_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in profile {profile_name}: {e}") from e

    if not data:
        raise ValueError(f"Profile file is empty: {profile_path}")
    if not isinstance(data, dict):
        raise ValueError(f"Profile {profile_name} must be a mapping")

    try:
        profile = ViewerProfile.from_dict(data)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Error loading profile {profile_name}: {e}") from e
    profile.validate()
    return profile


def list_available_profiles() -> list[str]:
    """List all available profile names.

    Returns:
        List of profile names (without .yaml extension)
    """
    profiles_dir = get_profiles_dir()

    if not profiles_dir.exists():
        return ["default"]

    profiles = [profile_file.stem for profile_file in profiles_dir.glob("*.yaml")]
    return sorted(profiles) if profiles else ["default"]


def get_default_profile() -> ViewerProfile:
    """Get default profile (always available).

    Returns:
        Default ViewerProfile
    """
    try:
        return load_profile("default")
    except FileNotFoundError:
        return ViewerProfile(name="default", description="Default configuration")
