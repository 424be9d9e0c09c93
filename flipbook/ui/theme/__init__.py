"""UI theme package: design tokens, QSS, and apply_theme."""

from .tokens import (
    colors,
    spacing,
    typography,
    radius,
)
from .apply_theme import apply_theme, load_stylesheet

__all__ = [
    "apply_theme",
    "load_stylesheet",
    "colors",
    "spacing",
    "typography",
    "radius",
]
