"""Design tokens for the viewer: colors, spacing, typography, radius.

app_style.qss is generated from these values by apply_theme, so the
stylesheet and any Python-driven painting stay in step.
"""

# -----------------------------------------------------------------------------
# Colors
# -----------------------------------------------------------------------------
colors = {
    "primary": "#1e40af",
    "primary_hover": "#1e3a8a",
    "background": "#f1f5f9",
    "surface": "#ffffff",
    "stage": "#e2e8f0",
    "text": "#0f172a",
    "text_muted": "#64748b",
    "border": "#cbd5e1",
    "error": "#dc2626",
    "cover_placeholder": "#f1f5f9",
}

# -----------------------------------------------------------------------------
# Spacing (pixels)
# -----------------------------------------------------------------------------
spacing = {
    "sm": 4,
    "md": 8,
    "lg": 16,
    "xl": 24,
}

# -----------------------------------------------------------------------------
# Typography
# -----------------------------------------------------------------------------
typography = {
    "font_family": "Segoe UI",
    "font_size_base": 10,
    "font_size_title": 16,
}

# -----------------------------------------------------------------------------
# Radius (px)
# -----------------------------------------------------------------------------
radius = {
    "radius_sm": 3,
    "radius_md": 6,
}

__all__ = ["colors", "spacing", "typography", "radius"]
