"""Editor-side adapters: shadow text snapshots and the Qt bridge."""

from .shadow_text import ShadowTextManager

__all__ = ["ShadowTextManager"]
