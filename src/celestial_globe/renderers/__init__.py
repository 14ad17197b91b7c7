from celestial_globe.renderers.base import Renderer
from celestial_globe.renderers.svg import SvgRenderer

__all__ = ["Renderer", "SvgRenderer"]
