from .starlette_extension import StarletteQuerywrightExtension

__all__ = ("StarletteQuerywrightExtension",)
