"""
texsurf - cached TeX, PDF and SVG surfaces for 2D scenes

Renders LaTeX source, raw PDF or SVG once into a cached vector surface and
draws it anywhere in a scene with position, scale, rotation and alignment.

Architecture:
- Templating Context: Document values and TeX templates
- Rendering Context: Compilation, loading, caching, placement and drawing
"""

__version__ = "0.1.0"
