"""ChocoDrop: natural-language commands for objects in a live 3D scene."""

__version__ = "1.0.0"
