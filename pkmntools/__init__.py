"""Build helpers for Game Boy ROM projects: tile cleanup, .pic compression, include scanning, VC patches."""

__version__ = "0.1.0"
__all__ = ["common", "gfx", "pkmncompress", "scan_includes", "make_patch"]