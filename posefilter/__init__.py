"""Two-pass EMA smoothing of 4x4 object poses, geometry helpers and a per-object filter manager."""

__version__ = "0.1.0"
__all__ = ["geometry", "ema_filter", "manager"]