"""Linux GPIO character device UAPI structures, binary encodings and a line event watcher."""

__version__ = "0.1.0"
__all__ = ["uapi", "uapi_v2", "watcher"]