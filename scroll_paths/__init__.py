__version__ = "0.1.0"

from scroll_paths.core import (
    BaseAdapter,
    ScrollPathsError,
)

__all__ = [
    "__version__",
    "BaseAdapter",
    "ScrollPathsError",
]
