"""
ocipull - pull container images from OCI registries into OCI Image Layouts.
"""
__version__ = "0.1.0"

from .models import ImageConfig, ImageIndex, ImageReference, Manifest  # noqa: E402
from .pull import Puller, PullResult, pull_image  # noqa: E402
from .settings import Settings, create_settings_from_env  # noqa: E402

__all__ = [
    "__version__",
    "ImageConfig",
    "ImageIndex",
    "ImageReference",
    "Manifest",
    "Puller",
    "PullResult",
    "pull_image",
    "Settings",
    "create_settings_from_env",
]
