from .client import API_PREFIX, ForgejoClient
from .exceptions import (
    ForgejoConfigurationError,
    ForgejoError,
    HttpError,
    NetworkError,
    PatternError,
)

__all__ = [
    "API_PREFIX",
    "ForgejoClient",
    "ForgejoError",
    "ForgejoConfigurationError",
    "HttpError",
    "NetworkError",
    "PatternError",
]
