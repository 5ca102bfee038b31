"""Remote campus API access."""

from campussync.api.cached import CachedCampusApi
from campussync.api.client import ENDPOINTS, CampusApiClient
from campussync.errors import ApiError, NetworkError, ServerError

__all__ = [
    "CampusApiClient",
    "CachedCampusApi",
    "ENDPOINTS",
    "ApiError",
    "NetworkError",
    "ServerError",
]
