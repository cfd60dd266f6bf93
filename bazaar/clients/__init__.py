"""HTTP clients."""
from .bazaar_api import BazaarApiClient, BazaarApiError  # noqa: F401
