"""Services for pdrive."""
from .api_client import PDriveAPIClient
from .config import load_config

__all__ = ["PDriveAPIClient", "load_config"]
