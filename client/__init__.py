from client.api_client import ApiClient, ClientSession, TokenStore
from client.errors import ApiError
from client.refresh import RefreshCoordinator

__all__ = ["ApiClient", "ApiError", "ClientSession", "RefreshCoordinator", "TokenStore"]
