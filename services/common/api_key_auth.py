"""
Shared API key authentication helpers.

Each service defines its own API_KEY_CONFIGS and get_settings function and
passes them to these helpers.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from fastapi import Request

from services.common.http_errors import AuthError, ErrorCode
from services.common.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class APIKeyConfig:
    client: str
    service: str
    permissions: List[str]
    settings_key: str  # attribute name on the settings object holding the key value


def build_api_key_mapping(
    api_key_configs: Dict[str, APIKeyConfig], get_settings: Callable[[], Any]
) -> Dict[str, APIKeyConfig]:
    """Build a mapping from actual API key values to their configurations."""
    settings = get_settings()
    api_key_mapping = {}
    for config in api_key_configs.values():
        actual_key_value = getattr(settings, config.settings_key, None)
        if actual_key_value:
            api_key_mapping[actual_key_value] = config
        else:
            logger.warning(f"API key not found in settings: {config.settings_key}")
    return api_key_mapping


def get_api_key_from_request(request: Request) -> Optional[str]:
    """
    Extract API key from request headers (supports X-API-Key, Authorization: Bearer, X-Service-Key).
    """
    api_key = request.headers.get("X-API-Key")
    if api_key:
        return api_key
    authorization = request.headers.get("Authorization")
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:]
    return request.headers.get("X-Service-Key")


def verify_api_key(
    api_key: str, api_key_mapping: Dict[str, APIKeyConfig]
) -> Optional[str]:
    """Verify an API key and return the service name it's authorized for."""
    if not api_key:
        return None
    key_config = api_key_mapping.get(api_key)
    if not key_config:
        return None
    return key_config.service


def get_client_from_api_key(
    api_key: str, api_key_mapping: Dict[str, APIKeyConfig]
) -> Optional[str]:
    key_config = api_key_mapping.get(api_key)
    return key_config.client if key_config else None


def make_verify_service_authentication(
    api_key_configs: Dict[str, APIKeyConfig], get_settings: Callable[[], Any]
) -> Callable[[Request], str]:
    def verify_service_authentication(request: Request) -> str:
        """Verify the API key from the request and return the service name."""
        api_key = get_api_key_from_request(request)
        if not api_key:
            logger.warning("Missing API key in request headers")
            raise AuthError(message="API key required", status_code=401)
        api_key_mapping = build_api_key_mapping(api_key_configs, get_settings)
        service_name = verify_api_key(api_key, api_key_mapping)
        if not service_name:
            logger.warning(f"Invalid API key: {api_key[:8]}...")
            raise AuthError(
                message="Invalid API key",
                code=ErrorCode.ACCESS_DENIED,
                status_code=403,
            )
        request.state.api_key = api_key
        request.state.service_name = service_name
        request.state.client_name = get_client_from_api_key(api_key, api_key_mapping)
        logger.info(
            f"Service authenticated: {service_name} (client: {request.state.client_name})"
        )
        return service_name

    return verify_service_authentication
