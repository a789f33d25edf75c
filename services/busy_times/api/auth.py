from services.busy_times.settings import get_settings
from services.common.api_key_auth import (
    APIKeyConfig,
    make_verify_service_authentication,
)

# API Key configurations
API_KEY_CONFIGS = {
    "frontend": APIKeyConfig(
        client="frontend",
        service="busy-times",
        permissions=["busy_times:read"],
        settings_key="api_frontend_busy_times_key",
    ),
}

verify_api_key_auth = make_verify_service_authentication(API_KEY_CONFIGS, get_settings)
