from config.loader import get_config_loader

# Get the config loader instance
config = get_config_loader()

# Identity provider and API gateway endpoints (hardcoded - selectable via aliases)
PRODUCTION_API_URL = "https://api.openshift.com"
STAGING_API_URL = "https://api.stage.openshift.com"
PRODUCTION_AUTH_URL = "https://sso.redhat.com/auth/realms/redhat-external"
PRODUCTION_SECONDARY_AUTH_URL = "https://identity.api.openshift.com/auth/realms/rhoas"
STAGING_SECONDARY_AUTH_URL = "https://identity.api.stage.openshift.com/auth/realms/rhoas"

# OAuth client configuration
DEFAULT_CLIENT_ID = "rhoas-cli-prod"
# Offline tokens are issued to a different client than the interactive flow
DEFAULT_OFFLINE_TOKEN_CLIENT_ID = "cloud-services"
OFFLINE_TOKEN_URL = "https://console.redhat.com/openshift/token"
DEFAULT_SCOPES = ["openid"]

# Local redirect paths, one per realm
SSO_CALLBACK_PATH = "/sso-callback"
SECONDARY_SSO_CALLBACK_PATH = "/secondary-sso-callback"
CALLBACK_BIND_HOST = "127.0.0.1"

# Timeouts (seconds)
# Login timeout: how long to wait for the browser redirect per realm
LOGIN_TIMEOUT = config.get("RHOAS_LOGIN_TIMEOUT", 300.0)
# HTTP timeout: applies to token endpoint and API calls
HTTP_TIMEOUT = config.get("RHOAS_HTTP_TIMEOUT", 30.0)

# Debugging
DEBUG = config.get("RHOAS_DEBUG", False)
DEBUG_LOG_FILE = config.get("RHOAS_DEBUG_LOG_FILE", "rhoas_debug.log")

# Persisted CLI config
CONFIG_ENV_VAR = "RHOAS_CONFIG"
# Follows XDG_CONFIG_HOME like other CLI tools on Linux
DEFAULT_CONFIG_DIR = config.get_path("XDG_CONFIG_HOME", "~/.config") / "rhoas"
DEFAULT_CONFIG_FILENAME = "config.json"
