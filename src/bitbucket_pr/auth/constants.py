"""Shared authentication constants.

The consumer key and secret identify this application to Bitbucket. They are
not user credentials and can be overridden through settings.
"""

from pathlib import Path

# OAuth consumer
CLIENT_ID = "DQhnLnWwACPXJXW2qX"
CLIENT_SECRET = "uwACseDkGP4hc7JvWHAatZZruHzYpLMH"

# Endpoints
DEFAULT_HOST = "https://bitbucket.org"
OAUTH_BASE_URL = "https://bitbucket.org/site"
AUTHORIZE_PATH = "/oauth2/authorize"
ACCESS_TOKEN_PATH = "/oauth2/access_token"
CLOUD_AUTHORITY = "bitbucket.org"
CLOUD_API_URL = "https://api.bitbucket.org/2.0"
API_PATH_PREFIX = "/2.0"
USER_ENDPOINT = "/user"

# Callback listener
CALLBACK_PORT = 9090
CALLBACK_PATH = "/"

# Static pages served by the callback listener
RESOURCE_DIR = Path(__file__).parent / "resources"
AUTH_SUCCESS_PAGE = "auth_success.html"

# Credentials persisted through HostConfiguration get this username
OAUTH_USERNAME = "oauth"

USER_AGENT = "Bitbucket-PR-CLI/0.1.0"
