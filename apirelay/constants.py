from __future__ import annotations

import logging

HTTP_METHODS = {
    "get",
    "post",
    "put",
    "patch",
    "delete",
    "options",
    "head",
}

LOGGER = logging.getLogger("apirelay")
APP_VERSION = "0.1.0"

DEFAULT_BASE_URL = "http://localhost:3000/api"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_PENDING = 1000
DEFAULT_TOKEN_STORE_PATH = ".apirelay_token.json"
DEFAULT_COOKIE_JAR_PATH = ".apirelay_cookies.txt"

REFRESH_PATH = "/user/refresh-token"
LOGIN_PATH = "/user/login"
REGISTER_PATH = "/user/register"
LOGOUT_PATH = "/user/logout"

# httpx request extensions read by AuthRefreshTransport.
RETRIED_EXTENSION = "apirelay_retried"
SKIP_REFRESH_EXTENSION = "apirelay_skip_refresh"
