from __future__ import annotations

import logging

LOGGER = logging.getLogger("promptshare.interceptor")
APP_VERSION = "1.0.0"

DEFAULT_MAX_RETRIES = 1
DEFAULT_LOGIN_ROUTE = "/auth/login"
DEFAULT_REFRESH_LEAD_SECONDS = 300

# Auth sub-interface operations routed through the executor one by one.
WRAPPED_AUTH_METHODS = (
    "get_user",
    "get_session",
    "sign_in_with_password",
    "sign_up",
    "sign_in_with_oauth",
    "sign_out",
    "reset_password_for_email",
    "update_user",
)
