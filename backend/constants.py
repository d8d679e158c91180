from __future__ import annotations

import logging

LOGGER = logging.getLogger("promptshare.backend")
CLIENT_INFO = "promptshare-ai/1.0.0"

AUTH_PATH = "/auth/v1"
REST_PATH = "/rest/v1"

# Auth state change events emitted by AuthClient.
SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"
USER_UPDATED = "USER_UPDATED"
