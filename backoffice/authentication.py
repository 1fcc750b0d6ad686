"""
Token authentication for the back-office API.

Kept apart from the views so that REST framework can import it from
settings without pulling in view modules.
"""
from __future__ import annotations

from rest_framework import authentication


class TokenAuthentication(authentication.TokenAuthentication):
    """DRF token authentication using the ``Token`` keyword.

    Exists to give the settings a stable import path next to the JWT
    authenticator.
    """

    keyword = 'Token'
