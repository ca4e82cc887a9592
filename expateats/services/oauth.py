# expateats/services/oauth.py

"""
Вход через Google (OAuth 2.0, authorization code).

Провайдер создаётся только если заданы GOOGLE_CLIENT_ID и GOOGLE_CLIENT_SECRET,
иначе google_oauth = None и роуты /auth/google* отвечают 404.
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlencode

import aiohttp
from loguru import logger

from expateats.config import settings

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"


class OAuthError(Exception):
    pass


@dataclass
class GoogleProfile:
    google_id: str
    email: str
    name: Optional[str] = None
    picture: Optional[str] = None


class GoogleOAuthProvider:

    def __init__(self, client_id: str, client_secret: str, callback_url: str):
        self.client_id = client_id
        self.client_secret = client_secret
        self.callback_url = callback_url

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.callback_url,
            "response_type": "code",
            "scope": "openid profile email",
            "state": state,
            "prompt": "select_account",
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def fetch_profile(self, code: str) -> GoogleProfile:
        """Обменять code на токен и получить профиль пользователя"""
        timeout = aiohttp.ClientTimeout(total=10)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(
                    GOOGLE_TOKEN_URL,
                    data={
                        "code": code,
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "redirect_uri": self.callback_url,
                        "grant_type": "authorization_code",
                    },
                ) as response:
                    if response.status != 200:
                        raise OAuthError(f"Token exchange failed with status {response.status}")
                    token = await response.json()

                async with session.get(
                    GOOGLE_USERINFO_URL,
                    headers={"Authorization": f"Bearer {token['access_token']}"},
                ) as response:
                    if response.status != 200:
                        raise OAuthError(f"Userinfo request failed with status {response.status}")
                    info = await response.json()
        except (aiohttp.ClientError, KeyError) as e:
            logger.error("[OAuth] Google request failed: {}", e)
            raise OAuthError(str(e)) from e

        email = info.get("email")
        if not email or not info.get("sub"):
            raise OAuthError("No email provided by Google")

        return GoogleProfile(
            google_id=str(info["sub"]),
            email=email,
            name=info.get("name"),
            picture=info.get("picture"),
        )


def build_google_provider() -> Optional[GoogleOAuthProvider]:
    if not (settings.GOOGLE_CLIENT_ID and settings.GOOGLE_CLIENT_SECRET):
        logger.warning("[OAuth] Google OAuth credentials not configured. Skipping Google login setup.")
        return None
    return GoogleOAuthProvider(
        settings.GOOGLE_CLIENT_ID,
        settings.GOOGLE_CLIENT_SECRET,
        settings.GOOGLE_CALLBACK_URL,
    )


google_oauth = build_google_provider()
