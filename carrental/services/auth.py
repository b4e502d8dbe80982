import requests
from flask import current_app, g, request

import const
from carrental.lib.logger import logger


class CurrentUser:
    """Identity returned by the session provider for the current request."""

    def __init__(self, id, name="", email="", role=const.ROLE_USER, phone=""):
        self.id = str(id)
        self.name = name or ""
        self.email = email or ""
        self.role = role or const.ROLE_USER
        self.phone = phone or ""

    @property
    def is_admin(self):
        return self.role == const.ROLE_ADMIN

    def __repr__(self):
        return f"CurrentUser(id={self.id!r}, role={self.role!r})"


class AuthService:

    @staticmethod
    def fetch_session(cookies, authorization=None):
        """Look the session up at the provider's ``/api/me`` endpoint.

        Returns the decoded payload, or ``None`` when there is no valid
        session or the provider cannot be reached.
        """
        url = f"{current_app.config['AUTH_PROVIDER_URL'].rstrip('/')}/api/me"
        headers = {"Accept": "application/json"}
        if authorization:
            headers["Authorization"] = authorization
        try:
            res = requests.get(
                url,
                cookies=cookies,
                headers=headers,
                timeout=current_app.config["AUTH_TIMEOUT"],
            )
        except requests.RequestException as e:
            logger.error(f"Session provider unreachable: {e}")
            return None

        if res.status_code != 200:
            return None
        try:
            return res.json()
        except ValueError:
            logger.error("Session provider returned a non-JSON body")
            return None

    @staticmethod
    def get_current_identity():
        """Resolve the caller once per request and cache it on ``flask.g``."""
        if "current_user" in g:
            return g.current_user

        payload = AuthService.fetch_session(
            dict(request.cookies), request.headers.get("Authorization")
        )
        user_data = (payload or {}).get("user") if isinstance(payload, dict) else None
        current_user = None
        if user_data and user_data.get("id"):
            current_user = CurrentUser(
                id=user_data["id"],
                name=user_data.get("name"),
                email=user_data.get("email"),
                role=user_data.get("role"),
                phone=user_data.get("phone"),
            )

        g.current_user = current_user
        return current_user
