# auth.py
import hmac
import logging
from typing import MutableMapping

import config

logger = logging.getLogger(__name__)

AUTH_KEY = "authenticated"


def check_credentials(username: str, password: str) -> bool:
    """Compare against the single admin pair from the environment."""
    admin_user, admin_pass = config.admin_credentials()
    user_ok = hmac.compare_digest(username.encode(), admin_user.encode())
    pass_ok = hmac.compare_digest(password.encode(), admin_pass.encode())
    return user_ok and pass_ok


def login(store: MutableMapping, username: str, password: str) -> bool:
    if check_credentials(username, password):
        store[AUTH_KEY] = True
        logger.info("User %s logged in", username)
        return True
    logger.warning("Failed login attempt for %s", username)
    return False


def logout(store: MutableMapping) -> None:
    store[AUTH_KEY] = False


def is_authenticated(store: MutableMapping) -> bool:
    return bool(store.get(AUTH_KEY))
