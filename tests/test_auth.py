import pytest

import auth
from errors import ConfigurationError


@pytest.fixture
def admin(clean_env):
    clean_env.setenv("ADMIN_USERNAME", "admin")
    clean_env.setenv("ADMIN_PASSWORD", "s3cret")


def test_login_sets_flag(admin):
    store = {}
    assert auth.login(store, "admin", "s3cret") is True
    assert auth.is_authenticated(store)


def test_wrong_password_keeps_user_out(admin):
    store = {}
    assert auth.login(store, "admin", "wrong") is False
    assert not auth.is_authenticated(store)


def test_logout_clears_flag(admin):
    store = {}
    auth.login(store, "admin", "s3cret")
    auth.logout(store)
    assert not auth.is_authenticated(store)


def test_unconfigured_credentials_are_an_error(clean_env):
    with pytest.raises(ConfigurationError):
        auth.check_credentials("admin", "")
