"""Tests for the authorization predicate."""

import pytest

from petcare.models.auth import Identity, UserRole
from petcare.services.authorization import is_authorized

from tests.conftest import make_profile

USER = Identity(uid="u1", email="a@b.com")


class TestIsAuthorized:
    """Tests for is_authorized."""

    def test_requires_identity_and_profile(self):
        assert is_authorized(None, None) is False
        assert is_authorized(USER, None) is False
        assert is_authorized(None, make_profile("u1")) is False

    @pytest.mark.parametrize("roles", [None, [], set(), ()])
    def test_no_roles_admits_any_session(self, roles):
        assert is_authorized(USER, make_profile("u1"), roles) is True

    def test_user_is_not_admin(self):
        profile = make_profile("u1", role=UserRole.USER)

        assert is_authorized(USER, profile, ["admin"]) is False
        assert is_authorized(USER, profile, {UserRole.ADMIN}) is False
        assert is_authorized(USER, profile, ["user"]) is True

    def test_admin_matches_any_listed_role(self):
        profile = make_profile("u1", role=UserRole.ADMIN)

        assert is_authorized(USER, profile, [UserRole.USER, UserRole.ADMIN]) is True

    def test_unknown_role_never_matches(self):
        assert is_authorized(USER, make_profile("u1"), ["owner"]) is False

    def test_single_role_argument(self):
        admin = make_profile("u1", role=UserRole.ADMIN)

        assert is_authorized(USER, admin, "admin") is True
        assert is_authorized(USER, admin, UserRole.ADMIN) is True
        assert is_authorized(USER, make_profile("u1"), "admin") is False
