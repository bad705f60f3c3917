# Copyright (c) 2026 FlowDesk Contributors. All Rights Reserved.
"""Unit tests for the role hierarchy."""

import pytest

from flowdesk.core.roles import Role, level, parse_role, satisfies


class TestRoleLevels:
    def test_total_order(self):
        assert level(Role.OWNER) > level(Role.ADMIN) > level(Role.MEMBER) > level(Role.VIEWER) > 0

    def test_tokens_and_enum_agree(self):
        assert level("ADMIN") == level(Role.ADMIN) == 3

    @pytest.mark.parametrize("token", ["owner", " ADMIN ", "Member", "viewer\n"])
    def test_tokens_match_exactly(self, token):
        assert level(token) == 0

    @pytest.mark.parametrize("token", ["", "SUPERUSER", None, 4, "GUEST"])
    def test_unknown_is_level_zero(self, token):
        assert level(token) == 0


class TestSatisfies:
    @pytest.mark.parametrize("actual", ["OWNER", "ADMIN", "MEMBER"])
    def test_member_requirement(self, actual):
        assert satisfies(actual, "MEMBER")

    def test_viewer_below_member(self):
        assert not satisfies("VIEWER", "MEMBER")

    def test_member_below_admin(self):
        assert not satisfies("MEMBER", "ADMIN")

    def test_same_role_satisfies(self):
        for role in Role:
            assert satisfies(role, role)

    def test_lowercase_stored_role_never_satisfies(self):
        assert not satisfies("owner", "OWNER")
        assert not satisfies(" admin ", Role.VIEWER)

    def test_unknown_actual_never_satisfies(self):
        assert not satisfies("SUPERUSER", "VIEWER")
        assert not satisfies("", None)

    def test_reflexive_and_transitive(self):
        roles = list(Role)
        for a in roles:
            for b in roles:
                for c in roles:
                    if satisfies(a, b) and satisfies(b, c):
                        assert satisfies(a, c)


class TestParseRole:
    def test_known(self):
        assert parse_role("admin") is Role.ADMIN
        assert parse_role(" Owner ") is Role.OWNER
        assert parse_role(Role.VIEWER) is Role.VIEWER

    def test_unknown(self):
        assert parse_role("ROOT") is None
        assert parse_role(None) is None
