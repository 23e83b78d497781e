"""
Unit tests for conditional policies.

Tests cover:
- Precondition headers per policy
- Conditional flag
- Validation of refs
"""

import pytest

from kvdb_sdk.conditions import UNCONDITIONAL, MustMatch, MustNotExist, Unconditional
from kvdb_sdk.errors import ErrorKind, ValidationError


class TestPolicies:
    """Tests for Unconditional, MustMatch and MustNotExist."""

    def test_unconditional_has_no_headers(self):
        """Unconditional sends no precondition."""
        assert UNCONDITIONAL.headers() == {}
        assert not UNCONDITIONAL.is_conditional

    def test_must_match_sends_if_match(self):
        """MustMatch quotes the ref in If-Match."""
        policy = MustMatch("0d1f2e3c")

        assert policy.headers() == {"If-Match": '"0d1f2e3c"'}
        assert policy.is_conditional

    def test_must_not_exist_sends_if_none_match(self):
        """MustNotExist sends a wildcard If-None-Match."""
        policy = MustNotExist()

        assert policy.headers() == {"If-None-Match": '"*"'}
        assert policy.is_conditional

    def test_must_match_rejects_empty_ref(self):
        """An empty ref fails before any request is built."""
        with pytest.raises(ValidationError) as exc_info:
            MustMatch("")

        assert exc_info.value.field_name == "ref"
        assert exc_info.value.kind is ErrorKind.VALIDATION

    def test_policies_are_value_objects(self):
        """Policies compare by value and are immutable."""
        assert MustMatch("abc") == MustMatch("abc")
        assert MustMatch("abc") != MustMatch("abd")
        assert Unconditional() == UNCONDITIONAL

        with pytest.raises(AttributeError):
            MustMatch("abc").ref = "other"
