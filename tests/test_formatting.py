"""Tests for the grant view model derivations."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from access_grants.exceptions import ValidationError
from access_grants.formatting import (
    addresses_equal,
    derive_grant_view,
    format_amount,
    format_deadline,
    format_time_remaining,
    is_expired,
    to_smallest_unit,
)
from access_grants.types import Grant

from conftest import DAY, ISSUER, NOW, grant_tuple


class TestAmounts:
    def test_whole_and_fractional_amounts(self):
        assert to_smallest_unit(5) == 5 * 10**18
        assert to_smallest_unit("0.5") == 5 * 10**17
        assert to_smallest_unit(Decimal("1.000000000000000001")) == 10**18 + 1
        assert to_smallest_unit(1.5, decimals=6) == 1_500_000

    @pytest.mark.parametrize("amount", ["abc", "", "-1", "NaN", "1e-19"])
    def test_invalid_amounts_rejected(self, amount):
        with pytest.raises(ValidationError) as exc_info:
            to_smallest_unit(amount)
        assert exc_info.value.field == "amount"

    def test_format_amount_rounds_down(self):
        assert format_amount(1_234_567_890_000_000_000) == "1.2345"
        assert format_amount(5 * 10**18, symbol="SONIC") == "5.0000 SONIC"
        assert format_amount(999, decimals=3, precision=2) == "0.99"


class TestDeadlines:
    def test_expiry_boundary(self):
        assert not is_expired(NOW, NOW)
        assert is_expired(NOW, NOW + 1)
        assert not is_expired(NOW + 1, NOW)

    def test_time_remaining(self):
        assert format_time_remaining(NOW + 2 * DAY + 3 * 3600 + 15 * 60, NOW) == "2d 3h 15m"
        assert format_time_remaining(NOW + 3600 + 60, NOW) == "1h 1m"
        assert format_time_remaining(NOW + 59, NOW) == "0m"
        assert format_time_remaining(NOW - 1, NOW) == "Expired"

    def test_fraction_past_deadline_is_expired(self):
        assert is_expired(NOW, NOW + 0.5)
        assert format_time_remaining(NOW, NOW + 0.5) == "Expired"

    def test_deadline_date_uses_timezone(self):
        expected = datetime.fromtimestamp(NOW, tz=timezone.utc).strftime("%x %X")
        assert format_deadline(NOW, timezone.utc) == expected

    def test_unrepresentable_deadline_renders_placeholder(self):
        assert format_deadline(2**256 - 1) == "Invalid date"


def test_addresses_equal_ignores_case():
    assert addresses_equal(ISSUER.upper().replace("0X", "0x"), ISSUER)
    assert not addresses_equal(ISSUER, None)
    assert not addresses_equal("", "")


class TestGrantView:
    def test_derivation_is_idempotent(self):
        grant = Grant.from_raw(grant_tuple())
        first = derive_grant_view(grant, ISSUER, NOW, tz=timezone.utc)
        second = derive_grant_view(grant, ISSUER, NOW, tz=timezone.utc)
        assert first == second

    def test_ownership_requires_connected_address(self):
        grant = Grant.from_raw(grant_tuple())
        assert derive_grant_view(grant, ISSUER.upper().replace("0X", "0x"), NOW).is_owned_by_caller
        assert not derive_grant_view(grant, None, NOW).is_owned_by_caller
        assert not derive_grant_view(grant, "", NOW).is_owned_by_caller

    def test_expired_grant_cannot_be_applied_to(self):
        grant = Grant.from_raw(grant_tuple(deadline=NOW - 10))
        view = derive_grant_view(grant, None, NOW)
        assert view.is_expired
        assert view.is_active
        assert not view.can_apply
        assert view.time_remaining == "Expired"

    def test_inactive_grant_cannot_be_applied_to(self):
        grant = Grant.from_raw(grant_tuple(is_active=False))
        view = derive_grant_view(grant, None, NOW)
        assert not view.is_expired
        assert not view.can_apply

    def test_expiry_recomputed_from_now(self):
        grant = Grant.from_raw(grant_tuple(deadline=NOW + 60))
        assert derive_grant_view(grant, None, NOW).can_apply
        assert not derive_grant_view(grant, None, NOW + 61).can_apply
