"""
Tests for provider status translation.
"""
import pytest

from payment_confirmation.core.status_mapping import (
    ACCEPTED_PAYMENT_CODE_STATUSES,
    PROVIDER_STATUS_MAP,
    ProviderStatus,
    map_provider_status,
    parse_provider_status,
)
from payment_confirmation.database.models import TransactionStatus


class TestStatusMapping:
    """Test suite for the provider status table."""

    @pytest.mark.unit
    def test_every_provider_status_is_mapped(self) -> None:
        """The table covers the whole provider vocabulary."""
        assert set(PROVIDER_STATUS_MAP) == set(ProviderStatus)

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("CREATED", TransactionStatus.PENDING),
            ("SUCCESS", TransactionStatus.COMPLETED),
            ("PAID", TransactionStatus.COMPLETED),
            ("CANCELLED", TransactionStatus.FAILED),
            ("CLOSED", TransactionStatus.FAILED),
            ("EXPIRED", TransactionStatus.EXPIRED),
        ],
    )
    def test_known_statuses(self, raw: str, expected: TransactionStatus) -> None:
        assert map_provider_status(raw) == expected

    @pytest.mark.unit
    def test_parsing_is_case_insensitive(self) -> None:
        assert parse_provider_status(" success ") == ProviderStatus.SUCCESS

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", ["REFUNDED", "", None, 42])
    def test_unknown_statuses_fail_closed(self, raw: object) -> None:
        assert parse_provider_status(raw) is None
        assert map_provider_status(raw) is None

    @pytest.mark.unit
    def test_payment_code_accepts_only_issued_or_paid(self) -> None:
        assert ACCEPTED_PAYMENT_CODE_STATUSES == {
            ProviderStatus.CREATED,
            ProviderStatus.SUCCESS,
            ProviderStatus.PAID,
        }

    @pytest.mark.unit
    def test_terminal_statuses(self) -> None:
        assert TransactionStatus.COMPLETED.is_terminal
        assert TransactionStatus.FAILED.is_terminal
        assert not TransactionStatus.PENDING.is_terminal
        assert not TransactionStatus.EXPIRED.is_terminal
