"""
Unit tests for audit log reads.
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from app.core.errors import InsufficientRoleError, InvalidInputError
from app.modules.audit_logs.service import (
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    clamp_take,
    list_audit_logs,
)


class TestClampTake:
    @pytest.mark.parametrize(
        "take,expected",
        [(None, DEFAULT_PAGE_SIZE), (0, 1), (-3, 1), (25, 25), (10_000, MAX_PAGE_SIZE)],
    )
    def test_clamp(self, take, expected):
        assert clamp_take(take) == expected


class TestListAuditLogs:
    """Tests for list_audit_logs."""

    @pytest.mark.asyncio
    async def test_admin_lists_with_clamped_page(self, mock_db, admin):
        with patch("app.modules.audit_logs.service.repository") as mock_repo:
            mock_repo.list_entries = AsyncMock(return_value=([], 0))

            result = await list_audit_logs(
                mock_db, admin, action=" login_failure ", skip=-5, take=5000
            )

        kwargs = mock_repo.list_entries.call_args.kwargs
        assert kwargs["skip"] == 0
        assert kwargs["take"] == MAX_PAGE_SIZE
        assert kwargs["action"] == "LOGIN_FAILURE"
        assert result.total == 0
        assert result.take == MAX_PAGE_SIZE

    @pytest.mark.asyncio
    async def test_non_admin_rejected(self, mock_db, coordinator):
        with pytest.raises(InsufficientRoleError):
            await list_audit_logs(mock_db, coordinator)

    @pytest.mark.asyncio
    async def test_inverted_date_range(self, mock_db, admin):
        now = datetime.now(UTC)

        with pytest.raises(InvalidInputError):
            await list_audit_logs(mock_db, admin, date_from=now, date_to=now - timedelta(days=1))
