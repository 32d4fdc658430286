"""Unit tests for the holder-concentration security analyzer."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from discovery_agent.security import HolderConcentrationAnalyzer, build_verdict

WIF = "EKpQGSJtjMFqKZ9KQanSqYXRcF8fBopzLHYxdM65zcjm"


def _accounts(*amounts: int) -> list[dict]:
    return [{"address": f"acct{i}", "amount": str(a)} for i, a in enumerate(amounts)]


class TestBuildVerdict:

    def test_clean_token(self):
        info = {"mintAuthority": None, "freezeAuthority": None}
        verdict = build_verdict(info, _accounts(100, 50, 50), supply=1000, min_score=25)
        assert verdict.passed
        assert verdict.score == 100
        assert verdict.flags == []
        assert verdict.details["top_10_pct"] == 20.0

    def test_authorities_still_set(self):
        info = {"mintAuthority": "dev", "freezeAuthority": "dev"}
        verdict = build_verdict(info, [], supply=None, min_score=25)
        assert verdict.score == 50
        assert len(verdict.flags) == 2

    def test_concentrated_supply_fails(self):
        info = {"mintAuthority": "dev", "freezeAuthority": "dev"}
        verdict = build_verdict(info, _accounts(600, 300), supply=1000, min_score=25)
        # 25 + 25 + 40 + 10
        assert verdict.score == 0
        assert not verdict.passed

    def test_moderate_concentration(self):
        verdict = build_verdict(None, _accounts(300, 200, 150), supply=1000, min_score=25)
        assert verdict.score == 80
        assert verdict.passed

    def test_supply_from_mint_info(self):
        info = {"mintAuthority": None, "freezeAuthority": None, "supply": "1000"}
        verdict = build_verdict(info, _accounts(900), supply=None, min_score=25)
        assert verdict.details["top_1_pct"] == 90.0
        assert verdict.score == 50

    def test_threshold_is_inclusive(self):
        info = {"mintAuthority": "dev", "freezeAuthority": "dev"}
        verdict = build_verdict(info, [], supply=None, min_score=50)
        assert verdict.passed


class TestHolderConcentrationAnalyzer:

    @pytest.mark.asyncio
    async def test_analyze(self):
        rpc = MagicMock()
        rpc.get_mint_info = AsyncMock(return_value={"mintAuthority": None, "freezeAuthority": None})
        rpc.get_token_largest_accounts = AsyncMock(return_value=_accounts(10))
        rpc.get_token_supply = AsyncMock(return_value=1000)

        verdict = await HolderConcentrationAnalyzer(rpc, min_score=25).analyze(WIF)

        assert verdict.passed
        rpc.get_mint_info.assert_awaited_once_with(WIF)

    @pytest.mark.asyncio
    async def test_no_data_gives_no_verdict(self):
        rpc = MagicMock()
        rpc.get_mint_info = AsyncMock(return_value=None)
        rpc.get_token_largest_accounts = AsyncMock(return_value=[])
        rpc.get_token_supply = AsyncMock(return_value=None)

        assert await HolderConcentrationAnalyzer(rpc).analyze(WIF) is None

    @pytest.mark.asyncio
    async def test_timeout_gives_no_verdict(self):
        async def _slow(mint):
            await asyncio.sleep(10)

        rpc = MagicMock()
        rpc.get_mint_info = _slow
        rpc.get_token_largest_accounts = AsyncMock(return_value=[])
        rpc.get_token_supply = AsyncMock(return_value=None)

        assert await HolderConcentrationAnalyzer(rpc, timeout=0.01).analyze(WIF) is None
