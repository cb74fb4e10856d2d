"""
Tests for LiquidityProvider facade.

Web3 провайдер создаётся, но к сети не обращается: reader и submitter
подменяются фейками.
"""

from unittest.mock import MagicMock, patch

import pytest

from config import build_liquidity_config
from conftest import POOL, RecordingSubmitter, ScriptedReader
from v3mint.contracts.position_manager import InsufficientBalanceError
from v3mint.liquidity_provider import LiquidityProvider

RPC_URL = "http://127.0.0.1:8545"
TEST_PRIVATE_KEY = "0x" + "11" * 32
POSITION_MANAGER = "0x46A15B0b27311cedF172AB29E4f4766fbE7F4364"


class FakePoolReader(ScriptedReader):
    def __init__(self, script, pool_address=POOL):
        super().__init__(script)
        self.pool_address = pool_address

    def get_pool_address(self, token0, token1, fee):
        return self.pool_address


@pytest.fixture
def provider():
    provider = LiquidityProvider(
        rpc_url=RPC_URL,
        private_key=TEST_PRIVATE_KEY,
        position_manager_address=POSITION_MANAGER
    )
    provider.submitter = RecordingSubmitter()
    return provider


class TestInit:

    def test_factory_from_position_manager(self, provider):
        assert provider.reader.factory is not None

    def test_without_key_no_submitter(self):
        provider = LiquidityProvider(rpc_url=RPC_URL, position_manager_address=POSITION_MANAGER)
        assert provider.account is None
        assert provider.submitter is None
        assert provider.recipient == "0x0000000000000000000000000000000000000000"

    def test_proxy(self):
        proxy = {"http": "socks5://127.0.0.1:1080", "https": "socks5://127.0.0.1:1080"}
        provider = LiquidityProvider(rpc_url=RPC_URL, proxy=proxy)
        assert provider.proxy == proxy
        assert provider.reader.factory is None


class TestPreview:

    def test_preview_single_observation(self, provider):
        provider.reader = FakePoolReader([1000])
        config = build_liquidity_config("SIMPLE_DOUBLE")

        plan = provider.preview(config)

        assert plan.observation.tick == 1000
        assert (plan.tick_lower, plan.tick_upper) == (950, 1050)
        assert plan.liquidity > 0
        assert provider.reader.calls == [POOL]
        assert provider.submitter.requests == []

    def test_missing_pool(self, provider):
        provider.reader = FakePoolReader([1000], pool_address=None)
        with pytest.raises(ValueError, match="does not exist"):
            provider.preview(build_liquidity_config("SIMPLE_DOUBLE"))


class TestAddLiquidity:

    def test_requires_private_key(self):
        provider = LiquidityProvider(rpc_url=RPC_URL, position_manager_address=POSITION_MANAGER)
        with pytest.raises(ValueError, match="private_key"):
            provider.add_liquidity(build_liquidity_config("SIMPLE_DOUBLE"))

    @patch("v3mint.liquidity_provider.check_token_funds")
    def test_full_cycle(self, mock_check, provider):
        provider.reader = FakePoolReader([1000, 1006])
        config = build_liquidity_config("SIMPLE_DOUBLE")

        result = provider.add_liquidity(config)

        assert result.drift == 6
        assert result.final_slippage == 2.0
        request = provider.submitter.requests[0]
        assert request.recipient == provider.account.address
        assert request.token0 == config.pool.token0
        # Проверка балансов по первому плану, по токену на каждую сторону
        assert mock_check.call_count == 2
        checked_tokens = [c.args[3] for c in mock_check.call_args_list]
        assert checked_tokens == [config.pool.token0, config.pool.token1]

    @patch("v3mint.liquidity_provider.check_token_funds")
    def test_insufficient_balance_stops_before_second_read(self, mock_check, provider):
        mock_check.side_effect = InsufficientBalanceError(
            required=10, available=1, token_address=POOL
        )
        provider.reader = FakePoolReader([1000, 1000])

        with pytest.raises(InsufficientBalanceError):
            provider.add_liquidity(build_liquidity_config("SIMPLE_DOUBLE"))

        assert len(provider.reader.calls) == 1
        assert provider.submitter.requests == []

    def test_explicit_pool_skips_factory(self, provider):
        provider.reader = FakePoolReader([1000, 1000])
        provider.reader.get_pool_address = MagicMock()
        provider._check_funds = MagicMock()

        provider.add_liquidity(build_liquidity_config("SIMPLE_DOUBLE"), pool_address=POOL)

        provider.reader.get_pool_address.assert_not_called()
        provider._check_funds.assert_called_once()
