"""
Shared fixtures for all tests.
"""

import pytest
from unittest.mock import Mock, MagicMock

from v3mint.executor import PoolObservation, PositionTarget, SubmissionResult
from v3mint.math.ranges import PercentageRange
from v3mint.math.ticks import tick_to_sqrt_price_x96


class MockWeb3:
    """Переиспользуемый мок Web3 для тестов."""

    def __init__(self, initial_nonce: int = 100):
        self._nonce = initial_nonce
        self.eth = MagicMock()
        self.eth.get_transaction_count = MagicMock(return_value=self._nonce)
        self.eth.gas_price = 5_000_000_000  # 5 gwei
        self.eth.chain_id = 56
        self.eth.block_number = 40_000_000
        self.eth.send_raw_transaction = MagicMock(return_value=b'\x12\x34' * 16)
        self.eth.wait_for_transaction_receipt = MagicMock(return_value={
            'status': 1,
            'gasUsed': 300_000,
            'logs': [],
            'transactionHash': b'\x12\x34' * 16
        })
        self.eth.call = MagicMock(return_value=b'\x00' * 32)
        self.eth.contract = MagicMock()

    def set_nonce(self, nonce: int):
        self._nonce = nonce
        self.eth.get_transaction_count.return_value = nonce


class ScriptedReader:
    """
    ChainStateReader, отдающий заранее заданные тики по очереди.

    Элемент сценария - тик (int) или исключение, которое нужно бросить.
    """

    def __init__(self, script):
        self.script = list(script)
        self.calls = []

    def get_observation(self, pool_id: str) -> PoolObservation:
        self.calls.append(pool_id)
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return PoolObservation(
            pool_id=pool_id,
            tick=item,
            sqrt_price_x96=tick_to_sqrt_price_x96(item),
            timestamp=1_700_000_000.0 + len(self.calls)
        )


class RecordingSubmitter:
    """TransactionSubmitter, запоминающий запросы."""

    def __init__(self, result: SubmissionResult = None):
        self.result = result or SubmissionResult(
            success=True, tx_hash="0xabc", token_id=42, liquidity=1, gas_used=300_000
        )
        self.requests = []

    def submit(self, request):
        self.requests.append(request)
        return self.result


@pytest.fixture
def mock_w3():
    """Мок Web3 instance."""
    return MockWeb3()


@pytest.fixture
def mock_account():
    """Мок LocalAccount."""
    account = Mock()
    account.address = "0x1234567890123456789012345678901234567890"
    account.sign_transaction = Mock(return_value=Mock(raw_transaction=b'signed_tx'))
    return account


@pytest.fixture
def mock_erc20_contract():
    """Мок ERC20 контракта: баланс 1000 токенов, allowance 0."""
    contract = Mock()
    contract.functions = Mock()

    # balanceOf
    contract.functions.balanceOf = Mock(return_value=Mock(
        call=Mock(return_value=1000 * 10**18)
    ))

    # allowance
    contract.functions.allowance = Mock(return_value=Mock(
        call=Mock(return_value=0)
    ))

    return contract


@pytest.fixture
def mock_receipt_success():
    """Успешный receipt транзакции."""
    return {
        'status': 1,
        'gasUsed': 300_000,
        'logs': [],
        'transactionHash': b'\x12\x34' * 16,
        'blockNumber': 40_000_000,
    }


@pytest.fixture
def mock_receipt_fail():
    """Неуспешный receipt транзакции."""
    return {
        'status': 0,
        'gasUsed': 300_000,
        'logs': [],
        'transactionHash': b'\xde\xad' * 16,
        'blockNumber': 40_000_000,
    }


@pytest.fixture
def double_target():
    """±2% вокруг цены, spacing 10, известен token0."""
    return PositionTarget(
        pool_id=POOL,
        token0=TOKEN_A,
        token1=TOKEN_B,
        fee=500,
        range_spec=PercentageRange(-2, 2),
        input_token="token0",
        input_amount=10**18,
        base_slippage_percent=1.0,
        recipient=RECIPIENT,
    )


# Тестовые адреса
TOKEN_A = "0x1111111111111111111111111111111111111111"
TOKEN_B = "0x9999999999999999999999999999999999999999"
POOL = "0x5555555555555555555555555555555555555555"
RECIPIENT = "0x1234567890123456789012345678901234567890"
USDT_BSC = "0x55d398326f99059fF775485246999027B3197955"
WBNB = "0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c"
