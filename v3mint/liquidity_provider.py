"""
Main Liquidity Provider Module

Основной модуль добавления V3 ликвидности с учётом дрейфа цены.
Связывает конфигурацию, чтение пула, расчёт позиции и отправку mint.
"""

import logging
from typing import Optional

from web3 import Web3
from eth_account import Account
from eth_account.signers.local import LocalAccount

# Настройка логгера
logger = logging.getLogger(__name__)
logger.setLevel(logging.DEBUG)

# Создаём handler для консоли если его нет
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setLevel(logging.DEBUG)
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

from .contracts.pool import Web3PoolStateReader
from .contracts.position_manager import PositionManagerSubmitter, check_token_funds
from .executor import (
    DriftAwareExecutor,
    DriftSlippagePolicy,
    ExecutionResult,
    PositionPlan,
    plan_position,
)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Position Manager -> Factory (BSC)
POSITION_MANAGER_TO_FACTORY = {
    # PancakeSwap V3 on BSC
    "0x46A15B0b27311cedF172AB29E4f4766fbE7F4364".lower(): "0x0BFbCF9fa4f9C56B0F40a671Ad40E0805A091865",
    # Uniswap V3 on BSC
    "0x7b8A01B39D58278b5DE7e48c8449c9f4F5170613".lower(): "0xdB1d10011AD0Ff90774D0C6Bb92e5C5c8b4461F7",
}


class LiquidityProvider:
    """
    Добавление ликвидности по LiquidityConfig (см. config.py).

    Usage:
        provider = LiquidityProvider(rpc_url, private_key, position_manager_address=...)
        plan = provider.preview(config)
        result = provider.add_liquidity(config)
    """

    def __init__(
        self,
        rpc_url: str,
        private_key: str = None,
        position_manager_address: str = None,
        factory_address: str = None,
        chain_id: int = 56,
        proxy: dict = None,  # {"http": "socks5://...", "https": "socks5://..."}
        policy: Optional[DriftSlippagePolicy] = None
    ):
        if proxy:
            provider = Web3.HTTPProvider(endpoint_uri=rpc_url, request_kwargs={"proxies": proxy})
        else:
            provider = Web3.HTTPProvider(rpc_url)

        self.w3 = Web3(provider)
        self.chain_id = chain_id
        self.proxy = proxy
        self.policy = policy

        if private_key:
            self.account: LocalAccount = Account.from_key(private_key)
        else:
            self.account = None

        self.position_manager_address = position_manager_address
        if factory_address is None and position_manager_address:
            factory_address = POSITION_MANAGER_TO_FACTORY.get(position_manager_address.lower())

        self.reader = Web3PoolStateReader(self.w3, factory_address=factory_address)

        self.submitter = None
        if self.account and position_manager_address:
            self.submitter = PositionManagerSubmitter(
                self.w3,
                self.account,
                position_manager_address
            )

    @property
    def recipient(self) -> str:
        return self.account.address if self.account else ZERO_ADDRESS

    def resolve_pool(self, config) -> str:
        """
        Адрес пула для пары и fee tier из конфигурации.

        Raises:
            ValueError: пул не существует
        """
        pool = self.reader.get_pool_address(config.pool.token0, config.pool.token1, config.pool.fee)
        if pool is None:
            raise ValueError(
                f"Pool {config.pool.token0_symbol}/{config.pool.token1_symbol} "
                f"fee {config.pool.fee} does not exist"
            )
        logger.info(f"Pool {config.pool.token0_symbol}/{config.pool.token1_symbol}: {pool}")
        return pool

    def preview(self, config, pool_address: str = None) -> PositionPlan:
        """
        Предпросмотр позиции по одному наблюдению пула, без транзакции.

        Args:
            config: LiquidityConfig
            pool_address: Адрес пула (если не задан - через factory)

        Returns:
            PositionPlan с диапазоном и количествами
        """
        pool = pool_address or self.resolve_pool(config)
        target = config.to_target(pool, self.recipient)
        observation = self.reader.get_observation(pool)
        plan = plan_position(observation, target)

        logger.info(
            f"Preview: tick {observation.tick}, range [{plan.tick_lower}, {plan.tick_upper}), "
            f"amount0={plan.amounts.amount0}, amount1={plan.amounts.amount1}, "
            f"liquidity={plan.liquidity}"
        )
        return plan

    def _check_funds(self, plan: PositionPlan, target) -> None:
        for token, amount in (
            (target.token0, plan.amounts.amount0),
            (target.token1, plan.amounts.amount1),
        ):
            check_token_funds(
                self.w3,
                self.account.address,
                self.position_manager_address,
                token,
                amount
            )
        logger.info("Balance and allowance check passed")

    def add_liquidity(self, config, pool_address: str = None) -> ExecutionResult:
        """
        Добавление ликвидности: O1 -> проверка балансов -> O2 -> mint.

        Raises:
            ValueError: нет аккаунта / position manager или пул не найден
            InsufficientBalanceError, InsufficientAllowanceError
            UnavailableError, StaleStateError, RangeError, SubmissionFailure
        """
        if self.submitter is None:
            raise ValueError("private_key and position_manager_address are required to mint")

        pool = pool_address or self.resolve_pool(config)
        target = config.to_target(pool, self.account.address)

        executor = DriftAwareExecutor(
            self.reader,
            self.submitter,
            policy=self.policy,
            preflight=lambda plan: self._check_funds(plan, target)
        )
        result = executor.execute(target)

        logger.info(
            f"Liquidity added: tx {result.tx_hash}, token_id={result.submission.token_id}, "
            f"drift={result.drift}, slippage={result.final_slippage}%"
        )
        return result
