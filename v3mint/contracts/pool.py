"""
Чтение состояния V3 пула через Web3 (реализация ChainStateReader).
"""

import logging
import time
from typing import Callable, Optional, Tuple

import requests
from eth_abi import decode
from web3 import Web3
from web3.contract import Contract

from .abis import FACTORY_ABI, POOL_ABI, SLOT0_SELECTOR
from ..errors import UnavailableError
from ..executor import PoolObservation
from ..math.ticks import tick_to_sqrt_price_x96

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class Web3PoolStateReader:
    """
    ChainStateReader поверх slot0() пула.

    Usage:
        reader = Web3PoolStateReader(w3, factory_address=BNB_CHAIN.pool_factory)
        pool = reader.get_pool_address(token0, token1, 500)
        observation = reader.get_observation(pool)
    """

    def __init__(
        self,
        w3: Web3,
        factory_address: str = None,
        clock: Callable[[], float] = time.time
    ):
        self.w3 = w3
        self.clock = clock
        self.factory: Optional[Contract] = None
        if factory_address:
            self.factory = w3.eth.contract(
                address=Web3.to_checksum_address(factory_address),
                abi=FACTORY_ABI
            )

    def get_pool_address(self, token0: str, token1: str, fee: int) -> Optional[str]:
        """
        Адрес пула через factory.getPool.

        Returns:
            Адрес пула или None если пул не существует
        """
        if self.factory is None:
            raise ValueError("factory_address is required to resolve pools")

        try:
            pool_address = self.factory.functions.getPool(
                Web3.to_checksum_address(token0),
                Web3.to_checksum_address(token1),
                fee
            ).call()
        except requests.exceptions.RequestException as e:
            raise UnavailableError(f"RPC connection failed while resolving pool: {e}") from e

        if pool_address == ZERO_ADDRESS:
            return None
        return pool_address

    def _read_slot0(self, address: str) -> Tuple[int, int]:
        pool = self.w3.eth.contract(address=address, abi=POOL_ABI)
        try:
            slot0 = pool.functions.slot0().call()
            return slot0[0], slot0[1]
        except requests.exceptions.RequestException as e:
            raise UnavailableError(f"RPC connection failed for pool {address}: {e}") from e
        except Exception as e:
            # PancakeSwap V3 slot0 возвращает 8 полей (feeProtocol: uint32),
            # ABI с 7 полями не декодируется. Читаем первые два слова напрямую.
            logger.debug(f"slot0 ABI decode failed, trying raw eth_call: {e}")

        try:
            raw = self.w3.eth.call({'to': address, 'data': SLOT0_SELECTOR})
        except Exception as e:
            raise UnavailableError(f"Failed to read slot0 for pool {address}: {e}") from e

        if len(raw) < 64:
            raise UnavailableError(f"Unexpected slot0 response for pool {address}: {len(raw)} bytes")

        sqrt_price_x96, tick = decode(['uint160', 'int24'], bytes(raw[:64]))
        logger.info(f"slot0 raw decode OK: sqrtPriceX96={sqrt_price_x96}, tick={tick}")
        return sqrt_price_x96, tick

    def get_observation(self, pool_id: str) -> PoolObservation:
        """
        Снимок tick / sqrtPriceX96 пула.

        Raises:
            UnavailableError: RPC недоступен, slot0 не читается или пул не инициализирован
        """
        address = Web3.to_checksum_address(pool_id)
        sqrt_price_x96, tick = self._read_slot0(address)

        if sqrt_price_x96 == 0:
            raise UnavailableError(f"Pool {address} is not initialized")

        # Сверка: sqrtPrice пула лежит в [sqrt(tick), sqrt(tick + 1))
        logger.debug(
            f"Pool {address}: on-chain sqrtPriceX96 - sqrt(tick) = "
            f"{sqrt_price_x96 - tick_to_sqrt_price_x96(tick)}"
        )

        return PoolObservation(
            pool_id=address,
            tick=tick,
            sqrt_price_x96=sqrt_price_x96,
            timestamp=self.clock()
        )
