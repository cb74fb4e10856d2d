"""
NonfungiblePositionManager: отправка mint (реализация TransactionSubmitter)
и проверка балансов / allowance перед минтом.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.contract import Contract
from web3.exceptions import ContractLogicError

from .abis import ERC20_ABI, POSITION_MANAGER_ABI
from ..executor import MintRequest, SubmissionResult

logger = logging.getLogger(__name__)

DEFAULT_GAS_LIMIT_MINT = 500000
DEFAULT_GAS_PRICE = Web3.to_wei(5, 'gwei')  # BSC


@dataclass
class InsufficientBalanceError(Exception):
    """Исключение при недостаточном балансе."""
    required: int
    available: int
    token_address: str

    def __str__(self):
        return f"Insufficient balance: required {self.required}, available {self.available} for token {self.token_address}"


@dataclass
class InsufficientAllowanceError(Exception):
    """Исключение при недостаточном allowance."""
    required: int
    allowance: int
    token_address: str
    spender: str

    def __str__(self):
        return (
            f"Insufficient allowance: required {self.required}, approved {self.allowance} "
            f"for token {self.token_address} (spender {self.spender})"
        )


def check_token_funds(
    w3: Web3,
    owner: str,
    spender: str,
    token_address: str,
    amount: int
) -> None:
    """
    Проверка баланса и allowance одного токена.

    Raises:
        InsufficientBalanceError, InsufficientAllowanceError
    """
    if amount == 0:
        return

    token = w3.eth.contract(address=Web3.to_checksum_address(token_address), abi=ERC20_ABI)
    owner = Web3.to_checksum_address(owner)

    balance = token.functions.balanceOf(owner).call()
    logger.debug(f"Token {token_address}: required={amount}, balance={balance}")
    if balance < amount:
        raise InsufficientBalanceError(required=amount, available=balance, token_address=token_address)

    allowance = token.functions.allowance(owner, Web3.to_checksum_address(spender)).call()
    logger.debug(f"Token {token_address}: allowance={allowance}")
    if allowance < amount:
        raise InsufficientAllowanceError(
            required=amount, allowance=allowance, token_address=token_address, spender=spender
        )


class PositionManagerSubmitter:
    """
    Отправка MintRequest в NonfungiblePositionManager.

    - gas limit: estimate_gas + gas_limit_buffer_percent (fallback DEFAULT_GAS_LIMIT_MINT)
    - gas price: текущий + gas_price_bump_percent, чтобы транзакция быстрее попала в блок

    Любая ошибка возвращается как SubmissionResult(success=False, reason=...).
    """

    def __init__(
        self,
        w3: Web3,
        account: LocalAccount,
        position_manager_address: str,
        gas_limit_buffer_percent: int = 50,
        gas_price_bump_percent: int = 50,
        timeout: int = 300
    ):
        self.w3 = w3
        self.account = account
        self.position_manager_address = Web3.to_checksum_address(position_manager_address)
        self.contract: Contract = w3.eth.contract(
            address=self.position_manager_address,
            abi=POSITION_MANAGER_ABI
        )
        self.gas_limit_buffer_percent = gas_limit_buffer_percent
        self.gas_price_bump_percent = gas_price_bump_percent
        self.timeout = timeout

    def _contract_args(self, request: MintRequest) -> tuple:
        params = list(request.to_tuple())
        params[0] = Web3.to_checksum_address(params[0])
        params[1] = Web3.to_checksum_address(params[1])
        params[9] = Web3.to_checksum_address(params[9])
        return tuple(params)

    def _estimate_gas_limit(self, mint_fn) -> int:
        try:
            estimated = mint_fn.estimate_gas({'from': self.account.address})
        except ContractLogicError:
            # Ревёрт при симуляции - отправлять бессмысленно
            raise
        except Exception as e:
            logger.warning(f"Gas estimation failed: {e}, using default {DEFAULT_GAS_LIMIT_MINT}")
            return DEFAULT_GAS_LIMIT_MINT
        gas_limit = estimated * (100 + self.gas_limit_buffer_percent) // 100
        logger.debug(f"Gas estimated: {estimated}, limit: {gas_limit}")
        return gas_limit

    def _gas_price(self) -> int:
        try:
            gas_price = self.w3.eth.gas_price
        except Exception as e:
            logger.warning(f"Failed to get gas price: {e}, using 5 gwei")
            gas_price = DEFAULT_GAS_PRICE
        return gas_price * (100 + self.gas_price_bump_percent) // 100

    def _parse_mint_event(self, receipt) -> Optional[dict]:
        try:
            events = self.contract.events.IncreaseLiquidity().process_receipt(receipt)
        except Exception as e:
            logger.debug(f"Failed to parse IncreaseLiquidity: {e}")
            return None
        if not events:
            return None
        return dict(events[0]['args'])

    def submit(self, request: MintRequest) -> SubmissionResult:
        tx_hash = None
        try:
            mint_fn = self.contract.functions.mint(self._contract_args(request))
            gas_limit = self._estimate_gas_limit(mint_fn)
            gas_price = self._gas_price()

            tx = mint_fn.build_transaction({
                'from': self.account.address,
                'nonce': self.w3.eth.get_transaction_count(self.account.address, 'pending'),
                'gas': gas_limit,
                'gasPrice': gas_price
            })

            signed = self.account.sign_transaction(tx)
            tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction).hex()
            logger.info(f"Mint TX sent: {tx_hash} (gas limit {gas_limit}, gas price {gas_price})")

            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.timeout)
        except Exception as e:
            logger.error(f"Mint submission failed: {e}")
            return SubmissionResult(success=False, tx_hash=tx_hash, reason=str(e))

        if receipt['status'] != 1:
            return SubmissionResult(
                success=False,
                tx_hash=tx_hash,
                reason=f"Transaction reverted: {tx_hash}",
                gas_used=receipt.get('gasUsed')
            )

        event = self._parse_mint_event(receipt) or {}
        return SubmissionResult(
            success=True,
            tx_hash=tx_hash,
            token_id=event.get('tokenId'),
            liquidity=event.get('liquidity'),
            amount0=event.get('amount0'),
            amount1=event.get('amount1'),
            gas_used=receipt.get('gasUsed')
        )
