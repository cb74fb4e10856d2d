from .pool import Web3PoolStateReader
from .position_manager import (
    PositionManagerSubmitter,
    InsufficientBalanceError,
    InsufficientAllowanceError,
    check_token_funds,
)
