"""
Drift-aware mint execution.

Цена может сдвинуться между расчётом параметров и включением транзакции
в блок, и тогда amount0Min/amount1Min, посчитанные по старому состоянию,
ломают mint. Протокол:

1. O1 - первое наблюдение пула, план позиции (только для диагностики)
2. preflight (например проверка балансов) по плану O1
3. O2 - наблюдение непосредственно перед отправкой, полный пересчёт
4. drift = |O2.tick - O1.tick| -> надбавка к slippage (с потолком 10%)
5. MintRequest строится ТОЛЬКО из O2
6. submit

Математика целиком в v3mint.math, здесь только оркестрация.
"""

import logging
import time
from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR, localcontext
from typing import Callable, Optional, Protocol, Tuple

from .errors import RangeError, StaleStateError, SubmissionFailure, UnavailableError
from .math.fixed_point import check_amount
from .math.liquidity import InputToken, LiquidityAmounts, calculate_position_amounts
from .math.ranges import PriceRange, RangeSpec, plan_range
from .math.ticks import check_sqrt_price_x96, check_tick, get_tick_spacing

logger = logging.getLogger(__name__)

DEADLINE_SECONDS = 1200  # 20 минут
MAX_SLIPPAGE_PERCENT = 10.0


# ============================================================
# VALUE TYPES
# ============================================================

@dataclass(frozen=True)
class PoolObservation:
    """Снимок состояния пула. Не изменяется после чтения."""
    pool_id: str
    tick: int
    sqrt_price_x96: int
    timestamp: float


@dataclass(frozen=True)
class MintRequest:
    """Параметры NonfungiblePositionManager.mint."""
    token0: str
    token1: str
    fee: int
    tick_lower: int
    tick_upper: int
    amount0_desired: int
    amount1_desired: int
    amount0_min: int
    amount1_min: int
    recipient: str
    deadline: int

    def to_tuple(self) -> tuple:
        """Конвертация в tuple для контракта (порядок полей MintParams)."""
        return (
            self.token0,
            self.token1,
            self.fee,
            self.tick_lower,
            self.tick_upper,
            self.amount0_desired,
            self.amount1_desired,
            self.amount0_min,
            self.amount1_min,
            self.recipient,
            self.deadline,
        )


@dataclass(frozen=True)
class SubmissionResult:
    """Результат отправки mint. reason - непрозрачная строка от submitter."""
    success: bool
    tx_hash: Optional[str] = None
    reason: Optional[str] = None
    token_id: Optional[int] = None
    liquidity: Optional[int] = None
    amount0: Optional[int] = None
    amount1: Optional[int] = None
    gas_used: Optional[int] = None


@dataclass(frozen=True)
class PositionTarget:
    """
    Что хотим заминтить: пул, диапазон и известное количество одного токена.

    input_amount уже в base units. tick_spacing=None -> по fee tier.
    """
    pool_id: str
    token0: str
    token1: str
    fee: int
    range_spec: RangeSpec
    input_token: InputToken
    input_amount: int
    base_slippage_percent: float
    recipient: str
    tick_spacing: Optional[int] = None

    @property
    def resolved_tick_spacing(self) -> int:
        if self.tick_spacing is not None:
            return self.tick_spacing
        return get_tick_spacing(self.fee)


@dataclass(frozen=True)
class PositionPlan:
    """Диапазон и количества, рассчитанные из одного наблюдения."""
    observation: PoolObservation
    price_range: PriceRange
    amounts: LiquidityAmounts

    @property
    def tick_lower(self) -> int:
        return self.price_range.tick_lower

    @property
    def tick_upper(self) -> int:
        return self.price_range.tick_upper

    @property
    def liquidity(self) -> int:
        return self.amounts.liquidity


@dataclass(frozen=True)
class ExecutionResult:
    """Результат успешного исполнения."""
    initial_plan: PositionPlan
    final_plan: PositionPlan
    drift: int
    final_slippage: float
    mint_request: MintRequest
    submission: SubmissionResult

    @property
    def tx_hash(self) -> Optional[str]:
        return self.submission.tx_hash

    @property
    def tick_change(self) -> int:
        """Знаковое изменение тика O1 -> O2."""
        return self.final_plan.observation.tick - self.initial_plan.observation.tick


# ============================================================
# EXTERNAL INTERFACES
# ============================================================

class ChainStateReader(Protocol):
    def get_observation(self, pool_id: str) -> PoolObservation:
        """Текущие tick и sqrtPriceX96. UnavailableError при сбое связи."""
        ...


class TransactionSubmitter(Protocol):
    def submit(self, request: MintRequest) -> SubmissionResult:
        ...


# ============================================================
# DRIFT POLICY
# ============================================================

@dataclass(frozen=True)
class DriftSlippagePolicy:
    """
    Надбавка к slippage по величине дрейфа тика.

    thresholds: (min_drift, bump_percent) по убыванию min_drift.
    По умолчанию: >=10 -> +2.0, >=5 -> +1.0, >=2 -> +0.5, иначе 0.
    """
    thresholds: Tuple[Tuple[int, float], ...] = ((10, 2.0), (5, 1.0), (2, 0.5))
    max_slippage_percent: float = MAX_SLIPPAGE_PERCENT

    def bump(self, drift: int) -> float:
        for min_drift, bump_percent in self.thresholds:
            if drift >= min_drift:
                return bump_percent
        return 0.0

    def final_slippage(self, base_slippage_percent: float, drift: int) -> float:
        if base_slippage_percent < 0:
            raise ValueError(f"Slippage must be non-negative, got {base_slippage_percent}")
        if drift < 0:
            raise ValueError(f"Drift must be non-negative, got {drift}")
        return min(base_slippage_percent + self.bump(drift), self.max_slippage_percent)


def measure_drift(initial: PoolObservation, final: PoolObservation) -> int:
    return abs(final.tick - initial.tick)


def apply_slippage(amount: int, slippage_percent: float) -> int:
    """
    amountMin = floor(amount * (100 - slippage) / 100), без float.
    """
    check_amount(amount)
    if not 0 <= slippage_percent <= 100:
        raise ValueError(f"Slippage must be within [0, 100], got {slippage_percent}")
    with localcontext() as ctx:
        ctx.prec = 100
        value = Decimal(amount) * (Decimal(100) - Decimal(str(slippage_percent))) / Decimal(100)
        return int(value.to_integral_value(rounding=ROUND_FLOOR))


# ============================================================
# PURE PLANNING
# ============================================================

def plan_position(observation: PoolObservation, target: PositionTarget) -> PositionPlan:
    """RangePlanner + LiquidityCalculator для одного наблюдения."""
    check_tick(observation.tick)
    check_sqrt_price_x96(observation.sqrt_price_x96)

    price_range = plan_range(observation.tick, target.range_spec, target.resolved_tick_spacing)
    amounts = calculate_position_amounts(
        observation.sqrt_price_x96,
        price_range.tick_lower,
        price_range.tick_upper,
        target.input_amount,
        target.input_token,
    )
    return PositionPlan(observation=observation, price_range=price_range, amounts=amounts)


def build_mint_request(
    target: PositionTarget,
    plan: PositionPlan,
    slippage_percent: float,
    now: float
) -> MintRequest:
    """MintRequest из плана; deadline = now + 1200 секунд."""
    return MintRequest(
        token0=target.token0,
        token1=target.token1,
        fee=target.fee,
        tick_lower=plan.tick_lower,
        tick_upper=plan.tick_upper,
        amount0_desired=plan.amounts.amount0,
        amount1_desired=plan.amounts.amount1,
        amount0_min=apply_slippage(plan.amounts.amount0, slippage_percent),
        amount1_min=apply_slippage(plan.amounts.amount1, slippage_percent),
        recipient=target.recipient,
        deadline=int(now) + DEADLINE_SECONDS,
    )


def classify_failure(reason: str) -> str:
    """
    Грубая классификация причины отказа для вызывающего кода.

    Returns:
        "slippage", "insufficient_funds" или "other"
    """
    text = (reason or "").lower()
    if "stf" in text or "slippage" in text or "price slippage check" in text:
        return "slippage"
    if "insufficient" in text:
        return "insufficient_funds"
    return "other"


# ============================================================
# EXECUTOR
# ============================================================

class DriftAwareExecutor:
    """
    Двухфазный протокол observe -> recompute -> submit.

    Пример:
        executor = DriftAwareExecutor(reader, submitter)
        result = executor.execute(target)
        print(result.tx_hash, result.drift, result.final_slippage)

    Повторов внутри нет: при SubmissionFailure вызывающий код запускает
    новый полный цикл, а не повторяет старый запрос.
    """

    def __init__(
        self,
        reader: ChainStateReader,
        submitter: TransactionSubmitter,
        policy: Optional[DriftSlippagePolicy] = None,
        preflight: Optional[Callable[[PositionPlan], None]] = None,
        clock: Callable[[], float] = time.time
    ):
        self.reader = reader
        self.submitter = submitter
        self.policy = policy or DriftSlippagePolicy()
        self.preflight = preflight
        self.clock = clock

    def observe(self, pool_id: str) -> PoolObservation:
        observation = self.reader.get_observation(pool_id)
        logger.info(
            f"Pool {pool_id}: tick={observation.tick}, "
            f"sqrtPriceX96={observation.sqrt_price_x96}"
        )
        return observation

    def execute(self, target: PositionTarget) -> ExecutionResult:
        """
        Исполнение одной попытки mint.

        Raises:
            UnavailableError: первое наблюдение не получено
            StaleStateError: наблюдение перед отправкой не получено
            RangeError: диапазон/количества вне границ или liquidity = 0
            SubmissionFailure: submitter вернул ошибку
        """
        # 1. Первое наблюдение (диагностика)
        initial = self.observe(target.pool_id)
        initial_plan = plan_position(initial, target)
        logger.info(
            f"Initial plan: ticks [{initial_plan.tick_lower}, {initial_plan.tick_upper}), "
            f"amount0={initial_plan.amounts.amount0}, amount1={initial_plan.amounts.amount1}, "
            f"liquidity={initial_plan.liquidity}"
        )

        # 2. Проверки между наблюдениями
        if self.preflight is not None:
            self.preflight(initial_plan)

        # 3. Наблюдение перед отправкой и полный пересчёт
        try:
            final = self.observe(target.pool_id)
        except UnavailableError as e:
            raise StaleStateError(
                f"Could not refresh pool {target.pool_id} before submission: {e}"
            ) from e

        final_plan = plan_position(final, target)
        if final_plan.liquidity == 0:
            raise RangeError(
                f"{target.input_token} amount does not fund range "
                f"[{final_plan.tick_lower}, {final_plan.tick_upper}) at tick {final.tick}"
            )
        logger.info(
            f"Final plan: ticks [{final_plan.tick_lower}, {final_plan.tick_upper}), "
            f"amount0={final_plan.amounts.amount0}, amount1={final_plan.amounts.amount1}, "
            f"liquidity={final_plan.liquidity}"
        )

        # 4. Drift -> slippage
        drift = measure_drift(initial, final)
        final_slippage = self.policy.final_slippage(target.base_slippage_percent, drift)
        logger.info(
            f"Tick drift {initial.tick} -> {final.tick} ({drift}), "
            f"slippage {target.base_slippage_percent}% -> {final_slippage}%"
        )

        # 5. MintRequest только из O2
        request = build_mint_request(target, final_plan, final_slippage, self.clock())

        # 6. Отправка
        submission = self.submitter.submit(request)
        if not submission.success:
            logger.error(f"Mint failed: {submission.reason}")
            raise SubmissionFailure(
                reason=submission.reason or "unknown error",
                drift=drift,
                final_slippage=final_slippage,
                mint_request=request,
                tx_hash=submission.tx_hash,
            )

        logger.info(f"Mint submitted: {submission.tx_hash}")
        return ExecutionResult(
            initial_plan=initial_plan,
            final_plan=final_plan,
            drift=drift,
            final_slippage=final_slippage,
            mint_request=request,
            submission=submission,
        )
