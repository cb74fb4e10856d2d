"""
Tests for DriftAwareExecutor and the drift policy.

Читатель пула и submitter подменены заскриптованными фейками из conftest,
поэтому тесты проверяют сам протокол: O1 -> preflight -> O2 -> mint.
"""

from dataclasses import replace

import pytest

from conftest import POOL, RECIPIENT, TOKEN_A, TOKEN_B, RecordingSubmitter, ScriptedReader
from v3mint.errors import RangeError, StaleStateError, SubmissionFailure, UnavailableError
from v3mint.executor import (
    DEADLINE_SECONDS,
    DriftAwareExecutor,
    DriftSlippagePolicy,
    MintRequest,
    PoolObservation,
    SubmissionResult,
    apply_slippage,
    build_mint_request,
    classify_failure,
    measure_drift,
    plan_position,
)
from v3mint.math.ranges import RelativeTickRange
from v3mint.math.ticks import tick_to_sqrt_price_x96

NOW = 1_700_000_000.0


def observation(tick: int) -> PoolObservation:
    return PoolObservation(
        pool_id=POOL,
        tick=tick,
        sqrt_price_x96=tick_to_sqrt_price_x96(tick),
        timestamp=NOW
    )


class TestDriftSlippagePolicy:

    @pytest.mark.parametrize(
        "drift, expected",
        [(0, 0.0), (1, 0.0), (2, 0.5), (4, 0.5), (5, 1.0), (9, 1.0), (10, 2.0), (500, 2.0)],
    )
    def test_bump_thresholds(self, drift, expected):
        assert DriftSlippagePolicy().bump(drift) == expected

    def test_final_slippage(self):
        assert DriftSlippagePolicy().final_slippage(1.0, 12) == 3.0

    def test_capped_at_ten_percent(self):
        assert DriftSlippagePolicy().final_slippage(9.5, 10) == 10.0

    def test_base_above_cap_is_capped(self):
        assert DriftSlippagePolicy().final_slippage(15.0, 0) == 10.0

    def test_custom_thresholds(self):
        policy = DriftSlippagePolicy(thresholds=((1, 0.25),), max_slippage_percent=5.0)
        assert policy.final_slippage(1.0, 3) == 1.25

    def test_negative_inputs(self):
        with pytest.raises(ValueError):
            DriftSlippagePolicy().final_slippage(-1.0, 0)
        with pytest.raises(ValueError):
            DriftSlippagePolicy().final_slippage(1.0, -1)


class TestApplySlippage:

    def test_one_percent(self):
        assert apply_slippage(1000, 1.0) == 990

    def test_floor(self):
        assert apply_slippage(999, 1.0) == 989  # 989.01

    def test_no_float_error(self):
        """0.29% - классическая ловушка float."""
        assert apply_slippage(10 ** 18, 0.29) == 997_100_000_000_000_000

    def test_zero_amount(self):
        assert apply_slippage(0, 3.0) == 0

    def test_zero_slippage(self):
        assert apply_slippage(12345, 0) == 12345

    def test_out_of_range(self):
        with pytest.raises(ValueError):
            apply_slippage(1000, 101)


class TestPlanning:

    def test_plan_position(self, double_target):
        plan = plan_position(observation(1000), double_target)
        assert (plan.tick_lower, plan.tick_upper) == (800, 1200)
        assert plan.liquidity > 0
        assert plan.amounts.amount0 <= double_target.input_amount

    def test_measure_drift_is_absolute(self):
        assert measure_drift(observation(1000), observation(988)) == 12
        assert measure_drift(observation(988), observation(1000)) == 12

    def test_build_mint_request(self, double_target):
        plan = plan_position(observation(1000), double_target)
        request = build_mint_request(double_target, plan, 1.0, NOW)
        assert request.deadline == int(NOW) + DEADLINE_SECONDS
        assert request.amount0_desired == plan.amounts.amount0
        assert request.amount0_min == apply_slippage(plan.amounts.amount0, 1.0)
        assert request.recipient == RECIPIENT
        assert request.to_tuple()[:5] == (TOKEN_A, TOKEN_B, 500, 800, 1200)
        assert len(request.to_tuple()) == 11


class TestClassifyFailure:

    @pytest.mark.parametrize(
        "reason, kind",
        [
            ("execution reverted: STF", "slippage"),
            ("execution reverted: Price slippage check", "slippage"),
            ("insufficient funds for gas * price + value", "insufficient_funds"),
            ("nonce too low", "other"),
            ("", "other"),
        ],
    )
    def test_classify(self, reason, kind):
        assert classify_failure(reason) == kind


class TestDriftAwareExecutor:

    def make(self, script, submitter=None, preflight=None):
        reader = ScriptedReader(script)
        submitter = submitter or RecordingSubmitter()
        executor = DriftAwareExecutor(reader, submitter, preflight=preflight, clock=lambda: NOW)
        return executor, reader, submitter

    def test_no_drift(self, double_target):
        executor, reader, submitter = self.make([1000, 1000])
        result = executor.execute(double_target)

        assert result.drift == 0
        assert result.final_slippage == 1.0
        assert len(reader.calls) == 2
        assert submitter.requests == [result.mint_request]
        assert result.tx_hash == "0xabc"

    def test_drift_of_twelve_ticks(self, double_target):
        executor, _, submitter = self.make([1000, 988])
        result = executor.execute(double_target)

        assert result.drift == 12
        assert result.tick_change == -12
        assert result.final_slippage == 3.0
        request = submitter.requests[0]
        assert request.amount0_min == apply_slippage(request.amount0_desired, 3.0)
        assert request.amount1_min == apply_slippage(request.amount1_desired, 3.0)

    def test_request_built_from_final_observation(self, double_target):
        executor, _, submitter = self.make([1000, 1057])
        result = executor.execute(double_target)

        expected = plan_position(observation(1057), double_target)
        request = submitter.requests[0]
        assert (request.tick_lower, request.tick_upper) == (850, 1250)
        assert request.amount0_desired == expected.amounts.amount0
        assert request.amount1_desired == expected.amounts.amount1
        assert result.initial_plan.tick_lower == 800

    def test_high_base_slippage_capped(self, double_target):
        target = replace(double_target, base_slippage_percent=9.5)
        executor, _, _ = self.make([1000, 1010])
        assert executor.execute(target).final_slippage == 10.0

    def test_deadline_from_clock(self, double_target):
        executor, _, submitter = self.make([1000, 1000])
        executor.execute(double_target)
        assert submitter.requests[0].deadline == int(NOW) + 1200

    def test_first_observation_unavailable(self, double_target):
        executor, _, submitter = self.make([UnavailableError("rpc down")])
        with pytest.raises(UnavailableError):
            executor.execute(double_target)
        assert submitter.requests == []

    def test_second_observation_unavailable_is_stale(self, double_target):
        executor, _, submitter = self.make([1000, UnavailableError("rpc down")])
        with pytest.raises(StaleStateError):
            executor.execute(double_target)
        assert submitter.requests == []

    def test_submission_failure(self, double_target):
        failed = SubmissionResult(success=False, tx_hash="0xdead", reason="execution reverted: STF")
        executor, _, _ = self.make([1000, 995], submitter=RecordingSubmitter(failed))

        with pytest.raises(SubmissionFailure) as exc_info:
            executor.execute(double_target)

        error = exc_info.value
        assert error.reason == "execution reverted: STF"
        assert error.drift == 5
        assert error.final_slippage == 2.0
        assert error.tx_hash == "0xdead"
        assert isinstance(error.mint_request, MintRequest)
        assert classify_failure(error.reason) == "slippage"

    def test_preflight_runs_between_observations(self, double_target):
        events = []
        reader = ScriptedReader([1000, 1000])
        read = reader.get_observation

        def observe(pool_id):
            events.append("observe")
            return read(pool_id)

        reader.get_observation = observe
        executor = DriftAwareExecutor(
            reader,
            RecordingSubmitter(),
            preflight=lambda plan: events.append(("preflight", plan.observation.tick)),
            clock=lambda: NOW
        )
        executor.execute(double_target)
        assert events == ["observe", ("preflight", 1000), "observe"]

    def test_preflight_error_stops_execution(self, double_target):
        def preflight(plan):
            raise ValueError("not enough USDT")

        executor, reader, submitter = self.make([1000, 1000], preflight=preflight)
        with pytest.raises(ValueError, match="USDT"):
            executor.execute(double_target)
        assert len(reader.calls) == 1
        assert submitter.requests == []

    def test_zero_liquidity_after_drift(self, double_target):
        """Цена ушла выше одностороннего диапазона token0 -> RangeError."""
        target = replace(double_target, range_spec=RelativeTickRange(-300, -100), tick_spacing=1)
        executor, _, submitter = self.make([1000, 1000])
        with pytest.raises(RangeError):
            executor.execute(target)
        assert submitter.requests == []
