"""
Uniswap/PancakeSwap V3 Drift-Aware Liquidity Mint

Добавление ликвидности одним mint:
- Диапазон по пресету (проценты, смещения в тиках или абсолютные тики)
- Точная целочисленная математика V3
- Повторное чтение пула перед отправкой и надбавка к slippage при дрейфе
"""

import os

from dotenv import load_dotenv

from config import (
    BNB_CHAIN,
    DEFAULT_PRESET,
    PRESETS,
    build_liquidity_config,
    get_chain_config,
)
from v3mint.errors import StaleStateError, SubmissionFailure, UnavailableError, V3MintError
from v3mint.executor import (
    PoolObservation,
    classify_failure,
    plan_position,
)
from v3mint.liquidity_provider import LiquidityProvider
from v3mint.contracts.position_manager import InsufficientAllowanceError, InsufficientBalanceError
from v3mint.math.liquidity import from_base_units
from v3mint.math.ticks import tick_to_price, tick_to_sqrt_price_x96

load_dotenv()


def load_settings() -> dict:
    """Настройки из окружения (.env)."""
    chain_id = int(os.getenv("CHAIN_ID", "56"))
    chain = get_chain_config(chain_id)
    base_slippage = os.getenv("BASE_SLIPPAGE")
    return {
        "chain": chain,
        "rpc_url": os.getenv("RPC_URL") or chain.rpc_url,
        "private_key": os.getenv("PRIVATE_KEY"),
        "preset": os.getenv("LIQUIDITY_PRESET", DEFAULT_PRESET),
        "base_slippage": float(base_slippage) if base_slippage else None,
    }


def choose_config(default_preset: str, base_slippage: float = None):
    """Выбор пресета и сборка LiquidityConfig."""
    print("\nПресеты:")
    names = list(PRESETS)
    for i, name in enumerate(names, 1):
        print(f"{i}. {name:<14} {PRESETS[name]['description']}")

    choice = input(f"Выбор (1-{len(names)}) [{default_preset}]: ").strip()
    preset = default_preset
    if choice.isdigit() and 1 <= int(choice) <= len(names):
        preset = names[int(choice) - 1]

    overrides = {}
    if base_slippage is not None:
        overrides["base_slippage_percent"] = base_slippage
    return build_liquidity_config(preset, **overrides)


def print_plan(config, plan) -> None:
    print("\n" + "-" * 70)
    print(f"Pool:        {config.pool.token0_symbol}/{config.pool.token1_symbol} (fee {config.pool.fee})")
    print(f"Mode:        {config.liquidity_mode}"
          + (f" ({config.single_side_token})" if config.single_side_token else ""))
    print(f"Current:     tick {plan.observation.tick}, price {tick_to_price(plan.observation.tick):.8g}")
    print(f"Range:       [{plan.tick_lower}, {plan.tick_upper}) "
          f"price {tick_to_price(plan.tick_lower):.8g} - {tick_to_price(plan.tick_upper):.8g}")
    print(f"Amount0:     {from_base_units(plan.amounts.amount0, config.amounts.token0_decimals)} "
          f"{config.pool.token0_symbol}")
    print(f"Amount1:     {from_base_units(plan.amounts.amount1, config.amounts.token1_decimals)} "
          f"{config.pool.token1_symbol}")
    print(f"Liquidity:   {plan.liquidity}")
    print(f"Slippage:    {config.base_slippage_percent}% (до надбавки за дрейф)")
    print("-" * 70)


def offline_calculator(settings: dict):
    """
    Расчёт позиции без RPC: текущий тик вводится вручную.
    """
    print("\n" + "=" * 70)
    print("OFFLINE POSITION CALCULATOR")
    print("=" * 70)

    config = choose_config(settings["preset"], settings["base_slippage"])

    while True:
        try:
            current_tick = int(input("\nТекущий тик пула: "))
            break
        except ValueError:
            print("Введите целое число")

    target = config.to_target("offline", "0x0000000000000000000000000000000000000000")

    try:
        observation = PoolObservation(
            pool_id="offline",
            tick=current_tick,
            sqrt_price_x96=tick_to_sqrt_price_x96(current_tick),
            timestamp=0.0
        )
        plan = plan_position(observation, target)
    except V3MintError as e:
        print(f"\nОшибка расчёта: {e}")
        return

    print_plan(config, plan)
    if plan.liquidity == 0:
        print("ВНИМАНИЕ: при этом тике указанная сумма не попадает в диапазон (liquidity = 0)")


def preview_onchain(settings: dict):
    """Предпросмотр по текущему состоянию пула."""
    print("\n" + "=" * 70)
    print("ON-CHAIN PREVIEW")
    print("=" * 70)

    config = choose_config(settings["preset"], settings["base_slippage"])
    chain = settings["chain"]
    provider = LiquidityProvider(
        rpc_url=settings["rpc_url"],
        position_manager_address=chain.position_manager,
        factory_address=chain.pool_factory,
        chain_id=chain.chain_id
    )

    try:
        plan = provider.preview(config)
    except (V3MintError, ValueError) as e:
        print(f"\nОшибка: {e}")
        return

    print_plan(config, plan)


def add_liquidity_interactive(settings: dict):
    """Реальное добавление ликвидности."""
    print("\n" + "=" * 70)
    print("ADD LIQUIDITY")
    print("=" * 70)

    private_key = settings["private_key"]
    if not private_key:
        print("\nERROR: PRIVATE_KEY not found in .env file")
        print("Create .env file with: PRIVATE_KEY=0x...")
        return

    config = choose_config(settings["preset"], settings["base_slippage"])
    chain = settings["chain"]
    provider = LiquidityProvider(
        rpc_url=settings["rpc_url"],
        private_key=private_key,
        position_manager_address=chain.position_manager,
        factory_address=chain.pool_factory,
        chain_id=chain.chain_id
    )

    print(f"\nAccount: {provider.account.address}")

    try:
        plan = provider.preview(config)
    except (V3MintError, ValueError) as e:
        print(f"\nОшибка: {e}")
        return
    print_plan(config, plan)

    confirm = input("\nДобавить ликвидность? (yes/no): ")
    if confirm.lower() != "yes":
        print("Отменено")
        return

    try:
        result = provider.add_liquidity(config)
    except (InsufficientBalanceError, InsufficientAllowanceError) as e:
        print(f"\n FAILED: {e}")
        return
    except StaleStateError as e:
        print(f"\n FAILED: pool state went stale before submission: {e}")
        return
    except UnavailableError as e:
        print(f"\n FAILED: pool unavailable: {e}")
        return
    except SubmissionFailure as e:
        print(f"\n FAILED ({classify_failure(e.reason)}): {e}")
        if e.tx_hash:
            print(f"TX: {chain.explorer_url}/tx/{e.tx_hash}")
        if classify_failure(e.reason) == "slippage":
            print("Цена ушла за допустимый slippage. Запустите добавление заново "
                  "или увеличьте BASE_SLIPPAGE.")
        return

    print("\n SUCCESS!")
    print(f"TX: {chain.explorer_url}/tx/{result.tx_hash}")
    print(f"Token ID: {result.submission.token_id}")
    print(f"Liquidity: {result.submission.liquidity}")
    print(f"Tick drift: {result.tick_change:+d}, final slippage: {result.final_slippage}%")
    print(f"Gas used: {result.submission.gas_used}")


def main():
    """Главная функция."""
    settings = load_settings()

    print("""
    PancakeSwap / Uniswap V3 Liquidity Mint
    """)
    print(f"Chain: {settings['chain'].chain_id} ({settings['rpc_url']})")
    if settings["chain"] is not BNB_CHAIN:
        print("ВНИМАНИЕ: не mainnet, адреса токенов в пресетах относятся к BSC mainnet")

    print("\nВыбери действие:")
    print("1. Офлайн калькулятор позиции")
    print("2. Предпросмотр по текущему состоянию пула")
    print("3. Добавить ликвидность (требует PRIVATE_KEY)")
    print("4. Выход")

    choice = input("\nВыбор (1-4): ").strip()

    try:
        if choice == "1":
            offline_calculator(settings)
        elif choice == "2":
            preview_onchain(settings)
        elif choice == "3":
            add_liquidity_interactive(settings)
        elif choice == "4":
            print("Выход")
        else:
            print("Неверный выбор")
    except ValueError as e:
        print(f"\nОшибка конфигурации: {e}")


if __name__ == "__main__":
    main()
