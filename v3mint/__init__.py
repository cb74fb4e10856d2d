"""
v3mint - concentrated-liquidity mint engine for PancakeSwap/Uniswap V3.

Точная целочисленная математика тиков и ликвидности плюс исполнение
mint с учётом дрейфа цены между двумя чтениями состояния пула.
"""

__version__ = "0.5.0"
