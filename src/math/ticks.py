"""
Bluefin CLMM Tick Mathematics

Основные формулы:
- price(i) = 1.0001^i
- i = floor(ln(price) / ln(1.0001))

Валидные тики пула кратны его tick_spacing.
В Move тики хранятся как I32, а в аргументах вызовов передаются
как u32 "bits" (two's complement).
"""

import math

from ..errors import InvalidInputError

# Константы протокола
TICK_BASE = 1.0001
MIN_TICK = -443636
MAX_TICK = 443636

U32_MASK = 0xFFFFFFFF
I32_SIGN_BIT = 0x80000000


def _validate_tick_spacing(tick_spacing: int):
    if isinstance(tick_spacing, bool) or not isinstance(tick_spacing, int) or tick_spacing <= 0:
        raise InvalidInputError(
            f"Tick spacing must be a positive integer, got {tick_spacing!r}",
            field="tick_spacing",
        )


def price_to_tick(price: float, tick_spacing: int = 1) -> int:
    """
    Конвертация цены в тик, выровненный по tick_spacing.

    raw = floor(ln(price) / ln(1.0001))
    tick = floor(raw / tick_spacing) * tick_spacing

    Оба шага округляют к -∞: цена ровно на границе тика даёт этот тик,
    цена между границами всегда округляется вниз.

    Args:
        price: Цена coin B за coin A (pool price)
        tick_spacing: Шаг тиков пула

    Returns:
        Tick (целое число, кратное tick_spacing)

    Raises:
        InvalidInputError: price <= 0, не конечное число, либо тик вне [MIN_TICK, MAX_TICK]

    Example:
        price_to_tick(1.0, 60)   # 0
        price_to_tick(2.04, 60)  # 7080
    """
    _validate_tick_spacing(tick_spacing)

    if isinstance(price, bool) or not isinstance(price, (int, float)):
        raise InvalidInputError(f"Price must be a number, got {price!r}", field="price")
    if not math.isfinite(price) or price <= 0:
        raise InvalidInputError(f"Price must be positive, got {price}", field="price")

    raw_tick = math.floor(math.log(price) / math.log(TICK_BASE))
    tick = align_tick_to_spacing(raw_tick, tick_spacing, round_down=True)

    # Fail fast вместо clamp: проверяется уже выровненный тик
    if tick < MIN_TICK or tick > MAX_TICK:
        raise InvalidInputError(
            f"Price {price} maps to tick {tick}, outside [{MIN_TICK}, {MAX_TICK}]",
            field="price",
        )

    return tick


def tick_to_price(tick: int) -> float:
    """
    Конвертация тика в цену: 1.0001^tick.

    Для экстремальных тиков результат ограничен диапазоном float.
    """
    try:
        return TICK_BASE ** tick
    except OverflowError:
        raise InvalidInputError(f"Tick {tick} overflows float price range", field="tick")


def align_tick_to_spacing(tick: int, tick_spacing: int, round_down: bool = True) -> int:
    """
    Выравнивание тика к tick_spacing.

    Args:
        tick: Исходный тик
        tick_spacing: Шаг тиков
        round_down: True = округление вниз (к -∞), False = вверх (к +∞)

    Returns:
        Выровненный тик
    """
    _validate_tick_spacing(tick_spacing)

    if tick % tick_spacing == 0:
        return tick

    # Floor division works correctly for both positive and negative
    if round_down:
        return (tick // tick_spacing) * tick_spacing
    return ((tick // tick_spacing) + 1) * tick_spacing


def tick_to_bits(tick: int) -> int:
    """I32 тик -> u32 bits для аргумента Move вызова."""
    if tick < -I32_SIGN_BIT or tick > I32_SIGN_BIT - 1:
        raise InvalidInputError(f"Tick {tick} does not fit into i32", field="tick")
    return tick & U32_MASK


def bits_to_tick(bits: int) -> int:
    """u32 bits из on-chain объекта -> I32 тик."""
    bits = int(bits) & U32_MASK
    if bits >= I32_SIGN_BIT:
        bits -= 1 << 32
    return bits


def get_price_range_for_tick_range(tick_lower: int, tick_upper: int) -> tuple[float, float]:
    """(price_lower, price_upper) для диапазона тиков."""
    return tick_to_price(tick_lower), tick_to_price(tick_upper)
