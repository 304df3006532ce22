"""
Liquidity Arithmetic

Целочисленная арифметика для сумм и ликвидности:
- перевод человекочитаемых сумм в on-chain единицы (с учётом decimals)
- доля ликвидности позиции в процентах

Ликвидность и суммы токенов - целые числа протокола. Любой float
в промежуточных расчётах рискует недо- или перефинансировать транзакцию,
поэтому здесь только Decimal и int.
"""

from decimal import Decimal, InvalidOperation, ROUND_FLOOR, localcontext

from ..errors import InvalidInputError

# Высокая точность для финансовых расчётов (хватает для u256)
DECIMAL_PRECISION = 78


def scale_to_chain_units(human_amount: float | int | str | Decimal, decimals: int) -> int:
    """
    Точное преобразование суммы в on-chain единицы.

    floor(human_amount * 10^decimals), без float в умножении и округлении.

    Args:
        human_amount: Сумма в единицах токена (например 1.5 SUI)
        decimals: Количество десятичных знаков монеты (9 для SUI, 6 для USDC)

    Returns:
        Сумма в минимальных единицах (MIST для SUI)

    Example:
        >>> scale_to_chain_units(1.5, 9)
        1500000000
        >>> scale_to_chain_units(0.000000001, 9)
        1
    """
    if isinstance(decimals, bool) or not isinstance(decimals, int) or decimals < 0:
        raise InvalidInputError(f"Decimals must be a non-negative integer, got {decimals!r}", field="decimals")

    if isinstance(human_amount, bool):
        raise InvalidInputError(f"Amount must be a number, got {human_amount!r}", field="amount")

    # Контекст потока не трогаем: точность задаётся локально для этого вызова
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION

        # str() даёт кратчайшее десятичное представление float: 0.1 -> "0.1", не 0.1000000000000000055
        try:
            amount_decimal = Decimal(str(human_amount))
        except InvalidOperation:
            raise InvalidInputError(f"Amount must be a number, got {human_amount!r}", field="amount")

        if not amount_decimal.is_finite():
            raise InvalidInputError(f"Amount must be finite, got {human_amount!r}", field="amount")
        if amount_decimal < 0:
            raise InvalidInputError(f"Amount must be non-negative, got {human_amount}", field="amount")

        result = amount_decimal.scaleb(decimals)
        return int(result.to_integral_value(rounding=ROUND_FLOOR))


def from_chain_units(amount: int, decimals: int) -> Decimal:
    """On-chain единицы -> Decimal сумма для отображения."""
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        return Decimal(int(amount)).scaleb(-decimals).normalize()


def validate_percent(percent: int) -> int:
    """Процент вывода: целое в [1, 100]."""
    if isinstance(percent, bool) or not isinstance(percent, int):
        raise InvalidInputError(f"Percent must be an integer, got {percent!r}", field="percent")
    if percent <= 0 or percent > 100:
        raise InvalidInputError(f"Percentage must be between 1 and 100, got {percent}", field="percent")
    return percent


def proportional_liquidity(current_liquidity: int, percent: int) -> int:
    """
    Доля ликвидности позиции: floor(current_liquidity * percent / 100).

    Только целочисленное деление - точно для любых значений ликвидности
    (в том числе больше 2^53).

    Args:
        current_liquidity: Текущая ликвидность позиции (u128)
        percent: Процент для вывода, целое в [1, 100]

    Returns:
        Ликвидность для удаления
    """
    validate_percent(percent)

    if isinstance(current_liquidity, bool) or not isinstance(current_liquidity, int):
        raise InvalidInputError(
            f"Liquidity must be an integer, got {current_liquidity!r}", field="current_liquidity"
        )
    if current_liquidity < 0:
        raise InvalidInputError(
            f"Liquidity must be non-negative, got {current_liquidity}", field="current_liquidity"
        )

    return current_liquidity * percent // 100
