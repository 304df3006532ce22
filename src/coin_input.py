"""
Coin Input Resolver

Решает, откуда взять монету нужной суммы для транзакции:
- сумма 0           -> pure(0) заглушка, объекты не тратятся
- один объект       -> split суммы из него
- несколько         -> merge остальных в первый, затем split
- нет объектов      -> split из gas coin (только нативный SUI)
- иначе             -> MissingFundingError

Резолвер не смотрит на реальные балансы: нехватка средств всплывёт
при исполнении транзакции в сети.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence, Tuple

from .errors import InvalidInputError, MissingFundingError
from .transaction.builder import Argument, TransactionBuilder

logger = logging.getLogger(__name__)


class FundingKind(Enum):
    """Способ финансирования одной стороны депозита."""
    ZERO = "zero"
    SPLIT = "split"
    MERGE_AND_SPLIT = "merge_and_split"
    GAS = "gas"


@dataclass(frozen=True)
class CoinInputSpec:
    """Запрос на финансирование одной стороны."""
    requested_amount: int                               # В on-chain единицах
    candidate_object_ids: Tuple[str, ...] = ()          # Порядок важен: первый - цель merge
    allow_gas_fallback: bool = False                    # True только для нативного SUI

    @classmethod
    def create(
        cls,
        requested_amount: int,
        candidate_object_ids: Optional[Sequence[str]] = None,
        allow_gas_fallback: bool = False
    ) -> 'CoinInputSpec':
        """Фабричный метод: принимает любой Sequence (или None) вместо tuple."""
        return cls(
            requested_amount=requested_amount,
            candidate_object_ids=tuple(candidate_object_ids or ()),
            allow_gas_fallback=allow_gas_fallback,
        )


@dataclass(frozen=True)
class FundingPlan:
    """
    Описание того, как будет получена монета.

    source - объект, из которого делается split (SPLIT / MERGE_AND_SPLIT).
    merge_sources - объекты, вливаемые в source (только MERGE_AND_SPLIT).
    """
    kind: FundingKind
    amount: int
    source: Optional[str] = None
    merge_sources: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def consumes_objects(self) -> bool:
        return self.kind in (FundingKind.SPLIT, FundingKind.MERGE_AND_SPLIT)


def resolve_coin_input(spec: CoinInputSpec, side: str = None) -> FundingPlan:
    """
    Выбор плана финансирования.

    Args:
        spec: Запрошенная сумма и кандидаты
        side: "A"/"B" - только для контекста в ошибке

    Returns:
        FundingPlan

    Raises:
        InvalidInputError: отрицательная или нецелая сумма
        MissingFundingError: ненулевая сумма без объектов и без права на gas
    """
    amount = spec.requested_amount
    field_name = f"coin_{side.lower()}_object_ids" if side else "candidate_object_ids"

    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidInputError(f"Requested amount must be an integer, got {amount!r}", field="requested_amount")
    if amount < 0:
        raise InvalidInputError(f"Requested amount must be non-negative, got {amount}", field="requested_amount")

    if amount == 0:
        return FundingPlan(kind=FundingKind.ZERO, amount=0)

    candidates = list(spec.candidate_object_ids)
    if any(not object_id for object_id in candidates):
        raise InvalidInputError("Coin object IDs must not be empty", field=field_name)
    if len(set(candidates)) != len(candidates):
        raise InvalidInputError(f"Duplicate coin object IDs: {candidates}", field=field_name)

    if len(candidates) == 1:
        return FundingPlan(kind=FundingKind.SPLIT, amount=amount, source=candidates[0])

    if len(candidates) > 1:
        return FundingPlan(
            kind=FundingKind.MERGE_AND_SPLIT,
            amount=amount,
            source=candidates[0],
            merge_sources=tuple(candidates[1:]),
        )

    if spec.allow_gas_fallback:
        return FundingPlan(kind=FundingKind.GAS, amount=amount)

    label = f"Coin {side}" if side else "Coin"
    raise MissingFundingError(
        f"{label} object IDs must be provided for non-zero amount {amount}",
        side=side,
        field=field_name,
    )


def apply_funding_plan(tx: TransactionBuilder, plan: FundingPlan) -> Argument:
    """
    Материализация плана в команды транзакции.

    Returns:
        Argument с монетой нужной суммы (или pure(0) для ZERO)
    """
    if plan.kind == FundingKind.ZERO:
        return tx.pure(0, "u64")

    if plan.kind == FundingKind.GAS:
        return tx.split_coins(tx.gas, [tx.pure(plan.amount, "u64")])[0]

    primary = tx.object(plan.source)
    if plan.kind == FundingKind.MERGE_AND_SPLIT:
        # MergeCoins изменяет primary на месте - split дальше делаем из него же
        tx.merge_coins(primary, [tx.object(object_id) for object_id in plan.merge_sources])

    return tx.split_coins(primary, [tx.pure(plan.amount, "u64")])[0]
