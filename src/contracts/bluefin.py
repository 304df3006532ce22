"""
Bluefin CLMM Call Targets

Типизированные Move вызовы протокола Bluefin:
- pool::open_position
- gateway::add_liquidity
- gateway::remove_liquidity
- gateway::collect_fee
- gateway::collect_reward
- gateway::close_position

Каждый вызов получает GlobalConfig и пул как shared объекты,
type arguments всегда начинаются с <CoinA, CoinB>.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from .constants import BLUEFIN_MAINNET, BluefinAddresses
from ..math.ticks import tick_to_bits
from ..transaction.builder import Argument, TransactionBuilder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PoolKey:
    """Пул и его пара монет - всё, что нужно для type arguments."""
    pool_id: str
    coin_type_a: str
    coin_type_b: str

    def type_arguments(self, *extra: str) -> List[str]:
        return [self.coin_type_a, self.coin_type_b, *extra]


class BluefinGateway:
    """
    Эмиттер вызовов Bluefin в TransactionBuilder.

    Методы ничего не вычисляют - только подключают объекты и pure-аргументы
    в правильном порядке и с правильными type arguments.
    """

    def __init__(self, addresses: BluefinAddresses = BLUEFIN_MAINNET):
        self.addresses = addresses

    def _target(self, module: str, function: str) -> str:
        return f"{self.addresses.package_id}::{module}::{function}"

    def _base_args(self, tx: TransactionBuilder, pool: PoolKey) -> List[Argument]:
        return [tx.object(self.addresses.global_config_id), tx.object(pool.pool_id)]

    def open_position(
        self,
        tx: TransactionBuilder,
        pool: PoolKey,
        lower_tick: int,
        upper_tick: int
    ) -> Argument:
        """
        pool::open_position. Тики передаются как u32 bits.

        Returns:
            Хэндл новой позиции (Result) для add_liquidity
        """
        logger.debug(f"[BLUEFIN] open_position pool={pool.pool_id} ticks=[{lower_tick}, {upper_tick}]")
        return tx.move_call(
            self._target("pool", "open_position"),
            [
                *self._base_args(tx, pool),
                tx.pure(tick_to_bits(lower_tick), "u32"),
                tx.pure(tick_to_bits(upper_tick), "u32"),
            ],
            pool.type_arguments(),
        )

    def add_liquidity(
        self,
        tx: TransactionBuilder,
        pool: PoolKey,
        position: Argument,
        coin_a: Argument,
        coin_b: Argument,
        min_liquidity: int = 0
    ) -> Argument:
        """gateway::add_liquidity в позицию (хэндл из open_position или объект)."""
        return tx.move_call(
            self._target("gateway", "add_liquidity"),
            [
                *self._base_args(tx, pool),
                position,
                coin_a,
                coin_b,
                tx.pure(min_liquidity, "u128"),
            ],
            pool.type_arguments(),
        )

    def remove_liquidity(
        self,
        tx: TransactionBuilder,
        pool: PoolKey,
        position_id: str,
        liquidity: int,
        min_amount_a: int = 0,
        min_amount_b: int = 0
    ) -> Argument:
        """gateway::remove_liquidity."""
        return tx.move_call(
            self._target("gateway", "remove_liquidity"),
            [
                *self._base_args(tx, pool),
                tx.object(position_id),
                tx.pure(liquidity, "u128"),
                tx.pure(min_amount_a, "u64"),
                tx.pure(min_amount_b, "u64"),
            ],
            pool.type_arguments(),
        )

    def collect_fee(self, tx: TransactionBuilder, pool: PoolKey, position_id: str) -> Argument:
        """gateway::collect_fee."""
        return tx.move_call(
            self._target("gateway", "collect_fee"),
            [*self._base_args(tx, pool), tx.object(position_id)],
            pool.type_arguments(),
        )

    def collect_reward(
        self,
        tx: TransactionBuilder,
        pool: PoolKey,
        position_id: str,
        reward_coin_type: str
    ) -> Argument:
        """gateway::collect_reward для одного типа награды. Clock нужен для начисления."""
        return tx.move_call(
            self._target("gateway", "collect_reward"),
            [
                *self._base_args(tx, pool),
                tx.object(position_id),
                tx.object(self.addresses.clock_id),
            ],
            pool.type_arguments(reward_coin_type),
        )

    def close_position(
        self,
        tx: TransactionBuilder,
        pool: PoolKey,
        position_id: str,
        reward_coin_type: Optional[str] = None
    ) -> Argument:
        """
        gateway::close_position.

        Протокольный вызов несёт не больше одного типа награды:
        <CoinA, CoinB, Reward> или <CoinA, CoinB> без наград.
        """
        extra = (reward_coin_type,) if reward_coin_type else ()
        return tx.move_call(
            self._target("gateway", "close_position"),
            [
                *self._base_args(tx, pool),
                tx.object(position_id),
                tx.object(self.addresses.clock_id),
            ],
            pool.type_arguments(*extra),
        )


def is_bluefin_pool(pool_address: str, dex: Optional[str]) -> bool:
    """Принадлежит ли пул Bluefin (по имени DEX из агрегатора)."""
    return (dex or "").lower() == "bluefin"
