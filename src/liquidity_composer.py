"""
Liquidity Transaction Composer

Основной модуль: превращает намерения пользователя
("внести X и Y в пул P", "вывести N% позиции", "собрать fees и награды")
в упорядоченные вызовы Bluefin в одной programmable transaction.

Каждая операция - отдельный синхронный pipeline без общего состояния:
валидация -> (lookup пула/позиции) -> тики и суммы -> финансирование
-> эмиссия вызовов -> сериализация. Любая ошибка прерывает сборку
до первого вызова, частичных транзакций не бывает.
"""

import functools
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .coin_input import CoinInputSpec, apply_funding_plan, resolve_coin_input
from .contracts.bluefin import BluefinGateway, PoolKey
from .contracts.constants import BLUEFIN_MAINNET, SUI_COIN_TYPE, BluefinAddresses, get_coin_info
from .contracts.pool_reader import Pool, PoolLookup
from .errors import ComposerError, InvalidInputError, InvalidRangeError, UpstreamLookupFailedError
from .math.liquidity import from_chain_units, proportional_liquidity, scale_to_chain_units, validate_percent
from .math.ticks import price_to_tick
from .transaction.builder import MoveCall, TransactionBuilder
from .utils import same_coin_type

logger = logging.getLogger(__name__)

DEFAULT_SLIPPAGE_PCT = 0.5            # Advisory: on-chain минимумы по умолчанию = 0
DEFAULT_LOWER_PRICE_MULTIPLIER = 0.5  # 50% ниже текущей цены
DEFAULT_UPPER_PRICE_MULTIPLIER = 2.0  # 100% выше текущей цены
DEFAULT_DECIMALS_A = 9                # SUI
DEFAULT_DECIMALS_B = 6                # USDC

# Суммы в ответе - строками (u64/u128 не помещаются в JS number)
_STRING_SUMMARY_FIELDS = {
    "coin_a_amount",
    "coin_b_amount",
    "liquidity_to_remove",
    "current_liquidity",
    "min_liquidity",
    "min_amount_a",
    "min_amount_b",
}


@dataclass
class PriceRange:
    """
    Диапазон цен позиции относительно текущей цены.

    current_price и tick_spacing опциональны - если не заданы,
    берутся из снимка пула.
    """
    current_price: Optional[float] = None
    lower_price_multiplier: float = DEFAULT_LOWER_PRICE_MULTIPLIER
    upper_price_multiplier: float = DEFAULT_UPPER_PRICE_MULTIPLIER
    tick_spacing: Optional[int] = None


@dataclass
class DepositRequest:
    """Открыть позицию и внести ликвидность."""
    pool_id: str
    amount_a: float                        # В единицах монеты (1.5 SUI), может быть 0
    amount_b: float
    price_range: Optional[PriceRange] = None
    coin_a_object_ids: Sequence[str] = ()
    coin_b_object_ids: Sequence[str] = ()
    coin_type_a: Optional[str] = None
    coin_type_b: Optional[str] = None
    decimals_a: Optional[int] = None
    decimals_b: Optional[int] = None
    slippage_pct: float = DEFAULT_SLIPPAGE_PCT
    min_liquidity: int = 0
    pool: Optional[Pool] = None            # Снимок пула, если уже есть у вызывающего


@dataclass
class PositionRequest:
    """Операция над существующей позицией."""
    pool_id: str
    position_id: str
    coin_type_a: Optional[str] = None
    coin_type_b: Optional[str] = None
    pool: Optional[Pool] = None


@dataclass
class RemoveLiquidityRequest(PositionRequest):
    """Вывести percent% ликвидности позиции."""
    percent: int = 100
    current_liquidity: Optional[int] = None
    min_amount_a: int = 0
    min_amount_b: int = 0
    slippage_pct: float = DEFAULT_SLIPPAGE_PCT


@dataclass
class RewardsRequest(PositionRequest):
    """Сбор наград. None -> одна награда по умолчанию (BLUE)."""
    reward_coin_types: Optional[Sequence[str]] = None


@dataclass
class ClosePositionRequest(PositionRequest):
    """Закрытие позиции. Первая награда включается в сам close_position."""
    reward_coin_types: Sequence[str] = ()


@dataclass
class ComposedTransaction:
    """Результат сборки: транзакция + сводка для отображения."""
    operation: str
    transaction: TransactionBuilder
    summary: Dict[str, Any] = field(default_factory=dict)

    @property
    def move_calls(self) -> List[MoveCall]:
        return self.transaction.move_calls

    def serialize(self) -> str:
        return self.transaction.serialize()

    def to_response(self) -> dict:
        """Ответ в формате сервиса: {success: True, transaction: <base64>, ...summary}."""
        response = {"success": True, "operation": self.operation, "transaction": self.serialize()}
        for key, value in self.summary.items():
            if key in _STRING_SUMMARY_FIELDS and value is not None:
                value = str(value)
            response[key] = value
        return response


def _composer_operation(name: str):
    """Помечает ошибки именем операции, логирует и пробрасывает дальше."""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            try:
                return func(self, *args, **kwargs)
            except ComposerError as e:
                if e.operation is None:
                    e.operation = name
                logger.error(f"[COMPOSER] {name} failed: {e}")
                raise
        return wrapper
    return decorator


def _with_field(error: ComposerError, field_name: str) -> ComposerError:
    error.field = field_name
    return error


def _validate_non_negative_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidInputError(f"{field_name} must be a non-negative integer, got {value!r}", field=field_name)
    return value


def _validate_slippage(slippage_pct: Any) -> float:
    if isinstance(slippage_pct, bool) or not isinstance(slippage_pct, (int, float)) \
            or not math.isfinite(slippage_pct) or slippage_pct < 0 or slippage_pct >= 100:
        raise InvalidInputError(
            f"Slippage must be in [0, 100), got {slippage_pct!r}", field="slippage_pct"
        )
    return float(slippage_pct)


def _validate_positive(value: Any, field_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value) or value <= 0:
        raise InvalidInputError(f"{field_name} must be a positive number, got {value!r}", field=field_name)
    return float(value)


class LiquidityComposer:
    """
    Сборщик транзакций ликвидности Bluefin.

    Пример использования:
    ```python
    composer = LiquidityComposer(lookup=SuiPoolReader(rpc_url))

    composed = composer.open_position(DepositRequest(
        pool_id="0x...",
        amount_a=10.0,                 # 10 SUI
        amount_b=25.0,                 # 25 USDC
        coin_b_object_ids=["0x..."],
        price_range=PriceRange(lower_price_multiplier=0.8, upper_price_multiplier=1.25),
    ))

    payload = composed.serialize()     # base64 для кошелька
    print(composed.summary["lower_tick"], composed.summary["upper_tick"])
    ```

    Состояние экземпляра - только неизменяемая конфигурация
    (адреса протокола, lookup адаптер), поэтому один composer можно
    безопасно использовать из разных запросов.
    """

    def __init__(
        self,
        lookup: Optional[PoolLookup] = None,
        addresses: BluefinAddresses = BLUEFIN_MAINNET,
        native_coin_type: str = SUI_COIN_TYPE
    ):
        self.lookup = lookup
        self.addresses = addresses
        self.native_coin_type = native_coin_type
        self.gateway = BluefinGateway(addresses)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def _fetch_pool(self, pool_id: str) -> Pool:
        """Пул через lookup адаптер. Любая ошибка -> UpstreamLookupFailedError."""
        if self.lookup is None:
            raise UpstreamLookupFailedError(
                f"Pool {pool_id} fields were not supplied and no pool lookup is configured",
                object_id=pool_id,
                field="pool_id",
            )

        logger.debug(f"[COMPOSER] Looking up pool {pool_id}")
        try:
            pool = self.lookup.get_pool(pool_id)
        except UpstreamLookupFailedError as e:
            raise _with_field(e, "pool_id")
        except Exception as e:
            raise UpstreamLookupFailedError(
                f"Failed to fetch pool {pool_id}: {e}", object_id=pool_id, field="pool_id"
            ) from e

        if pool is None:
            raise UpstreamLookupFailedError(f"Pool {pool_id} not found", object_id=pool_id, field="pool_id")
        return pool

    def _fetch_position_liquidity(self, position_id: str) -> int:
        if self.lookup is None:
            raise UpstreamLookupFailedError(
                f"Liquidity for position {position_id} was not supplied and no lookup is configured",
                object_id=position_id,
                field="position_id",
            )

        logger.debug(f"[COMPOSER] Looking up liquidity of position {position_id}")
        try:
            liquidity = self.lookup.get_position_liquidity(position_id)
        except UpstreamLookupFailedError as e:
            raise _with_field(e, "position_id")
        except Exception as e:
            raise UpstreamLookupFailedError(
                f"Failed to fetch liquidity for position {position_id}: {e}",
                object_id=position_id,
                field="position_id",
            ) from e

        if liquidity is None:
            raise UpstreamLookupFailedError(
                f"Position {position_id} not found", object_id=position_id, field="position_id"
            )
        return liquidity

    def _snapshot(self, pool_id: str, pool: Optional[Pool]) -> Optional[Pool]:
        """Снимок пула от вызывающего должен относиться к тому же пулу."""
        if not pool_id:
            raise InvalidInputError("Pool ID must not be empty", field="pool_id")
        if pool is not None and pool.id != pool_id:
            raise InvalidInputError(
                f"Pool snapshot {pool.id} does not match pool_id {pool_id}", field="pool"
            )
        return pool

    def _resolve_pool_key(self, request: PositionRequest) -> Tuple[PoolKey, Optional[Pool]]:
        """Типы монет пула: из запроса, из снимка или через lookup."""
        pool = self._snapshot(request.pool_id, request.pool)
        if not request.position_id:
            raise InvalidInputError("Position ID must not be empty", field="position_id")

        coin_type_a, coin_type_b = request.coin_type_a, request.coin_type_b
        if coin_type_a and coin_type_b:
            return self._pool_key(request.pool_id, coin_type_a, coin_type_b), pool

        if pool is None:
            pool = self._fetch_pool(request.pool_id)
        if not coin_type_a and not coin_type_b:
            return pool.key(), pool

        return self._pool_key(
            request.pool_id, coin_type_a or pool.coin_type_a, coin_type_b or pool.coin_type_b
        ), pool

    @staticmethod
    def _pool_key(pool_id: str, coin_type_a: str, coin_type_b: str) -> PoolKey:
        if same_coin_type(coin_type_a, coin_type_b):
            raise InvalidInputError(
                f"Coin types must differ, got {coin_type_a} for both sides", field="coin_type_b"
            )
        return PoolKey(pool_id=pool_id, coin_type_a=coin_type_a, coin_type_b=coin_type_b)

    @staticmethod
    def _validate_reward_types(reward_coin_types: Sequence[str]) -> List[str]:
        rewards = list(reward_coin_types)
        for reward in rewards:
            if not isinstance(reward, str) or not reward:
                raise InvalidInputError(
                    f"Reward coin types must be non-empty strings, got {reward!r}", field="reward_coin_types"
                )
        return rewards

    # ------------------------------------------------------------------
    # Open + fund
    # ------------------------------------------------------------------

    @_composer_operation("open_position")
    def open_position(self, request: DepositRequest) -> ComposedTransaction:
        """
        Открыть позицию и внести обе монеты.

        Порядок:
        1. Поля пула (lookup только если не переданы)
        2. lower/upper цены = current * multiplier -> тики по tick_spacing пула
        3. Суммы -> on-chain единицы
        4. Финансирование каждой стороны (gas fallback только для нативного SUI на стороне A)
        5. pool::open_position -> gateway::add_liquidity

        Raises:
            InvalidInputError / InvalidRangeError: некорректные числа или схлопнувшийся диапазон
            MissingFundingError: нет объектов монет для ненулевой суммы
            UpstreamLookupFailedError: пул не удалось получить
        """
        price_range = request.price_range or PriceRange()
        lower_mult = _validate_positive(price_range.lower_price_multiplier, "lower_price_multiplier")
        upper_mult = _validate_positive(price_range.upper_price_multiplier, "upper_price_multiplier")
        if lower_mult >= upper_mult:
            raise InvalidInputError(
                f"lower_price_multiplier {lower_mult} must be below upper_price_multiplier {upper_mult}",
                field="price_range",
            )
        slippage_pct = _validate_slippage(request.slippage_pct)
        min_liquidity = _validate_non_negative_int(request.min_liquidity, "min_liquidity")
        current_price = None
        if price_range.current_price is not None:
            current_price = _validate_positive(price_range.current_price, "current_price")

        # 1. Поля пула
        pool = self._snapshot(request.pool_id, request.pool)
        needs_pool = (
            not request.coin_type_a
            or not request.coin_type_b
            or price_range.tick_spacing is None
            or price_range.current_price is None
        )
        if needs_pool and pool is None:
            pool = self._fetch_pool(request.pool_id)

        if pool is not None and not request.coin_type_a and not request.coin_type_b:
            pool_key = pool.key()
        else:
            pool_key = self._pool_key(
                request.pool_id, request.coin_type_a or pool.coin_type_a, request.coin_type_b or pool.coin_type_b
            )
        coin_type_a, coin_type_b = pool_key.coin_type_a, pool_key.coin_type_b

        if pool is not None:
            tick_spacing = pool.tick_spacing
            if price_range.tick_spacing is not None and price_range.tick_spacing != tick_spacing:
                logger.warning(
                    f"[COMPOSER] price_range.tick_spacing={price_range.tick_spacing} differs from "
                    f"pool tick_spacing={tick_spacing}, using pool value"
                )
        else:
            tick_spacing = price_range.tick_spacing

        if current_price is None:
            current_price = pool.current_price

        # 2. Диапазон
        lower_price = current_price * lower_mult
        upper_price = current_price * upper_mult
        try:
            lower_tick = price_to_tick(lower_price, tick_spacing)
            upper_tick = price_to_tick(upper_price, tick_spacing)
        except InvalidInputError as e:
            if e.field == "price":
                e.field = "price_range"
            raise

        logger.debug(f"[COMPOSER] Price range {lower_price} - {upper_price} -> ticks [{lower_tick}, {upper_tick}]")

        if lower_tick >= upper_tick:
            raise InvalidRangeError(lower_tick, upper_tick)

        # 3. Суммы
        decimals_a = self._decimals(request.decimals_a, coin_type_a, DEFAULT_DECIMALS_A, "decimals_a")
        decimals_b = self._decimals(request.decimals_b, coin_type_b, DEFAULT_DECIMALS_B, "decimals_b")
        try:
            amount_a = scale_to_chain_units(request.amount_a, decimals_a)
        except InvalidInputError as e:
            raise _with_field(e, "amount_a")
        try:
            amount_b = scale_to_chain_units(request.amount_b, decimals_b)
        except InvalidInputError as e:
            raise _with_field(e, "amount_b")

        if amount_a == 0 and amount_b == 0:
            raise InvalidInputError("At least one of amount_a / amount_b must be positive", field="amount_a")

        logger.debug(f"[COMPOSER] On-chain amounts: A={amount_a}, B={amount_b}")

        # 4. Финансирование
        plan_a = resolve_coin_input(
            CoinInputSpec.create(
                amount_a,
                request.coin_a_object_ids,
                allow_gas_fallback=same_coin_type(coin_type_a, self.native_coin_type),
            ),
            side="A",
        )
        plan_b = resolve_coin_input(
            CoinInputSpec.create(amount_b, request.coin_b_object_ids, allow_gas_fallback=False),
            side="B",
        )

        # 5. Вызовы
        tx = TransactionBuilder()
        coin_a = apply_funding_plan(tx, plan_a)
        coin_b = apply_funding_plan(tx, plan_b)
        position = self.gateway.open_position(tx, pool_key, lower_tick, upper_tick)
        self.gateway.add_liquidity(tx, pool_key, position, coin_a, coin_b, min_liquidity)

        logger.info(
            f"[COMPOSER] open_position pool={request.pool_id} ticks=[{lower_tick}, {upper_tick}] "
            f"A={amount_a} ({plan_a.kind.value}) B={amount_b} ({plan_b.kind.value})"
        )

        return ComposedTransaction(
            operation="open_position",
            transaction=tx,
            summary={
                "pool_id": request.pool_id,
                "coin_a_amount": amount_a,
                "coin_b_amount": amount_b,
                "coin_a_amount_display": format(from_chain_units(amount_a, decimals_a), "f"),
                "coin_b_amount_display": format(from_chain_units(amount_b, decimals_b), "f"),
                "lower_tick": lower_tick,
                "upper_tick": upper_tick,
                "lower_price": lower_price,
                "upper_price": upper_price,
                "current_price": current_price,
                "slippage_pct": slippage_pct,
                "min_liquidity": min_liquidity,
                "funding_a": plan_a.kind.value,
                "funding_b": plan_b.kind.value,
                "pool_details": {
                    "coin_type_a": coin_type_a,
                    "coin_type_b": coin_type_b,
                    "decimals_a": decimals_a,
                    "decimals_b": decimals_b,
                    "tick_spacing": tick_spacing,
                },
            },
        )

    @staticmethod
    def _decimals(override: Optional[int], coin_type: str, default: int, field_name: str) -> int:
        """Decimals: явное значение -> реестр известных монет -> default."""
        if override is not None:
            return _validate_non_negative_int(override, field_name)
        info = get_coin_info(coin_type)
        return info.decimals if info else default

    # ------------------------------------------------------------------
    # Remove liquidity
    # ------------------------------------------------------------------

    @_composer_operation("remove_liquidity")
    def remove_liquidity(self, request: RemoveLiquidityRequest) -> ComposedTransaction:
        """
        Вывести percent% ликвидности позиции одним gateway::remove_liquidity.

        Процент проверяется до любых lookup'ов.
        """
        percent = validate_percent(request.percent)
        _validate_slippage(request.slippage_pct)
        min_amount_a = _validate_non_negative_int(request.min_amount_a, "min_amount_a")
        min_amount_b = _validate_non_negative_int(request.min_amount_b, "min_amount_b")

        if request.current_liquidity is not None:
            current_liquidity = request.current_liquidity
        else:
            current_liquidity = self._fetch_position_liquidity(request.position_id)

        try:
            liquidity_to_remove = proportional_liquidity(current_liquidity, percent)
        except InvalidInputError as e:
            raise _with_field(e, "current_liquidity")

        pool_key, _ = self._resolve_pool_key(request)

        if liquidity_to_remove == 0:
            logger.warning(f"[COMPOSER] Position {request.position_id}: {percent}% of {current_liquidity} rounds to 0")

        tx = TransactionBuilder()
        self.gateway.remove_liquidity(
            tx, pool_key, request.position_id, liquidity_to_remove, min_amount_a, min_amount_b
        )

        logger.info(f"[COMPOSER] Removing {liquidity_to_remove} liquidity ({percent}% of {current_liquidity})")

        return ComposedTransaction(
            operation="remove_liquidity",
            transaction=tx,
            summary={
                "pool_id": request.pool_id,
                "position_id": request.position_id,
                "liquidity_to_remove": liquidity_to_remove,
                "percent": percent,
                "current_liquidity": current_liquidity,
                "min_amount_a": min_amount_a,
                "min_amount_b": min_amount_b,
            },
        )

    # ------------------------------------------------------------------
    # Fees / rewards
    # ------------------------------------------------------------------

    def _default_rewards(self, reward_coin_types: Optional[Sequence[str]]) -> List[str]:
        if reward_coin_types is None:
            return [self.addresses.default_reward_coin_type]
        return self._validate_reward_types(reward_coin_types)

    def _emit_collect_rewards(
        self,
        tx: TransactionBuilder,
        pool_key: PoolKey,
        position_id: str,
        reward_coin_types: Sequence[str]
    ):
        for reward_coin_type in reward_coin_types:
            logger.debug(f"[COMPOSER] Adding collect reward call for {reward_coin_type}")
            self.gateway.collect_reward(tx, pool_key, position_id, reward_coin_type)

    @_composer_operation("collect_fees")
    def collect_fees(self, request: PositionRequest) -> ComposedTransaction:
        """Один gateway::collect_fee."""
        pool_key, _ = self._resolve_pool_key(request)

        tx = TransactionBuilder()
        self.gateway.collect_fee(tx, pool_key, request.position_id)

        logger.info(f"[COMPOSER] collect_fees position={request.position_id}")
        return ComposedTransaction(
            operation="collect_fees",
            transaction=tx,
            summary={"pool_id": request.pool_id, "position_id": request.position_id},
        )

    @_composer_operation("collect_rewards")
    def collect_rewards(self, request: RewardsRequest) -> ComposedTransaction:
        """По одному gateway::collect_reward на каждый тип награды, в порядке списка."""
        rewards = self._default_rewards(request.reward_coin_types)
        if not rewards:
            raise InvalidInputError("At least one reward coin type is required", field="reward_coin_types")

        pool_key, _ = self._resolve_pool_key(request)

        tx = TransactionBuilder()
        self._emit_collect_rewards(tx, pool_key, request.position_id, rewards)

        logger.info(f"[COMPOSER] collect_rewards position={request.position_id} rewards={len(rewards)}")
        return ComposedTransaction(
            operation="collect_rewards",
            transaction=tx,
            summary={
                "pool_id": request.pool_id,
                "position_id": request.position_id,
                "reward_coin_types": rewards,
            },
        )

    @_composer_operation("collect_fees_and_rewards")
    def collect_fees_and_rewards(self, request: RewardsRequest) -> ComposedTransaction:
        """collect_fee, затем collect_reward по каждому типу награды."""
        rewards = self._default_rewards(request.reward_coin_types)
        pool_key, _ = self._resolve_pool_key(request)

        tx = TransactionBuilder()
        self.gateway.collect_fee(tx, pool_key, request.position_id)
        self._emit_collect_rewards(tx, pool_key, request.position_id, rewards)

        logger.info(f"[COMPOSER] collect_fees_and_rewards position={request.position_id} rewards={len(rewards)}")
        return ComposedTransaction(
            operation="collect_fees_and_rewards",
            transaction=tx,
            summary={
                "pool_id": request.pool_id,
                "position_id": request.position_id,
                "reward_coin_types": rewards,
            },
        )

    # ------------------------------------------------------------------
    # Close
    # ------------------------------------------------------------------

    @_composer_operation("close_position")
    def close_position(self, request: ClosePositionRequest) -> ComposedTransaction:
        """
        Закрыть позицию.

        close_position протокола принимает максимум один тип награды:
        первая награда уходит в сам close_position, остальные собираются
        отдельными collect_reward после него. Без наград - close_position<A, B>.
        """
        rewards = self._validate_reward_types(request.reward_coin_types or ())
        pool_key, _ = self._resolve_pool_key(request)

        tx = TransactionBuilder()
        if rewards:
            logger.debug(f"[COMPOSER] Closing position with reward type: {rewards[0]}")
            self.gateway.close_position(tx, pool_key, request.position_id, rewards[0])
            self._emit_collect_rewards(tx, pool_key, request.position_id, rewards[1:])
        else:
            self.gateway.close_position(tx, pool_key, request.position_id)

        logger.info(f"[COMPOSER] close_position position={request.position_id} rewards={len(rewards)}")
        return ComposedTransaction(
            operation="close_position",
            transaction=tx,
            summary={
                "pool_id": request.pool_id,
                "position_id": request.position_id,
                "reward_coin_types": rewards,
            },
        )
