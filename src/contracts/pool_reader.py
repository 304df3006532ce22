"""
Bluefin Pool / Position Reader

Чтение on-chain состояния пулов и позиций через Sui JSON-RPC.
Композитор ходит сюда только если вызывающий не передал нужные поля сам.

Любая ошибка (таймаут, не-200, JSON-RPC error, объект не найден,
битый payload) превращается в UpstreamLookupFailedError.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Protocol

import requests

from .bluefin import PoolKey
from .constants import BLUEFIN_MAINNET, BluefinAddresses
from ..errors import InvalidInputError, ObjectNotFoundError, UpstreamLookupFailedError
from ..math.ticks import bits_to_tick, tick_to_price
from ..utils import same_coin_type, split_type_arguments

logger = logging.getLogger(__name__)

DEFAULT_SUI_RPC_URL = "https://fullnode.mainnet.sui.io:443"

# Ошибки sui_getObject, означающие "объекта нет"
NOT_FOUND_CODES = {"notExists", "deleted", "dynamicFieldNotFound"}

MAX_OWNED_PAGES = 20


@dataclass(frozen=True)
class Pool:
    """Снимок пула. Только для чтения."""
    id: str
    coin_type_a: str
    coin_type_b: str
    fee_rate: int
    tick_spacing: int
    current_tick: int
    current_sqrt_price: Optional[str] = None  # Opaque, не интерпретируется
    liquidity: int = 0

    def __post_init__(self):
        if not self.coin_type_a or not self.coin_type_b or same_coin_type(self.coin_type_a, self.coin_type_b):
            raise InvalidInputError(
                f"Pool {self.id} must have two distinct coin types, got {self.coin_type_a!r} / {self.coin_type_b!r}",
                field="coin_types",
            )
        if isinstance(self.tick_spacing, bool) or not isinstance(self.tick_spacing, int) or self.tick_spacing <= 0:
            raise InvalidInputError(
                f"Pool {self.id} tick spacing must be positive, got {self.tick_spacing!r}",
                field="tick_spacing",
            )

    @property
    def current_price(self) -> float:
        return tick_to_price(self.current_tick)

    def key(self) -> PoolKey:
        return PoolKey(pool_id=self.id, coin_type_a=self.coin_type_a, coin_type_b=self.coin_type_b)


@dataclass(frozen=True)
class Position:
    """Снимок позиции. Композитор не хранит его между вызовами."""
    id: str
    pool_id: str
    lower_tick: int
    upper_tick: int
    liquidity: int
    fee_growth_inside_a: Optional[str] = None
    fee_growth_inside_b: Optional[str] = None
    owner: Optional[str] = None

    def __post_init__(self):
        if self.lower_tick >= self.upper_tick:
            raise InvalidInputError(
                f"Position {self.id}: lower_tick {self.lower_tick} must be below upper_tick {self.upper_tick}",
                field="ticks",
            )
        if self.liquidity < 0:
            raise InvalidInputError(f"Position {self.id}: negative liquidity {self.liquidity}", field="liquidity")

    @property
    def lower_price(self) -> float:
        return tick_to_price(self.lower_tick)

    @property
    def upper_price(self) -> float:
        return tick_to_price(self.upper_tick)


class PoolLookup(Protocol):
    """Контракт lookup адаптера, который использует композитор."""

    def get_pool(self, pool_id: str) -> Pool:
        ...

    def get_position_liquidity(self, position_id: str) -> int:
        ...


def _first(fields: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if fields.get(key) is not None:
            return fields[key]
    return None


def _required(fields: Dict[str, Any], *keys: str) -> Any:
    """Обязательное поле: отсутствие - битый объект, а не 0."""
    value = _first(fields, *keys)
    if value is None:
        raise ValueError(f"missing {keys[0]}")
    return value


def _parse_tick(value: Any) -> int:
    """
    Тик из Move объекта.

    I32 приходит как {"type": "...::i32::I32", "fields": {"bits": 4294967236}},
    старые payload'ы - как обычное число.
    """
    if isinstance(value, dict):
        bits = value.get("fields", {}).get("bits", value.get("bits"))
        if bits is None:
            raise ValueError(f"Unexpected tick payload: {value}")
        return bits_to_tick(int(bits))
    return int(value)


def _coin_field_name(fields: Dict[str, Any], key: str) -> Optional[str]:
    value = fields.get(key)
    if isinstance(value, dict):
        return value.get("fields", {}).get("name")
    return None


def _parse_owner(owner: Any) -> Optional[str]:
    if isinstance(owner, dict):
        return owner.get("AddressOwner") or owner.get("ObjectOwner")
    return str(owner) if owner else None


class SuiPoolReader:
    """
    Lookup адаптер поверх Sui JSON-RPC.

    Использование:
        reader = SuiPoolReader("https://fullnode.mainnet.sui.io:443")
        pool = reader.get_pool(pool_id)
        liquidity = reader.get_position_liquidity(position_id)
    """

    def __init__(
        self,
        rpc_url: str = DEFAULT_SUI_RPC_URL,
        timeout: float = 15.0,
        proxy: dict = None,
        addresses: BluefinAddresses = BLUEFIN_MAINNET
    ):
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.addresses = addresses
        self.session = requests.Session()
        self.session.trust_env = False  # Не использовать системные прокси (OS/env)
        self.session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
        })
        if proxy:
            self.session.proxies.update(proxy)
        self._request_id = 0

    def _rpc(self, method: str, params: list, object_id: str = None) -> Any:
        """Один JSON-RPC вызов. Возвращает result или бросает UpstreamLookupFailedError."""
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params}

        try:
            resp = self.session.post(self.rpc_url, json=payload, timeout=self.timeout)
        except requests.exceptions.Timeout:
            raise UpstreamLookupFailedError(f"Timeout calling {method} ({self.timeout}s)", object_id=object_id)
        except requests.exceptions.RequestException as e:
            raise UpstreamLookupFailedError(f"RPC request {method} failed: {e}", object_id=object_id)

        if resp.status_code != 200:
            raise UpstreamLookupFailedError(
                f"RPC {method} returned HTTP {resp.status_code}: {resp.text[:200]}",
                object_id=object_id,
            )

        try:
            body = resp.json()
        except ValueError:
            raise UpstreamLookupFailedError(f"RPC {method} returned invalid JSON", object_id=object_id)

        if body.get("error"):
            error = body["error"]
            message = error.get("message", error) if isinstance(error, dict) else error
            raise UpstreamLookupFailedError(f"RPC {method} error: {message}", object_id=object_id)

        return body.get("result")

    def _get_object(self, object_id: str) -> Dict[str, Any]:
        """sui_getObject с content / type / owner."""
        logger.debug(f"[RPC] sui_getObject {object_id}")
        result = self._rpc(
            "sui_getObject",
            [object_id, {"showContent": True, "showType": True, "showOwner": True}],
            object_id=object_id,
        ) or {}

        error = result.get("error")
        if error:
            code = error.get("code") if isinstance(error, dict) else str(error)
            if code in NOT_FOUND_CODES:
                raise ObjectNotFoundError(f"Object {object_id} not found ({code})", object_id=object_id)
            raise UpstreamLookupFailedError(f"Object {object_id} lookup error: {error}", object_id=object_id)

        data = result.get("data")
        if not data:
            raise ObjectNotFoundError(f"Object {object_id} not found", object_id=object_id)
        return data

    def _parse_pool(self, pool_id: str, data: Dict[str, Any]) -> Pool:
        content = data.get("content") or {}
        fields = content.get("fields") or {}
        object_type = data.get("type") or content.get("type") or ""

        type_args = split_type_arguments(object_type)
        if len(type_args) >= 2:
            coin_type_a, coin_type_b = type_args[0], type_args[1]
        else:
            # Fallback: имена монет в полях пула
            coin_type_a = _coin_field_name(fields, "coin_a")
            coin_type_b = _coin_field_name(fields, "coin_b")
            logger.warning(f"[RPC] Pool {pool_id} type has no type arguments: {object_type!r}, using field names")

        try:
            return Pool(
                id=pool_id,
                coin_type_a=coin_type_a,
                coin_type_b=coin_type_b,
                fee_rate=int(_first(fields, "fee_rate", "fee") or 0),
                tick_spacing=int(_required(fields, "tick_spacing")),
                current_tick=_parse_tick(_required(fields, "current_tick_index", "current_tick")),
                current_sqrt_price=_first(fields, "current_sqrt_price"),
                liquidity=int(_first(fields, "liquidity") or 0),
            )
        except (InvalidInputError, ValueError, TypeError) as e:
            raise UpstreamLookupFailedError(f"Malformed pool object {pool_id}: {e}", object_id=pool_id)

    def _parse_position(self, position_id: str, data: Dict[str, Any]) -> Position:
        fields = (data.get("content") or {}).get("fields") or {}
        try:
            return Position(
                id=position_id,
                pool_id=_first(fields, "pool_id", "pool") or "",
                lower_tick=_parse_tick(_required(fields, "lower_tick")),
                upper_tick=_parse_tick(_required(fields, "upper_tick")),
                liquidity=int(_required(fields, "liquidity")),
                fee_growth_inside_a=_first(fields, "fee_growth_inside_a", "fee_growth_coin_a"),
                fee_growth_inside_b=_first(fields, "fee_growth_inside_b", "fee_growth_coin_b"),
                owner=_parse_owner(fields.get("owner")) or _parse_owner(data.get("owner")),
            )
        except (InvalidInputError, ValueError, TypeError) as e:
            raise UpstreamLookupFailedError(f"Malformed position object {position_id}: {e}", object_id=position_id)

    def get_pool(self, pool_id: str) -> Pool:
        """Снимок пула по ID."""
        data = self._get_object(pool_id)
        pool = self._parse_pool(pool_id, data)
        logger.info(f"[RPC] Pool {pool_id[:12]}...: tick_spacing={pool.tick_spacing} tick={pool.current_tick}")
        return pool

    def get_pool_details(self, pool_id: str) -> Dict[str, Any]:
        """Пул + текущая цена в формате для вывода."""
        pool = self.get_pool(pool_id)
        return {"parsed": asdict(pool), "current_price": pool.current_price}

    def get_position(self, position_id: str) -> Position:
        """Снимок позиции по ID."""
        data = self._get_object(position_id)
        return self._parse_position(position_id, data)

    def get_position_liquidity(self, position_id: str) -> int:
        """Текущая ликвидность позиции."""
        return self.get_position(position_id).liquidity

    def get_positions_by_owner(self, owner: str, page_size: int = 50) -> List[Position]:
        """
        Все позиции Bluefin кошелька.

        suix_getOwnedObjects с фильтром по типу <package>::position::Position,
        с пагинацией по cursor.
        """
        struct_type = f"{self.addresses.package_id}::position::Position"
        query = {
            "filter": {"StructType": struct_type},
            "options": {"showContent": True, "showType": True},
        }

        positions: List[Position] = []
        cursor = None
        for _ in range(MAX_OWNED_PAGES):
            result = self._rpc("suix_getOwnedObjects", [owner, query, cursor, page_size], object_id=owner) or {}
            for item in result.get("data", []):
                data = item.get("data")
                if not data:
                    continue
                positions.append(self._parse_position(data.get("objectId", ""), data))

            cursor = result.get("nextCursor")
            if not result.get("hasNextPage") or not cursor:
                break
        else:
            logger.warning(f"[RPC] Owner {owner} has more than {MAX_OWNED_PAGES} pages of positions, truncated")

        logger.info(f"[RPC] Found {len(positions)} positions for {owner}")
        return positions
