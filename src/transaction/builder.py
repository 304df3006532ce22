"""
Programmable Transaction Builder

Модель Sui programmable transaction block: упорядоченный список входов
(объекты и pure-значения) и команд (MoveCall, SplitCoins, MergeCoins).
Команды ссылаются на входы и результаты предыдущих команд через Argument.

Билдер ничего не подписывает и не исполняет - только собирает
и сериализует описание транзакции для кошелька.
"""

import base64
import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Union

from ..errors import InvalidInputError
from ..utils import normalize_sui_address

logger = logging.getLogger(__name__)

SERIALIZATION_VERSION = 1

# Размеры беззнаковых pure типов в байтах (BCS little-endian)
PURE_INT_SIZES = {
    "u8": 1,
    "u16": 2,
    "u32": 4,
    "u64": 8,
    "u128": 16,
    "u256": 32,
}


@dataclass(frozen=True)
class Argument:
    """Ссылка на вход, gas coin или результат команды."""
    kind: str                   # Input | GasCoin | Result | NestedResult
    index: int = 0              # индекс входа или команды
    result_index: int = 0       # только для NestedResult

    def to_dict(self) -> dict:
        if self.kind == "GasCoin":
            return {"kind": "GasCoin"}
        if self.kind == "NestedResult":
            return {"kind": "NestedResult", "index": self.index, "resultIndex": self.result_index}
        return {"kind": self.kind, "index": self.index}


GAS_COIN = Argument("GasCoin")


@dataclass
class ObjectInput:
    """Объект сети (owned, shared или immutable) по ID."""
    object_id: str

    def to_dict(self) -> dict:
        return {"kind": "Object", "objectId": self.object_id}


@dataclass
class PureInput:
    """Скалярное значение, закодированное в BCS."""
    type_tag: str
    value: Union[int, bool]

    def to_bytes(self) -> bytes:
        if self.type_tag == "bool":
            return b"\x01" if self.value else b"\x00"

        size = PURE_INT_SIZES[self.type_tag]
        value = int(self.value)
        if value < 0 or value >= 1 << (8 * size):
            raise InvalidInputError(f"Value {value} does not fit into {self.type_tag}", field="pure")
        return value.to_bytes(size, "little")

    def to_dict(self) -> dict:
        return {
            "kind": "Pure",
            "type": self.type_tag,
            # Строкой: u128 не влезает в JSON number без потери точности
            "value": str(self.value).lower() if isinstance(self.value, bool) else str(self.value),
            "bytes": base64.b64encode(self.to_bytes()).decode("ascii"),
        }


@dataclass
class MoveCall:
    """Вызов Move функции: package::module::function<type_args>(args)."""
    target: str
    type_arguments: List[str] = field(default_factory=list)
    arguments: List[Argument] = field(default_factory=list)

    @property
    def function(self) -> str:
        """module::function без адреса пакета."""
        return self.target.split("::", 1)[-1]

    def to_dict(self) -> dict:
        return {
            "kind": "MoveCall",
            "target": self.target,
            "typeArguments": list(self.type_arguments),
            "arguments": [a.to_dict() for a in self.arguments],
        }


@dataclass
class SplitCoins:
    coin: Argument
    amounts: List[Argument]

    def to_dict(self) -> dict:
        return {
            "kind": "SplitCoins",
            "coin": self.coin.to_dict(),
            "amounts": [a.to_dict() for a in self.amounts],
        }


@dataclass
class MergeCoins:
    destination: Argument
    sources: List[Argument]

    def to_dict(self) -> dict:
        return {
            "kind": "MergeCoins",
            "destination": self.destination.to_dict(),
            "sources": [s.to_dict() for s in self.sources],
        }


Command = Union[MoveCall, SplitCoins, MergeCoins]


class TransactionBuilder:
    """
    Сборщик одной programmable transaction.

    Использование:
    ```python
    tx = TransactionBuilder()
    coin = tx.split_coins(tx.gas, [tx.pure(1_000_000_000)])[0]
    tx.move_call(f"{package}::gateway::add_liquidity", [tx.object(pool_id), coin], [coin_a, coin_b])
    payload = tx.serialize()
    ```

    Один и тот же объект (pool, global config, clock) регистрируется как вход
    один раз - повторные tx.object(id) возвращают тот же Argument.
    """

    def __init__(self):
        self.inputs: List[Union[ObjectInput, PureInput]] = []
        self.commands: List[Command] = []
        self._object_inputs: Dict[str, Argument] = {}

    @property
    def gas(self) -> Argument:
        """Gas coin отправителя."""
        return GAS_COIN

    def object(self, object_id: str) -> Argument:
        """Регистрация объекта как входа (с дедупликацией по нормализованному ID)."""
        if not object_id:
            raise InvalidInputError("Object ID must not be empty", field="object_id")

        key = normalize_sui_address(object_id)
        existing = self._object_inputs.get(key)
        if existing is not None:
            return existing

        self.inputs.append(ObjectInput(object_id=key))
        arg = Argument("Input", len(self.inputs) - 1)
        self._object_inputs[key] = arg
        return arg

    def pure(self, value: Union[int, bool], type_tag: str = "u64") -> Argument:
        """Регистрация pure-значения как входа."""
        if type_tag != "bool" and type_tag not in PURE_INT_SIZES:
            raise InvalidInputError(f"Unsupported pure type: {type_tag}", field="pure")

        pure_input = PureInput(type_tag=type_tag, value=value)
        # Проверка диапазона сразу, а не при сериализации
        pure_input.to_bytes()

        self.inputs.append(pure_input)
        return Argument("Input", len(self.inputs) - 1)

    def _add_command(self, command: Command) -> int:
        self.commands.append(command)
        return len(self.commands) - 1

    def split_coins(self, coin: Argument, amounts: Sequence[Argument]) -> List[Argument]:
        """
        SplitCoins: отделить монеты заданных сумм от coin.

        Returns:
            По одному NestedResult на каждую сумму
        """
        if not amounts:
            raise InvalidInputError("SplitCoins requires at least one amount", field="amounts")
        index = self._add_command(SplitCoins(coin=coin, amounts=list(amounts)))
        return [Argument("NestedResult", index, i) for i in range(len(amounts))]

    def merge_coins(self, destination: Argument, sources: Sequence[Argument]):
        """MergeCoins: влить sources в destination (destination изменяется на месте)."""
        if not sources:
            raise InvalidInputError("MergeCoins requires at least one source", field="sources")
        self._add_command(MergeCoins(destination=destination, sources=list(sources)))

    def move_call(
        self,
        target: str,
        arguments: Sequence[Argument] = (),
        type_arguments: Sequence[str] = ()
    ) -> Argument:
        """MoveCall. Возвращает Result этой команды (например, хэндл новой позиции)."""
        index = self._add_command(MoveCall(
            target=target,
            type_arguments=list(type_arguments),
            arguments=list(arguments),
        ))
        return Argument("Result", index)

    @property
    def move_calls(self) -> List[MoveCall]:
        """Только MoveCall команды, в порядке добавления."""
        return [c for c in self.commands if isinstance(c, MoveCall)]

    def to_dict(self) -> dict:
        return {
            "version": SERIALIZATION_VERSION,
            "inputs": [i.to_dict() for i in self.inputs],
            "commands": [c.to_dict() for c in self.commands],
        }

    def serialize(self) -> str:
        """Канонический JSON (sorted keys) -> base64."""
        raw = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        payload = base64.b64encode(raw.encode("utf-8")).decode("ascii")
        logger.debug(f"[PTB] Serialized {len(self.inputs)} inputs, {len(self.commands)} commands ({len(payload)} b64 chars)")
        return payload

    @staticmethod
    def deserialize(payload: str) -> dict:
        """base64 payload -> словарь транзакции (для проверки и отладки)."""
        return json.loads(base64.b64decode(payload).decode("utf-8"))

    def __len__(self) -> int:
        return len(self.commands)

    def __repr__(self) -> str:
        return f"TransactionBuilder(inputs={len(self.inputs)}, commands={len(self.commands)})"
