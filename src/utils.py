"""
Sui identifier helpers.

Адреса и ID объектов в Sui - 32 байта hex. RPC и пользователи пишут их
по-разному ("0x2" и "0x000...0002"), поэтому сравниваем только
нормализованную форму.
"""

import re

SUI_ADDRESS_LENGTH = 64  # hex chars (32 bytes)

_HEX_ADDRESS_RE = re.compile(r"^(0x)?[0-9a-fA-F]{1,64}$")


def is_hex_address(value: str) -> bool:
    """Похоже ли значение на Sui адрес / object ID."""
    return bool(value) and bool(_HEX_ADDRESS_RE.match(value))


def normalize_sui_address(value: str) -> str:
    """
    Нормализация адреса: нижний регистр, префикс 0x, 64 hex символа.

    Не-hex значения возвращаются как есть (для тестовых/символических ID).
    """
    if not is_hex_address(value):
        return value
    body = value[2:] if value.startswith("0x") else value
    return "0x" + body.lower().rjust(SUI_ADDRESS_LENGTH, "0")


def normalize_coin_type(coin_type: str) -> str:
    """
    Нормализация Move типа монеты: адрес пакета в полной форме.

    Example:
        normalize_coin_type("0x2::sui::SUI")
        # "0x0000...0002::sui::SUI"
    """
    parts = coin_type.split("::", 1)
    if len(parts) != 2:
        return coin_type
    return f"{normalize_sui_address(parts[0])}::{parts[1]}"


def same_coin_type(a: str, b: str) -> bool:
    """Сравнение двух типов монет с учётом короткой записи адреса."""
    return normalize_coin_type(a) == normalize_coin_type(b)


def split_type_arguments(type_str: str) -> list[str]:
    """
    Извлечение type arguments из Move типа верхнего уровня.

    "0xabc::pool::Pool<0x2::sui::SUI, 0xdef::coin::COIN>"
    -> ["0x2::sui::SUI", "0xdef::coin::COIN"]

    Учитывает вложенные generic'и.
    """
    start = type_str.find("<")
    if start < 0 or not type_str.endswith(">"):
        return []

    inner = type_str[start + 1:-1]
    args = []
    depth = 0
    current = []
    for ch in inner:
        if ch == "<":
            depth += 1
        elif ch == ">":
            depth -= 1
        if ch == "," and depth == 0:
            args.append("".join(current).strip())
            current = []
            continue
        current.append(ch)
    if current:
        args.append("".join(current).strip())
    return [a for a in args if a]
