"""
Bluefin Constants and Object IDs
"""

from dataclasses import dataclass
from typing import Dict, Optional

from ..utils import normalize_coin_type


# Нативная монета Sui - единственная, которую можно взять из gas coin
SUI_COIN_TYPE = "0x2::sui::SUI"

# Sui Clock object (immutable shared object)
SUI_CLOCK_OBJECT_ID = "0x0000000000000000000000000000000000000000000000000000000000000006"

BLUE_COIN_TYPE = "0x06864a6f921804860930db6ddbe2e16acdf8504495ea7481637a1c8b9a8fe54b::blue::BLUE"


@dataclass(frozen=True)
class BluefinAddresses:
    """Object IDs протокола Bluefin."""
    package_id: str                 # Пакет с модулями pool / gateway / position
    global_config_id: str           # Shared GlobalConfig, нужен каждому вызову
    clock_id: str = SUI_CLOCK_OBJECT_ID
    default_reward_coin_type: str = BLUE_COIN_TYPE


BLUEFIN_MAINNET = BluefinAddresses(
    package_id="0x6c796c3ab3421a68158e0df18e4657b2827b1f8fed5ed4b82dba9c935988711b",
    global_config_id="0x03db251ba509a8d5d8777b6338836082335d93eecbdd09a11e190a1cff51c352",
)


@dataclass(frozen=True)
class CoinInfo:
    """Известная монета."""
    coin_type: str
    symbol: str
    decimals: int


KNOWN_COINS: Dict[str, CoinInfo] = {
    "SUI": CoinInfo(SUI_COIN_TYPE, "SUI", 9),
    # Wormhole USDC
    "wUSDC": CoinInfo("0x5d4b302506645c37ff133b98c4b50a5ae14841659738d6d733d59d0d217a93bf::coin::COIN", "wUSDC", 6),
    # Native Circle USDC
    "USDC": CoinInfo("0xdba34672e30cb065b1f93e3ab55318768fd6fef66c15942c9f7cb846e2f900e7::usdc::USDC", "USDC", 6),
    "BLUE": CoinInfo(BLUE_COIN_TYPE, "BLUE", 9),
}

_COINS_BY_TYPE = {normalize_coin_type(c.coin_type): c for c in KNOWN_COINS.values()}


def get_coin_info(coin_type: str) -> Optional[CoinInfo]:
    """Поиск известной монеты по Move типу (с нормализацией адреса)."""
    return _COINS_BY_TYPE.get(normalize_coin_type(coin_type))
