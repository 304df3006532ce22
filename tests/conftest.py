"""
Shared fixtures for all tests.
"""

import pytest
from unittest.mock import Mock

from src.contracts.bluefin import PoolKey
from src.contracts.constants import BLUE_COIN_TYPE, SUI_COIN_TYPE
from src.contracts.pool_reader import Pool


POOL_ID = "0x3b585786b13af1d8ea067ab37101b6513a05d2f90cfe60e8b1d9e1b46a63c4fa"
POSITION_ID = "0x9d1c3a1f4b2e5a6d7c8b9a0f1e2d3c4b5a69788776655443322110ffeeddccbb"
USDC_COIN_TYPE = "0xdba34672e30cb065b1f93e3ab55318768fd6fef66c15942c9f7cb846e2f900e7::usdc::USDC"
DEEP_COIN_TYPE = "0xdeeb7a4662eec9f2f3def03fb937a663dddaa2e215b8078a284d026b7946c270::deep::DEEP"

COIN_A_1 = "0x" + "a1" * 32
COIN_A_2 = "0x" + "a2" * 32
COIN_A_3 = "0x" + "a3" * 32
COIN_B_1 = "0x" + "b1" * 32


@pytest.fixture
def sui_usdc_pool():
    """SUI/USDC пул, tick spacing 60, текущая цена ~4.08."""
    return Pool(
        id=POOL_ID,
        coin_type_a=SUI_COIN_TYPE,
        coin_type_b=USDC_COIN_TYPE,
        fee_rate=3000,
        tick_spacing=60,
        current_tick=14080,
        current_sqrt_price="37234694702185230000",
        liquidity=5_000_000_000,
    )


@pytest.fixture
def usdc_deep_pool():
    """Пул без нативного SUI - gas fallback невозможен ни для одной стороны."""
    return Pool(
        id=POOL_ID,
        coin_type_a=USDC_COIN_TYPE,
        coin_type_b=DEEP_COIN_TYPE,
        fee_rate=2500,
        tick_spacing=10,
        current_tick=0,
    )


@pytest.fixture
def pool_key():
    return PoolKey(pool_id=POOL_ID, coin_type_a=SUI_COIN_TYPE, coin_type_b=USDC_COIN_TYPE)


@pytest.fixture
def mock_lookup(sui_usdc_pool):
    """Мок lookup адаптера (get_pool / get_position_liquidity)."""
    lookup = Mock()
    lookup.get_pool = Mock(return_value=sui_usdc_pool)
    lookup.get_position_liquidity = Mock(return_value=1_000_000)
    return lookup


@pytest.fixture
def blue_coin_type():
    return BLUE_COIN_TYPE
