"""
Configuration for Bluefin CLMM on Sui

Конфигурация сети Sui и протокола Bluefin (concentrated liquidity).
Адреса пакета и global config можно переопределить через .env:
SUI_RPC_URL, BLUEFIN_PACKAGE_ID, BLUEFIN_CONFIG_ID.
"""

import os
from dataclasses import dataclass, replace

from dotenv import load_dotenv

from src.contracts.constants import BLUEFIN_MAINNET, SUI_COIN_TYPE, BluefinAddresses
from src.liquidity_composer import (
    DEFAULT_LOWER_PRICE_MULTIPLIER,
    DEFAULT_SLIPPAGE_PCT,
    DEFAULT_UPPER_PRICE_MULTIPLIER,
)


@dataclass
class SuiNetworkConfig:
    """Конфигурация сети."""
    name: str
    rpc_url: str
    explorer_url: str
    native_coin_type: str = SUI_COIN_TYPE


# ============================================================
# NETWORK CONFIGURATIONS
# ============================================================

SUI_MAINNET = SuiNetworkConfig(
    name="mainnet",
    rpc_url="https://fullnode.mainnet.sui.io:443",
    explorer_url="https://suiscan.xyz/mainnet",
)

SUI_TESTNET = SuiNetworkConfig(
    name="testnet",
    rpc_url="https://fullnode.testnet.sui.io:443",
    explorer_url="https://suiscan.xyz/testnet",
)

# ============================================================
# DEFAULT SETTINGS
# ============================================================

DEFAULT_RPC_TIMEOUT = 15.0  # секунд


# ============================================================
# HELPER FUNCTIONS
# ============================================================

def get_network_config(name: str) -> SuiNetworkConfig:
    """Получение конфигурации сети по имени."""
    configs = {
        "mainnet": SUI_MAINNET,
        "testnet": SUI_TESTNET,
    }
    if name not in configs:
        raise ValueError(f"Unknown network: {name}")
    return configs[name]


def load_rpc_url(network: SuiNetworkConfig = SUI_MAINNET) -> str:
    """RPC URL из окружения (SUI_RPC_URL) или из конфигурации сети."""
    load_dotenv()
    return os.getenv("SUI_RPC_URL") or network.rpc_url


def load_protocol_config(base: BluefinAddresses = BLUEFIN_MAINNET) -> BluefinAddresses:
    """
    Адреса протокола с переопределениями из окружения.

    Переменные: BLUEFIN_PACKAGE_ID, BLUEFIN_CONFIG_ID.
    """
    load_dotenv()
    return replace(
        base,
        package_id=os.getenv("BLUEFIN_PACKAGE_ID") or base.package_id,
        global_config_id=os.getenv("BLUEFIN_CONFIG_ID") or base.global_config_id,
    )
