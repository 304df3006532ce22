"""
Bluefin Liquidity Transaction Composer - CLI

Собирает неподписанные транзакции для Bluefin CLMM на Sui
и печатает ответ в JSON: {"success": true, "transaction": "<base64>", ...}.

Примеры:
    python main.py open --pool 0x... --amount-a 10 --amount-b 25 --coin-b 0x...
    python main.py remove --pool 0x... --position 0x... --percent 25
    python main.py close --pool 0x... --position 0x... --reward 0x...::blue::BLUE
    python main.py pool 0x...
"""

import argparse
import json
import logging
import sys
from typing import Optional

from dotenv import load_dotenv

from config import (
    DEFAULT_LOWER_PRICE_MULTIPLIER,
    DEFAULT_RPC_TIMEOUT,
    DEFAULT_SLIPPAGE_PCT,
    DEFAULT_UPPER_PRICE_MULTIPLIER,
    get_network_config,
    load_protocol_config,
    load_rpc_url,
)
from src.contracts.pool_reader import Pool, Position, SuiPoolReader
from src.errors import ComposerError
from src.liquidity_composer import (
    ClosePositionRequest,
    DepositRequest,
    LiquidityComposer,
    PositionRequest,
    PriceRange,
    RemoveLiquidityRequest,
    RewardsRequest,
)

logger = logging.getLogger(__name__)


def _add_position_args(parser: argparse.ArgumentParser):
    parser.add_argument("--pool", required=True, help="Pool object ID")
    parser.add_argument("--position", required=True, help="Position object ID")
    parser.add_argument("--coin-type-a", help="Coin A type (иначе из пула)")
    parser.add_argument("--coin-type-b", help="Coin B type (иначе из пула)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Bluefin CLMM transaction composer")
    parser.add_argument("--network", default="mainnet", help="mainnet / testnet")
    parser.add_argument("--rpc-url", help="Sui RPC URL (по умолчанию SUI_RPC_URL или URL сети)")
    parser.add_argument("--timeout", type=float, default=DEFAULT_RPC_TIMEOUT, help="RPC timeout, секунд")
    parser.add_argument("-v", "--verbose", action="store_true", help="DEBUG логирование")

    sub = parser.add_subparsers(dest="command", required=True)

    # open
    p_open = sub.add_parser("open", help="Открыть позицию и внести ликвидность")
    p_open.add_argument("--pool", required=True, help="Pool object ID")
    p_open.add_argument("--amount-a", type=float, default=0.0, help="Сумма coin A (в единицах монеты)")
    p_open.add_argument("--amount-b", type=float, default=0.0, help="Сумма coin B (в единицах монеты)")
    p_open.add_argument("--coin-a", action="append", default=[], help="Coin A object ID (можно несколько)")
    p_open.add_argument("--coin-b", action="append", default=[], help="Coin B object ID (можно несколько)")
    p_open.add_argument("--lower", type=float, default=DEFAULT_LOWER_PRICE_MULTIPLIER, help="Множитель нижней цены")
    p_open.add_argument("--upper", type=float, default=DEFAULT_UPPER_PRICE_MULTIPLIER, help="Множитель верхней цены")
    p_open.add_argument("--current-price", type=float, help="Текущая цена (иначе из пула)")
    p_open.add_argument("--decimals-a", type=int)
    p_open.add_argument("--decimals-b", type=int)
    p_open.add_argument("--slippage", type=float, default=DEFAULT_SLIPPAGE_PCT, help="Slippage, %%")
    p_open.add_argument("--min-liquidity", type=int, default=0)

    # remove
    p_remove = sub.add_parser("remove", help="Вывести процент ликвидности позиции")
    _add_position_args(p_remove)
    p_remove.add_argument("--percent", type=int, default=100, help="1-100")
    p_remove.add_argument("--liquidity", type=int, help="Текущая ликвидность (иначе из сети)")
    p_remove.add_argument("--min-amount-a", type=int, default=0)
    p_remove.add_argument("--min-amount-b", type=int, default=0)

    # fees / rewards
    p_fees = sub.add_parser("collect-fees", help="Собрать комиссии")
    _add_position_args(p_fees)

    for name, help_text in (
        ("collect-rewards", "Собрать награды"),
        ("collect-all", "Собрать комиссии и награды"),
    ):
        p = sub.add_parser(name, help=help_text)
        _add_position_args(p)
        p.add_argument("--reward", action="append", dest="rewards", help="Reward coin type (по умолчанию BLUE)")

    # close
    p_close = sub.add_parser("close", help="Закрыть позицию")
    _add_position_args(p_close)
    p_close.add_argument("--reward", action="append", dest="rewards", default=[], help="Reward coin type")

    # read-only
    p_pool = sub.add_parser("pool", help="Показать пул")
    p_pool.add_argument("pool_id")

    p_positions = sub.add_parser("positions", help="Позиции кошелька")
    p_positions.add_argument("owner")

    return parser


def _position_fields(args) -> dict:
    return {
        "pool_id": args.pool,
        "position_id": args.position,
        "coin_type_a": args.coin_type_a,
        "coin_type_b": args.coin_type_b,
    }


def _position_view(position: Position, pool: Optional[Pool]) -> dict:
    return {
        "id": position.id,
        "pool_id": position.pool_id,
        "coin_type_a": pool.coin_type_a if pool else None,
        "coin_type_b": pool.coin_type_b if pool else None,
        "lower_tick": position.lower_tick,
        "upper_tick": position.upper_tick,
        "lower_price": position.lower_price,
        "upper_price": position.upper_price,
        "liquidity": str(position.liquidity),
    }


def run(args, reader: SuiPoolReader, composer: LiquidityComposer) -> dict:
    """Выполнение команды. Возвращает JSON-совместимый ответ."""
    if args.command == "pool":
        return {"success": True, **reader.get_pool_details(args.pool_id)}

    if args.command == "positions":
        positions = reader.get_positions_by_owner(args.owner)
        # Один lookup на пул, даже если в нём несколько позиций
        pools = {}
        for p in positions:
            if p.pool_id and p.pool_id not in pools:
                pools[p.pool_id] = reader.get_pool(p.pool_id)
        return {
            "success": True,
            "positions": [_position_view(p, pools.get(p.pool_id)) for p in positions],
        }

    if args.command == "open":
        composed = composer.open_position(DepositRequest(
            pool_id=args.pool,
            amount_a=args.amount_a,
            amount_b=args.amount_b,
            price_range=PriceRange(
                current_price=args.current_price,
                lower_price_multiplier=args.lower,
                upper_price_multiplier=args.upper,
            ),
            coin_a_object_ids=args.coin_a,
            coin_b_object_ids=args.coin_b,
            decimals_a=args.decimals_a,
            decimals_b=args.decimals_b,
            slippage_pct=args.slippage,
            min_liquidity=args.min_liquidity,
        ))
    elif args.command == "remove":
        composed = composer.remove_liquidity(RemoveLiquidityRequest(
            **_position_fields(args),
            percent=args.percent,
            current_liquidity=args.liquidity,
            min_amount_a=args.min_amount_a,
            min_amount_b=args.min_amount_b,
        ))
    elif args.command == "collect-fees":
        composed = composer.collect_fees(PositionRequest(**_position_fields(args)))
    elif args.command == "collect-rewards":
        composed = composer.collect_rewards(RewardsRequest(**_position_fields(args), reward_coin_types=args.rewards))
    elif args.command == "collect-all":
        composed = composer.collect_fees_and_rewards(
            RewardsRequest(**_position_fields(args), reward_coin_types=args.rewards)
        )
    elif args.command == "close":
        composed = composer.close_position(
            ClosePositionRequest(**_position_fields(args), reward_coin_types=args.rewards)
        )
    else:
        raise ValueError(f"Unknown command: {args.command}")

    return composed.to_response()


def main(argv=None) -> int:
    """Главная функция."""
    load_dotenv()
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        stream=sys.stderr,
    )

    network = get_network_config(args.network)
    rpc_url = args.rpc_url or load_rpc_url(network)
    addresses = load_protocol_config()

    reader = SuiPoolReader(rpc_url, timeout=args.timeout, addresses=addresses)
    composer = LiquidityComposer(lookup=reader, addresses=addresses, native_coin_type=network.native_coin_type)

    try:
        response = run(args, reader, composer)
    except ComposerError as e:
        print(json.dumps(e.to_response(), indent=2))
        return 1

    print(json.dumps(response, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
