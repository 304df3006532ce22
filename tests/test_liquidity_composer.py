"""
Tests for LiquidityComposer (src/liquidity_composer.py).

Lookup адаптер замокан: проверяем порядок вызовов в транзакции,
расчёт тиков и сумм, и что ошибки прерывают сборку до эмиссии.
"""

import pytest

from src.contracts.constants import BLUE_COIN_TYPE, SUI_COIN_TYPE
from src.errors import (
    InvalidInputError,
    InvalidRangeError,
    MissingFundingError,
    UpstreamLookupFailedError,
)
from src.liquidity_composer import (
    ClosePositionRequest,
    DepositRequest,
    LiquidityComposer,
    PositionRequest,
    PriceRange,
    RemoveLiquidityRequest,
    RewardsRequest,
)
from src.math.ticks import price_to_tick
from src.transaction.builder import (
    GAS_COIN,
    Argument,
    MergeCoins,
    MoveCall,
    SplitCoins,
    TransactionBuilder,
)

from tests.conftest import (
    COIN_A_1,
    COIN_A_2,
    COIN_B_1,
    DEEP_COIN_TYPE,
    POOL_ID,
    POSITION_ID,
    USDC_COIN_TYPE,
)


REWARD_1 = "0x" + "01" * 32 + "::r1::R1"
REWARD_2 = "0x" + "02" * 32 + "::r2::R2"
REWARD_3 = "0x" + "03" * 32 + "::r3::R3"


def _functions(composed):
    return [call.function for call in composed.move_calls]


@pytest.fixture
def composer(mock_lookup):
    return LiquidityComposer(lookup=mock_lookup)


def _position_fields(**overrides):
    fields = {
        "pool_id": POOL_ID,
        "position_id": POSITION_ID,
        "coin_type_a": SUI_COIN_TYPE,
        "coin_type_b": USDC_COIN_TYPE,
    }
    fields.update(overrides)
    return fields


# ============================================================
# open_position
# ============================================================

class TestOpenPosition:
    """Открытие позиции с депозитом."""

    def test_range_around_current_price(self, composer, mock_lookup, sui_usdc_pool):
        composed = composer.open_position(DepositRequest(
            pool_id=POOL_ID,
            amount_a=10,
            amount_b=25,
            price_range=PriceRange(current_price=4.08),
            coin_b_object_ids=[COIN_B_1],
            pool=sui_usdc_pool,
        ))

        assert _functions(composed) == ["pool::open_position", "gateway::add_liquidity"]
        assert composed.summary["lower_tick"] == price_to_tick(2.04, 60) == 7080
        assert composed.summary["upper_tick"] == price_to_tick(8.16, 60)
        assert composed.summary["coin_a_amount"] == 10_000_000_000
        assert composed.summary["coin_b_amount"] == 25_000_000
        mock_lookup.get_pool.assert_not_called()

    def test_summary_display_amounts(self, composer, sui_usdc_pool):
        composed = composer.open_position(DepositRequest(
            pool_id=POOL_ID,
            amount_a=10,
            amount_b=2.5,
            coin_b_object_ids=[COIN_B_1],
            pool=sui_usdc_pool,
        ))

        assert composed.summary["coin_a_amount_display"] == "10"
        assert composed.summary["coin_b_amount_display"] == "2.5"

    def test_coin_types_from_snapshot(self, composer, mock_lookup, usdc_deep_pool):
        composed = composer.open_position(DepositRequest(
            pool_id=POOL_ID, amount_a=0, amount_b=1, coin_b_object_ids=[COIN_B_1], pool=usdc_deep_pool,
        ))

        assert composed.move_calls[0].type_arguments == [USDC_COIN_TYPE, DEEP_COIN_TYPE]
        mock_lookup.get_pool.assert_not_called()

    def test_command_order_and_wiring(self, composer, sui_usdc_pool):
        composed = composer.open_position(DepositRequest(
            pool_id=POOL_ID,
            amount_a=1.5,
            amount_b=2,
            price_range=PriceRange(current_price=4.08),
            coin_b_object_ids=[COIN_B_1],
            pool=sui_usdc_pool,
        ))
        commands = composed.transaction.commands

        # SUI со стороны A - из gas coin, USDC - split из объекта
        assert isinstance(commands[0], SplitCoins) and commands[0].coin == GAS_COIN
        assert isinstance(commands[1], SplitCoins) and commands[1].coin != GAS_COIN
        assert isinstance(commands[2], MoveCall) and isinstance(commands[3], MoveCall)

        add_args = commands[3].arguments
        assert add_args[2] == Argument("Result", 2)
        assert add_args[3] == Argument("NestedResult", 0, 0)
        assert add_args[4] == Argument("NestedResult", 1, 0)
        assert composed.summary["funding_a"] == "gas"
        assert composed.summary["funding_b"] == "split"

    def test_pool_fields_from_lookup(self, composer, mock_lookup, sui_usdc_pool):
        composed = composer.open_position(DepositRequest(
            pool_id=POOL_ID, amount_a=1, amount_b=0,
        ))

        mock_lookup.get_pool.assert_called_once_with(POOL_ID)
        current = sui_usdc_pool.current_price
        assert composed.summary["lower_tick"] == price_to_tick(current * 0.5, 60)
        assert composed.summary["upper_tick"] == price_to_tick(current * 2.0, 60)
        assert composed.move_calls[0].type_arguments == [SUI_COIN_TYPE, USDC_COIN_TYPE]

    def test_no_lookup_when_all_fields_supplied(self, mock_lookup):
        composer = LiquidityComposer(lookup=None)
        composed = composer.open_position(DepositRequest(
            pool_id=POOL_ID,
            amount_a=1,
            amount_b=0,
            price_range=PriceRange(current_price=1.0, tick_spacing=10),
            coin_type_a=SUI_COIN_TYPE,
            coin_type_b=USDC_COIN_TYPE,
        ))
        assert composed.summary["pool_details"]["tick_spacing"] == 10

    def test_zero_side_uses_pure_placeholder(self, composer, sui_usdc_pool):
        composed = composer.open_position(DepositRequest(
            pool_id=POOL_ID, amount_a=1, amount_b=0, pool=sui_usdc_pool,
        ))
        tx = composed.transaction
        coin_b = composed.move_calls[1].arguments[4]

        assert coin_b.kind == "Input"
        assert tx.inputs[coin_b.index].value == 0
        assert composed.summary["funding_b"] == "zero"
        assert sum(isinstance(c, SplitCoins) for c in tx.commands) == 1

    def test_multiple_coin_objects_are_merged(self, composer, sui_usdc_pool):
        composed = composer.open_position(DepositRequest(
            pool_id=POOL_ID,
            amount_a=3,
            amount_b=0,
            coin_a_object_ids=[COIN_A_1, COIN_A_2],
            pool=sui_usdc_pool,
        ))
        commands = composed.transaction.commands

        assert isinstance(commands[0], MergeCoins)
        assert isinstance(commands[1], SplitCoins)
        assert commands[1].coin == commands[0].destination
        assert composed.summary["funding_a"] == "merge_and_split"

    def test_missing_coin_b_objects(self, composer, sui_usdc_pool):
        with pytest.raises(MissingFundingError) as exc_info:
            composer.open_position(DepositRequest(
                pool_id=POOL_ID, amount_a=10, amount_b=25, pool=sui_usdc_pool,
            ))
        assert exc_info.value.side == "B"
        assert exc_info.value.operation == "open_position"

    def test_non_native_side_a_has_no_gas_fallback(self, composer, usdc_deep_pool):
        with pytest.raises(MissingFundingError) as exc_info:
            composer.open_position(DepositRequest(
                pool_id=POOL_ID, amount_a=10, amount_b=0, pool=usdc_deep_pool,
            ))
        assert exc_info.value.side == "A"

    def test_native_coin_on_side_b_has_no_gas_fallback(self, composer, mock_lookup):
        with pytest.raises(MissingFundingError) as exc_info:
            composer.open_position(DepositRequest(
                pool_id=POOL_ID,
                amount_a=0,
                amount_b=5,
                coin_type_a=USDC_COIN_TYPE,
                coin_type_b=SUI_COIN_TYPE,
                price_range=PriceRange(current_price=1.0, tick_spacing=60),
            ))
        assert exc_info.value.side == "B"
        mock_lookup.get_pool.assert_not_called()

    def test_collapsed_range(self, composer, sui_usdc_pool):
        with pytest.raises(InvalidRangeError) as exc_info:
            composer.open_position(DepositRequest(
                pool_id=POOL_ID,
                amount_a=1,
                amount_b=0,
                price_range=PriceRange(current_price=1.0, lower_price_multiplier=1.0, upper_price_multiplier=1.001),
                pool=sui_usdc_pool,
            ))
        assert exc_info.value.lower_tick == exc_info.value.upper_tick == 0

    def test_inverted_multipliers(self, composer, sui_usdc_pool):
        with pytest.raises(InvalidInputError):
            composer.open_position(DepositRequest(
                pool_id=POOL_ID,
                amount_a=1,
                amount_b=0,
                price_range=PriceRange(lower_price_multiplier=2.0, upper_price_multiplier=0.5),
                pool=sui_usdc_pool,
            ))

    @pytest.mark.parametrize("amount_a, amount_b", [(0, 0), (-1, 5)])
    def test_invalid_amounts(self, composer, sui_usdc_pool, amount_a, amount_b):
        with pytest.raises(InvalidInputError):
            composer.open_position(DepositRequest(
                pool_id=POOL_ID,
                amount_a=amount_a,
                amount_b=amount_b,
                coin_b_object_ids=[COIN_B_1],
                pool=sui_usdc_pool,
            ))

    @pytest.mark.parametrize("slippage", [-0.1, 100, float("nan")])
    def test_invalid_slippage(self, composer, mock_lookup, slippage):
        with pytest.raises(InvalidInputError) as exc_info:
            composer.open_position(DepositRequest(
                pool_id=POOL_ID, amount_a=1, amount_b=0, slippage_pct=slippage,
            ))
        assert exc_info.value.field == "slippage_pct"
        mock_lookup.get_pool.assert_not_called()

    def test_non_positive_current_price(self, composer, mock_lookup):
        with pytest.raises(InvalidInputError):
            composer.open_position(DepositRequest(
                pool_id=POOL_ID, amount_a=1, amount_b=0, price_range=PriceRange(current_price=0),
            ))
        mock_lookup.get_pool.assert_not_called()

    def test_decimals_override(self, composer, sui_usdc_pool):
        composed = composer.open_position(DepositRequest(
            pool_id=POOL_ID, amount_a=1, amount_b=0, decimals_a=6, pool=sui_usdc_pool,
        ))
        assert composed.summary["coin_a_amount"] == 1_000_000

    def test_unknown_coin_uses_default_decimals(self, composer, usdc_deep_pool):
        composed = composer.open_position(DepositRequest(
            pool_id=POOL_ID,
            amount_a=0,
            amount_b=2,
            coin_b_object_ids=[COIN_B_1],
            pool=usdc_deep_pool,
        ))
        assert composed.summary["coin_b_amount"] == 2_000_000

    def test_min_liquidity_passed_through(self, composer, sui_usdc_pool):
        composed = composer.open_position(DepositRequest(
            pool_id=POOL_ID, amount_a=1, amount_b=0, min_liquidity=12345, pool=sui_usdc_pool,
        ))
        add = composed.move_calls[1]
        assert composed.transaction.inputs[add.arguments[5].index].value == 12345

    def test_snapshot_for_other_pool_rejected(self, composer, sui_usdc_pool):
        with pytest.raises(InvalidInputError):
            composer.open_position(DepositRequest(
                pool_id="0x" + "ff" * 32, amount_a=1, amount_b=0, pool=sui_usdc_pool,
            ))

    def test_response_format(self, composer, sui_usdc_pool):
        composed = composer.open_position(DepositRequest(
            pool_id=POOL_ID, amount_a=1, amount_b=0, pool=sui_usdc_pool,
        ))
        response = composed.to_response()

        assert response["success"] is True
        assert response["coin_a_amount"] == "1000000000"
        assert response["coin_b_amount"] == "0"
        decoded = TransactionBuilder.deserialize(response["transaction"])
        assert len(decoded["commands"]) == 3


# ============================================================
# Lookup failures
# ============================================================

class TestLookupFailures:

    def test_upstream_error_propagates(self, composer, mock_lookup):
        mock_lookup.get_pool.side_effect = UpstreamLookupFailedError("rpc down", object_id=POOL_ID)
        with pytest.raises(UpstreamLookupFailedError) as exc_info:
            composer.open_position(DepositRequest(pool_id=POOL_ID, amount_a=1, amount_b=0))
        assert exc_info.value.operation == "open_position"
        assert exc_info.value.field == "pool_id"

    def test_unexpected_error_is_wrapped(self, composer, mock_lookup):
        mock_lookup.get_pool.side_effect = RuntimeError("boom")
        with pytest.raises(UpstreamLookupFailedError, match="boom"):
            composer.collect_fees(PositionRequest(pool_id=POOL_ID, position_id=POSITION_ID))

    def test_no_lookup_configured(self):
        composer = LiquidityComposer()
        with pytest.raises(UpstreamLookupFailedError):
            composer.collect_fees(PositionRequest(pool_id=POOL_ID, position_id=POSITION_ID))

    def test_position_liquidity_lookup_failure(self, composer, mock_lookup):
        mock_lookup.get_position_liquidity.side_effect = UpstreamLookupFailedError("gone")
        with pytest.raises(UpstreamLookupFailedError) as exc_info:
            composer.remove_liquidity(RemoveLiquidityRequest(**_position_fields(), percent=50))
        assert exc_info.value.operation == "remove_liquidity"


# ============================================================
# remove_liquidity
# ============================================================

class TestRemoveLiquidity:

    def test_quarter_of_position(self, composer, mock_lookup):
        composed = composer.remove_liquidity(RemoveLiquidityRequest(
            **_position_fields(), percent=25, current_liquidity=1_000_000,
        ))

        assert _functions(composed) == ["gateway::remove_liquidity"]
        call = composed.move_calls[0]
        assert composed.transaction.inputs[call.arguments[3].index].value == 250_000
        assert composed.summary["liquidity_to_remove"] == 250_000
        assert composed.to_response()["liquidity_to_remove"] == "250000"
        mock_lookup.get_position_liquidity.assert_not_called()
        mock_lookup.get_pool.assert_not_called()

    def test_liquidity_and_pool_from_lookup(self, composer, mock_lookup):
        mock_lookup.get_position_liquidity.return_value = 2 ** 70
        composed = composer.remove_liquidity(RemoveLiquidityRequest(
            pool_id=POOL_ID, position_id=POSITION_ID, percent=50,
        ))

        mock_lookup.get_position_liquidity.assert_called_once_with(POSITION_ID)
        mock_lookup.get_pool.assert_called_once_with(POOL_ID)
        assert composed.summary["liquidity_to_remove"] == 2 ** 69
        assert composed.move_calls[0].type_arguments == [SUI_COIN_TYPE, USDC_COIN_TYPE]

    @pytest.mark.parametrize("percent", [0, 101])
    def test_invalid_percent_before_lookup(self, composer, mock_lookup, percent):
        with pytest.raises(InvalidInputError) as exc_info:
            composer.remove_liquidity(RemoveLiquidityRequest(pool_id=POOL_ID, position_id=POSITION_ID, percent=percent))
        assert exc_info.value.operation == "remove_liquidity"
        mock_lookup.get_position_liquidity.assert_not_called()
        mock_lookup.get_pool.assert_not_called()

    def test_min_amounts(self, composer):
        composed = composer.remove_liquidity(RemoveLiquidityRequest(
            **_position_fields(), current_liquidity=10, min_amount_a=3, min_amount_b=4,
        ))
        call = composed.move_calls[0]
        inputs = composed.transaction.inputs
        assert [inputs[a.index].value for a in call.arguments[3:]] == [10, 3, 4]


# ============================================================
# Fees / rewards
# ============================================================

class TestCollect:

    def test_collect_fees(self, composer, mock_lookup):
        composed = composer.collect_fees(PositionRequest(**_position_fields()))

        assert _functions(composed) == ["gateway::collect_fee"]
        assert composed.move_calls[0].type_arguments == [SUI_COIN_TYPE, USDC_COIN_TYPE]
        mock_lookup.get_pool.assert_not_called()

    def test_collect_fees_types_from_lookup(self, composer, mock_lookup):
        composer.collect_fees(PositionRequest(pool_id=POOL_ID, position_id=POSITION_ID))
        mock_lookup.get_pool.assert_called_once_with(POOL_ID)

    def test_collect_fees_types_from_snapshot(self, composer, mock_lookup, usdc_deep_pool):
        composed = composer.collect_fees(PositionRequest(pool_id=POOL_ID, position_id=POSITION_ID, pool=usdc_deep_pool))

        assert composed.move_calls[0].type_arguments == [USDC_COIN_TYPE, DEEP_COIN_TYPE]
        mock_lookup.get_pool.assert_not_called()

    def test_collect_rewards_default_blue(self, composer):
        composed = composer.collect_rewards(RewardsRequest(**_position_fields()))

        assert _functions(composed) == ["gateway::collect_reward"]
        assert composed.move_calls[0].type_arguments == [SUI_COIN_TYPE, USDC_COIN_TYPE, BLUE_COIN_TYPE]

    def test_collect_rewards_in_order(self, composer):
        composed = composer.collect_rewards(RewardsRequest(
            **_position_fields(), reward_coin_types=[REWARD_2, REWARD_1],
        ))
        assert [c.type_arguments[2] for c in composed.move_calls] == [REWARD_2, REWARD_1]

    def test_collect_rewards_empty_list_rejected(self, composer):
        with pytest.raises(InvalidInputError) as exc_info:
            composer.collect_rewards(RewardsRequest(**_position_fields(), reward_coin_types=[]))
        assert exc_info.value.operation == "collect_rewards"

    def test_fees_then_rewards(self, composer):
        composed = composer.collect_fees_and_rewards(RewardsRequest(
            **_position_fields(), reward_coin_types=[REWARD_1, REWARD_2],
        ))
        assert _functions(composed) == [
            "gateway::collect_fee",
            "gateway::collect_reward",
            "gateway::collect_reward",
        ]

    def test_fees_and_no_rewards(self, composer):
        composed = composer.collect_fees_and_rewards(RewardsRequest(**_position_fields(), reward_coin_types=[]))
        assert _functions(composed) == ["gateway::collect_fee"]

    def test_fees_and_default_reward(self, composer):
        composed = composer.collect_fees_and_rewards(RewardsRequest(**_position_fields()))
        assert composed.move_calls[1].type_arguments[2] == BLUE_COIN_TYPE


# ============================================================
# close_position
# ============================================================

class TestClosePosition:

    def test_first_reward_goes_into_close(self, composer):
        composed = composer.close_position(ClosePositionRequest(
            **_position_fields(), reward_coin_types=[REWARD_1, REWARD_2, REWARD_3],
        ))

        assert _functions(composed) == [
            "gateway::close_position",
            "gateway::collect_reward",
            "gateway::collect_reward",
        ]
        calls = composed.move_calls
        assert calls[0].type_arguments == [SUI_COIN_TYPE, USDC_COIN_TYPE, REWARD_1]
        assert calls[1].type_arguments[2] == REWARD_2
        assert calls[2].type_arguments[2] == REWARD_3

    def test_no_rewards(self, composer):
        composed = composer.close_position(ClosePositionRequest(**_position_fields()))

        assert _functions(composed) == ["gateway::close_position"]
        assert composed.move_calls[0].type_arguments == [SUI_COIN_TYPE, USDC_COIN_TYPE]

    def test_same_coin_types_rejected(self, composer):
        with pytest.raises(InvalidInputError):
            composer.close_position(ClosePositionRequest(
                **_position_fields(coin_type_b="0x0000000000000000000000000000000000000000000000000000000000000002::sui::SUI"),
            ))

    def test_empty_position_id(self, composer):
        with pytest.raises(InvalidInputError) as exc_info:
            composer.close_position(ClosePositionRequest(**_position_fields(position_id="")))
        assert exc_info.value.field == "position_id"


class TestCustomNativeCoin:

    def test_gas_fallback_follows_native_coin_type(self, usdc_deep_pool):
        composer = LiquidityComposer(native_coin_type=USDC_COIN_TYPE)
        composed = composer.open_position(DepositRequest(
            pool_id=POOL_ID, amount_a=1, amount_b=0, pool=usdc_deep_pool,
        ))
        assert composed.summary["funding_a"] == "gas"
        assert DEEP_COIN_TYPE in composed.move_calls[0].type_arguments
