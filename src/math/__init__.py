from .ticks import price_to_tick, tick_to_price, align_tick_to_spacing, tick_to_bits, bits_to_tick
from .liquidity import scale_to_chain_units, from_chain_units, proportional_liquidity, validate_percent
