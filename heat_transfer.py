# heat_transfer.py

"""
Heat-transfer categories and the factor table that sets exchange rates.

The table is indexed by two EnergyContainerCategory values and must be
symmetric: the rate from A to B is the rate from B to A. Solid and fluid pairs
exchange briskly, anything touching the air exchanges gently.
"""

import enum

import numpy as np


class EnergyContainerCategory(enum.IntEnum):
    IRON = 0
    BRICK = 1
    WATER = 2
    OLIVE_OIL = 3
    AIR = 4


SOLID_FLUID_FACTOR = 1000.0  # W/(m K)
AIR_FACTOR = 30.0            # W/(m K)


def _build_factor_table():
    size = len(EnergyContainerCategory)
    table = np.full((size, size), SOLID_FLUID_FACTOR, dtype=float)
    air = EnergyContainerCategory.AIR
    table[air, :] = AIR_FACTOR
    table[:, air] = AIR_FACTOR
    return table


def validate_factor_table(table):
    """
    Checks that a factor table covers every category pair exactly once.

    Raises ValueError if the table has the wrong shape, holds a non-finite or
    non-positive entry, or is not symmetric.
    """
    size = len(EnergyContainerCategory)
    if table.shape != (size, size):
        msg = f"Heat transfer table must be {size}x{size}, got {table.shape}."
        raise ValueError(msg)
    if not np.all(np.isfinite(table)) or np.any(table <= 0):
        msg = "Heat transfer factors must be finite and positive."
        raise ValueError(msg)
    for category_a in EnergyContainerCategory:
        for category_b in EnergyContainerCategory:
            if table[category_a, category_b] != table[category_b, category_a]:
                msg = (f"Heat transfer factor for {category_a.name}/{category_b.name} "
                       f"is not symmetric.")
                raise ValueError(msg)
    return table


HEAT_TRANSFER_FACTORS = validate_factor_table(_build_factor_table())


def heat_transfer_factor(category_a, category_b):
    """Rate constant for energy exchange between two categories, in W/(m K)."""
    return float(HEAT_TRANSFER_FACTORS[category_a, category_b])
