import logging

import numpy as np
import pytest

import constants
from chunk_distributor import EnergyChunkDistributor
from energy_chunk import EnergyChunk, EnergyType, energy_to_num_chunks
from geometry import Rect
from heat_transfer import EnergyContainerCategory
from thermal_element import Block, HorizontalSurface, ThermalContactArea


def _make_block(category, position=(0.0, 0.0), seed=0) -> Block:
    rng = np.random.default_rng(seed)
    return Block(position, category, EnergyChunkDistributor(rng), rng)


def test_side_by_side_contact_uses_shared_edge() -> None:
    left = ThermalContactArea(Rect(0.0, 0.0, 1.0, 1.0), False)
    right = ThermalContactArea(Rect(1.0, 0.0, 2.0, 1.0), False)

    assert left.contact_length(right) == pytest.approx(1.0)
    assert right.contact_length(left) == pytest.approx(1.0)


def test_stacked_contact_uses_horizontal_overlap() -> None:
    bottom = ThermalContactArea(Rect(0.0, 0.0, 1.0, 1.0), False)
    top = ThermalContactArea(Rect(0.25, 1.0, 0.75, 2.0), False)

    assert bottom.contact_length(top) == pytest.approx(0.5)


def test_separated_or_overlapping_solids_have_no_contact() -> None:
    area = ThermalContactArea(Rect(0.0, 0.0, 1.0, 1.0), False)
    far = ThermalContactArea(Rect(1.01, 0.0, 2.0, 1.0), False)
    overlapping = ThermalContactArea(Rect(0.5, 0.5, 1.5, 1.5), False)

    assert area.contact_length(far) == 0.0
    assert area.contact_length(overlapping) == 0.0


def test_immersed_contact_uses_perimeter() -> None:
    fluid = ThermalContactArea(Rect(0.0, 0.0, 1.0, 0.5), True)
    submerged = ThermalContactArea(Rect(0.2, 0.0, 0.4, 0.2), False)
    partly_submerged = ThermalContactArea(Rect(0.2, 0.4, 0.4, 0.6), False)

    assert fluid.contact_length(submerged) == pytest.approx(0.8)
    assert partly_submerged.contact_length(fluid) == pytest.approx(0.4)


def test_new_blocks_start_at_room_temperature_with_matching_chunks() -> None:
    brick = _make_block(EnergyContainerCategory.BRICK)
    iron = _make_block(EnergyContainerCategory.IRON)

    assert brick.temperature == pytest.approx(constants.ROOM_TEMPERATURE)
    assert brick.num_energy_chunks == 2
    assert iron.num_energy_chunks == 6
    assert brick.energy_chunk_balance() == 0
    assert len(brick.slices) == 4


def test_unknown_block_material_is_rejected() -> None:
    rng = np.random.default_rng(0)
    with pytest.raises(ValueError):
        Block((0.0, 0.0), EnergyContainerCategory.WATER, EnergyChunkDistributor(rng), rng)


def test_set_temperature_repopulates_chunks() -> None:
    iron = _make_block(EnergyContainerCategory.IRON)

    iron.set_temperature(500.0)

    assert iron.temperature == pytest.approx(500.0)
    assert iron.num_energy_chunks == energy_to_num_chunks(iron.energy)
    for chunk in iron.iter_energy_chunks():
        assert np.all(np.isfinite(chunk.position))


def test_exchange_between_touching_blocks_conserves_energy() -> None:
    iron = _make_block(EnergyContainerCategory.IRON, (0.0, 0.0))
    brick = _make_block(EnergyContainerCategory.BRICK, (constants.BLOCK_SURFACE_WIDTH, 0.0))
    iron.set_temperature(400.0)
    total_before = iron.energy + brick.energy

    exchanged = iron.exchange_energy_with(brick, 0.1)

    assert exchanged > 0
    assert iron.energy + brick.energy == pytest.approx(total_before, rel=1e-12)
    assert iron.temperature < 400.0
    assert brick.temperature > constants.ROOM_TEMPERATURE


def test_exchange_needs_contact_and_a_temperature_difference() -> None:
    iron = _make_block(EnergyContainerCategory.IRON, (0.0, 0.0))
    far_brick = _make_block(EnergyContainerCategory.BRICK, (0.2, 0.0))
    touching_brick = _make_block(EnergyContainerCategory.BRICK, (constants.BLOCK_SURFACE_WIDTH, 0.0))
    iron.set_temperature(400.0)

    assert iron.exchange_energy_with(far_brick, 0.1) == 0.0
    iron.set_temperature(constants.ROOM_TEMPERATURE)
    assert iron.exchange_energy_with(touching_brick, 0.1) == 0.0


def test_extraction_leaves_at_least_one_chunk(caplog) -> None:
    brick = _make_block(EnergyContainerCategory.BRICK)
    brick.set_temperature(constants.WATER_FREEZING_POINT_TEMPERATURE)
    assert brick.num_energy_chunks == 1

    with caplog.at_level(logging.WARNING, logger="heat_sim"):
        assert brick.extract_energy_chunk_closest_to_point(0.0, 0.0) is None
        assert brick.extract_energy_chunk_closest_to_bounds(Rect(-1.0, -1.0, 1.0, 1.0)) is None

    assert brick.num_energy_chunks == 1
    warnings = [record for record in caplog.records if record.levelno == logging.WARNING]
    assert len(warnings) == 2
    assert "can't extract" in warnings[0].getMessage()


def test_extraction_skips_excluded_chunks() -> None:
    iron = _make_block(EnergyContainerCategory.IRON)
    chunks = list(iron.iter_energy_chunks())
    keep = chunks[-1]
    excluded = {chunk.id for chunk in chunks[:-1]}

    assert iron.extract_energy_chunk_closest_to_point(0.0, 1.0, excluded) is keep
    assert iron.extract_energy_chunk_closest_to_point(0.0, 1.0, excluded | {keep.id}) is None
    assert iron.num_energy_chunks == len(chunks) - 1

    surrounding = Rect(-0.1, -0.1, 0.1, 0.1)
    remaining = list(iron.iter_energy_chunks())
    allowed = remaining[0]
    blocked = {chunk.id for chunk in remaining[1:]}
    assert iron.extract_energy_chunk_closest_to_bounds(surrounding, blocked) is allowed


def test_extract_closest_to_point_removes_the_nearest_chunk() -> None:
    iron = _make_block(EnergyContainerCategory.IRON)
    before = iron.num_energy_chunks

    chunk = iron.extract_energy_chunk_closest_to_point(0.0, 1.0)

    assert chunk is not None
    assert iron.num_energy_chunks == before - 1
    assert chunk not in list(iron.iter_energy_chunks())
    assert iron.distribution_countdown == constants.MAX_ENERGY_CHUNK_REDISTRIBUTION_TIME


def test_extract_toward_a_surrounding_area_uses_the_nearest_side() -> None:
    iron = _make_block(EnergyContainerCategory.IRON)
    surrounding = Rect(-0.1, -0.1, 0.1, 0.1)
    slice_bounds = iron.slice_bounds()
    expected = min(
        iron.iter_energy_chunks(),
        key=lambda c: min(abs(slice_bounds.min_x - c.x), abs(slice_bounds.max_x - c.x)),
    )

    assert iron.extract_energy_chunk_closest_to_bounds(surrounding) is expected


def test_chunk_added_from_afar_approaches_then_joins_a_slice() -> None:
    brick = _make_block(EnergyContainerCategory.BRICK)
    chunk = EnergyChunk(EnergyType.THERMAL, (0.0, 0.1))

    brick.add_energy_chunk(chunk)

    assert chunk in brick.approaching_chunks
    assert brick.num_energy_chunks == 3
    assert brick.energy_chunk_balance() == 1

    for _ in range(600):
        brick.step(constants.SIM_TIME_PER_TICK_NORMAL)
        if not brick.approaching_chunks:
            break

    assert not brick.approaching_chunks
    assert chunk in list(brick.iter_energy_chunks())
    assert brick.num_energy_chunks == 3


def test_surface_holds_one_element() -> None:
    brick = _make_block(EnergyContainerCategory.BRICK)
    iron = _make_block(EnergyContainerCategory.IRON, (0.1, 0.0))
    surface = HorizontalSurface(None, -0.05, 0.05, 0.1)

    surface.add_element(brick)

    with pytest.raises(AssertionError):
        surface.add_element(iron)


def test_moving_a_block_carries_its_chunks_and_what_rests_on_it() -> None:
    brick = _make_block(EnergyContainerCategory.BRICK)
    iron = _make_block(EnergyContainerCategory.IRON, (0.0, constants.BLOCK_SURFACE_WIDTH))
    iron.set_supporting_surface(brick.top_surface)
    brick.top_surface.add_element(iron)
    chunk = next(brick.iter_energy_chunks())
    chunk_x = chunk.x

    brick.set_position(0.1, 0.0)

    assert chunk.x == pytest.approx(chunk_x + 0.1)
    assert iron.position[0] == pytest.approx(0.1)
    assert brick.top_surface.center_x == pytest.approx(0.1)
    assert iron.is_stacked_upon(brick)
    assert not brick.is_stacked_upon(iron)


def test_reset_restores_position_and_temperature() -> None:
    iron = _make_block(EnergyContainerCategory.IRON, (0.05, 0.0))
    iron.set_temperature(600.0)
    iron.set_position(0.2, 0.1)

    iron.reset()

    assert tuple(iron.position) == pytest.approx((0.05, 0.0))
    assert iron.temperature == pytest.approx(constants.ROOM_TEMPERATURE)
    assert iron.num_energy_chunks == 6
