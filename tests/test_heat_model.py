import numpy as np
import pytest

import constants
from beaker import Beaker
from burner import Burner
from chunk_distributor import EnergyChunkDistributor
from heat_model import HeatExchangeModel, TemperatureSensor, build_intro_model, intro_ground_spots
from heat_transfer import EnergyContainerCategory
from thermal_element import Block

DT = constants.SIM_TIME_PER_TICK_NORMAL


def _make_model(block_specs=(), beaker_specs=(), burner_positions=(), ground_spots=(0.0,), sensors=None, seed=0):
    """Builds a model from (category, position) pairs. Returns the model."""
    rng = np.random.default_rng(seed)
    distributor = EnergyChunkDistributor(rng)
    blocks = [Block(position, category, distributor, rng) for category, position in block_specs]
    beakers = [Beaker(position, category, distributor, rng) for category, position in beaker_specs]
    burners = [Burner(position, rng) for position in burner_positions]
    return HeatExchangeModel({}, rng, blocks, beakers, burners, list(ground_spots), sensors=sensors)


def _rest_on(element, support):
    element.set_supporting_surface(support.top_surface)
    support.top_surface.add_element(element)


def _run(model, ticks):
    for _ in range(ticks):
        model.step(DT)


def test_model_needs_a_ground_spot() -> None:
    with pytest.raises(ValueError):
        _make_model(ground_spots=())


def test_iron_and_brick_in_contact_equalize() -> None:
    model = _make_model(
        block_specs=[(EnergyContainerCategory.IRON, (0.0, 0.0)),
                     (EnergyContainerCategory.BRICK, (constants.BLOCK_SURFACE_WIDTH, 0.0))],
    )
    iron, brick = model.blocks
    iron.set_temperature(1000.0)
    brick.set_temperature(300.0)

    for _ in range(int(120 / DT)):
        iron.exchange_energy_with(brick, DT)

    assert abs(iron.temperature - brick.temperature) < 0.5


def test_touching_blocks_converge_while_cooling_to_the_air() -> None:
    model = _make_model(
        block_specs=[(EnergyContainerCategory.IRON, (0.0, 0.0)),
                     (EnergyContainerCategory.BRICK, (constants.BLOCK_SURFACE_WIDTH, 0.0))],
        ground_spots=(0.0, constants.BLOCK_SURFACE_WIDTH),
    )
    iron, brick = model.blocks
    iron.set_temperature(1000.0)
    brick.set_temperature(300.0)
    total_before = model.total_thermal_energy()

    _run(model, int(20 / DT))
    early_gap = abs(iron.temperature - brick.temperature)
    _run(model, int(40 / DT))
    late_gap = abs(iron.temperature - brick.temperature)

    assert late_gap < early_gap < 10.0
    assert late_gap < 3.0
    assert model.total_thermal_energy() < total_before
    assert tuple(iron.position) == (0.0, 0.0)


def test_touching_blocks_both_lose_energy_to_the_air() -> None:
    model = _make_model(
        block_specs=[(EnergyContainerCategory.IRON, (0.0, 0.0)),
                     (EnergyContainerCategory.BRICK, (constants.BLOCK_SURFACE_WIDTH, 0.0))],
    )
    iron, brick = model.blocks
    iron.set_temperature(400.0)
    brick.set_temperature(390.0)
    iron_before, brick_before = iron.energy, brick.energy

    model._exchange_with_air(DT)

    assert iron.energy < iron_before
    assert brick.energy < brick_before


def test_block_immersed_in_a_beaker_skips_the_air() -> None:
    model = _make_model(
        block_specs=[(EnergyContainerCategory.BRICK, (0.0, constants.BEAKER_MATERIAL_THICKNESS))],
        beaker_specs=[(EnergyContainerCategory.WATER, (0.0, 0.0))],
    )
    brick = model.blocks[0]
    beaker = model.beakers[0]
    brick.set_temperature(350.0)
    beaker.set_temperature(350.0)
    brick_before, beaker_before = brick.energy, beaker.energy

    model._exchange_with_air(DT)

    assert brick.energy == brick_before
    assert beaker.energy < beaker_before


def test_lone_burner_emits_one_chunk_per_quantum_with_lockout() -> None:
    model = _make_model(burner_positions=[(0.0, 0.0)])
    burner = model.burners[0]
    burner.set_level(1.0)

    _run(model, 200)
    assert not model.air.chunks

    _run(model, 1)
    assert len(model.air.chunks) == 1
    assert burner.is_locked_out
    assert burner.energy_exchanged_with_air == 0.0

    _run(model, 200)
    assert len(model.air.chunks) == 1
    _run(model, 1)
    assert len(model.air.chunks) == 2


def _brick_on_burner(level):
    model = _make_model(
        block_specs=[(EnergyContainerCategory.BRICK, (0.0, constants.BURNER_SIDE_LENGTH))],
        burner_positions=[(0.0, 0.0)],
    )
    brick = model.blocks[0]
    burner = model.burners[0]
    _rest_on(brick, burner)
    burner.set_level(level)
    return model, brick, burner


def _worst_balance(model, container, warm_up_ticks, ticks):
    _run(model, warm_up_ticks)
    worst = 0
    for _ in range(ticks):
        model.step(DT)
        worst = max(worst, abs(container.energy_chunk_balance()))
    return worst


def test_heated_brick_keeps_chunks_in_step_with_energy() -> None:
    model, brick, burner = _brick_on_burner(1.0)
    start_chunks = brick.num_energy_chunks

    worst = _worst_balance(model, brick, int(5 / DT), int(25 / DT))

    assert worst <= 1
    assert brick.temperature > constants.ROOM_TEMPERATURE + 50
    assert brick.num_energy_chunks > start_chunks
    assert brick.supporting_surface is burner.top_surface


def test_cooled_brick_keeps_chunks_in_step_with_energy() -> None:
    model, brick, burner = _brick_on_burner(-1.0)
    start_chunks = brick.num_energy_chunks

    worst = _worst_balance(model, brick, int(1 / DT), int(10 / DT))

    assert worst <= 1
    assert brick.temperature == pytest.approx(constants.WATER_FREEZING_POINT_TEMPERATURE, abs=0.1)
    assert brick.num_energy_chunks < start_chunks


def test_cooling_burner_takes_from_a_balanced_block_carrying_a_surplus() -> None:
    model = _make_model(
        block_specs=[(EnergyContainerCategory.BRICK, (0.0, constants.BURNER_SIDE_LENGTH)),
                     (EnergyContainerCategory.IRON,
                      (0.0, constants.BURNER_SIDE_LENGTH + constants.BLOCK_SURFACE_WIDTH))],
        burner_positions=[(0.0, 0.0)],
    )
    brick, iron = model.blocks
    burner = model.burners[0]
    _rest_on(brick, burner)
    _rest_on(iron, brick)
    burner.set_level(-1.0)
    iron.energy -= 2 * constants.ENERGY_PER_CHUNK
    assert brick.energy_chunk_balance() == 0
    assert iron.energy_chunk_balance() == 2

    model._exchange_chunks_with_burners()

    assert len(burner.chunks) == 1
    assert brick.energy_chunk_balance() == -1


def test_cooling_burner_leaves_a_balanced_stack_alone() -> None:
    model = _make_model(
        block_specs=[(EnergyContainerCategory.BRICK, (0.0, constants.BURNER_SIDE_LENGTH)),
                     (EnergyContainerCategory.IRON,
                      (0.0, constants.BURNER_SIDE_LENGTH + constants.BLOCK_SURFACE_WIDTH))],
        burner_positions=[(0.0, 0.0)],
    )
    brick, iron = model.blocks
    burner = model.burners[0]
    _rest_on(brick, burner)
    _rest_on(iron, brick)
    burner.set_level(-1.0)

    model._exchange_chunks_with_burners()

    assert not burner.chunks
    assert brick.energy_chunk_balance() == 0


def test_air_chunk_exchange_waits_for_the_accumulator() -> None:
    model = _make_model(block_specs=[(EnergyContainerCategory.IRON, (0.0, 0.0))])
    iron = model.blocks[0]
    iron.energy -= 3 * constants.ENERGY_PER_CHUNK
    assert iron.energy_chunk_balance() == 3

    _run(model, 13)
    assert not model.air.chunks
    assert 0.0 < model.air_exchange_accumulators[iron] < constants.AIR_CHUNK_EXCHANGE_THRESHOLD

    _run(model, 1)
    assert len(model.air.chunks) == 1
    assert model.air_exchange_accumulators[iron] == 0.0
    assert iron.energy_chunk_balance() == 2


def test_chunks_moved_between_containers_are_recorded() -> None:
    model = _make_model(
        block_specs=[(EnergyContainerCategory.IRON, (0.0, 0.0)),
                     (EnergyContainerCategory.BRICK, (constants.BLOCK_SURFACE_WIDTH, 0.0))],
    )
    iron, brick = model.blocks
    iron.energy -= constants.ENERGY_PER_CHUNK
    brick.energy += constants.ENERGY_PER_CHUNK

    model._exchange_chunks_between_containers()

    brick_chunk_ids = {chunk.id for chunk in brick.approaching_chunks}
    brick_chunk_ids.update(chunk.id for chunk in brick.iter_energy_chunks())
    assert len(model.chunks_moved_this_tick) == 1
    assert model.chunks_moved_this_tick <= brick_chunk_ids


def test_chunk_moved_this_tick_is_not_sent_to_the_air() -> None:
    model = _make_model(block_specs=[(EnergyContainerCategory.IRON, (0.0, 0.0))])
    iron = model.blocks[0]
    iron.energy -= 3 * constants.ENERGY_PER_CHUNK
    chunks = list(iron.iter_energy_chunks())
    model.chunks_moved_this_tick.update(chunk.id for chunk in chunks[1:])
    model.air_exchange_accumulators[iron] = constants.AIR_CHUNK_EXCHANGE_THRESHOLD - 0.1

    model._exchange_chunks_with_air(iron, DT)

    assert model.air.chunks == [chunks[0]]
    assert chunks[0].id in model.chunks_moved_this_tick


def test_moved_chunk_record_is_cleared_each_tick() -> None:
    model = _make_model(block_specs=[(EnergyContainerCategory.IRON, (0.0, 0.0))])
    model.chunks_moved_this_tick.add(-1)

    model.manual_step()

    assert -1 not in model.chunks_moved_this_tick


def test_unsupported_block_falls_to_the_ground() -> None:
    model = _make_model(block_specs=[(EnergyContainerCategory.BRICK, (0.0, 0.2))], ground_spots=(0.0, 0.1))
    brick = model.blocks[0]

    _run(model, 60)

    assert tuple(brick.position) == (0.0, 0.0)
    assert brick.vertical_velocity == 0.0
    assert brick.supporting_surface is None


def test_falling_block_lands_on_the_one_below() -> None:
    model = _make_model(
        block_specs=[(EnergyContainerCategory.IRON, (0.0, 0.0)),
                     (EnergyContainerCategory.BRICK, (0.0, 0.3))],
    )
    iron, brick = model.blocks

    _run(model, 60)

    assert brick.position[1] == pytest.approx(constants.BLOCK_SURFACE_WIDTH)
    assert brick.supporting_surface is iron.top_surface
    assert iron.top_surface.element_on_surface is brick
    assert brick.is_stacked_upon(iron)


def test_dragged_block_stops_at_its_neighbor() -> None:
    model = _make_model(
        block_specs=[(EnergyContainerCategory.IRON, (0.0, 0.0)),
                     (EnergyContainerCategory.BRICK, (0.1, 0.0))],
        ground_spots=(0.0, 0.1),
    )
    iron, brick = model.blocks
    model.set_user_controlled(iron, True)

    x, y = model.move_element(iron, (0.2, 0.0))

    assert x == pytest.approx(0.1 - constants.BLOCK_SURFACE_WIDTH)
    assert x < 0.1 - constants.BLOCK_SURFACE_WIDTH
    assert y == 0.0
    assert iron.position[0] == x


def test_dragged_block_cannot_pass_through_a_burner() -> None:
    model = _make_model(
        block_specs=[(EnergyContainerCategory.IRON, (0.0, 0.0))],
        burner_positions=[(0.2, 0.0)],
    )
    iron = model.blocks[0]

    x, _ = model.constrain_position(iron, (0.4, 0.0))

    burner_left = model.burners[0].outline_rect().min_x
    assert x + constants.BLOCK_SURFACE_WIDTH / 2 < burner_left
    assert x + constants.BLOCK_SURFACE_WIDTH / 2 == pytest.approx(burner_left)


def test_paused_model_only_advances_on_manual_step() -> None:
    model = _make_model(block_specs=[(EnergyContainerCategory.IRON, (0.0, 0.0))])
    model.is_playing = False

    model.step(DT)
    assert model.tick_count == 0

    model.manual_step()
    assert model.tick_count == 1
    assert model.elapsed_time == pytest.approx(DT)


def test_sensors_read_blocks_and_air() -> None:
    sensor = TemperatureSensor((0.0, 0.02))
    model = _make_model(block_specs=[(EnergyContainerCategory.IRON, (0.0, 0.0))], sensors=[sensor])
    iron = model.blocks[0]
    iron.set_temperature(500.0)

    model.manual_step()

    assert sensor.sensed_temperature == pytest.approx(iron.temperature)
    assert sensor.sensed_color == iron.color
    assert model.get_temperature_and_color_at_position(0.2, 0.5) == (model.air.temperature, constants.AIR_COLOR)


def test_sensor_reads_burner_flame() -> None:
    model = _make_model(burner_positions=[(0.0, 0.0)])
    burner = model.burners[0]
    burner.set_level(-1.0)

    temperature, color = model.get_temperature_and_color_at_position(*burner.center_point())

    assert temperature == constants.WATER_FREEZING_POINT_TEMPERATURE
    assert color == burner.color


def test_reset_restores_the_scene() -> None:
    model = _make_model(
        block_specs=[(EnergyContainerCategory.IRON, (0.0, 0.0))],
        burner_positions=[(0.2, 0.0)],
        ground_spots=(0.0, 0.2),
    )
    iron = model.blocks[0]
    burner = model.burners[0]
    iron.set_temperature(600.0)
    burner.set_level(1.0)
    _run(model, 30)

    model.reset()

    assert model.tick_count == 0
    assert model.elapsed_time == 0.0
    assert burner.level == 0.0
    assert iron.temperature == pytest.approx(constants.ROOM_TEMPERATURE)
    assert not model.air.chunks
    assert all(value == 0.0 for value in model.air_exchange_accumulators.values())


def test_intro_scene_rests_on_its_ground_spots() -> None:
    model = build_intro_model({}, np.random.default_rng(42))
    spots = intro_ground_spots()

    _run(model, 10)

    assert len(spots) == constants.NUM_GROUND_SPOTS
    assert [burner.name for burner in model.burners] == ["Left burner", "Right burner"]
    for element, spot_x in zip(model.model_elements, spots):
        assert tuple(element.position) == (spot_x, 0.0)
    assert len(model.sensors) == constants.NUM_GROUND_SPOTS
