# heat_model.py

import logging

import numpy as np

import constants
from air import Air
from beaker import Beaker
from burner import Burner
from chunk_distributor import EnergyChunkDistributor
from geometry import Rect
from heat_transfer import EnergyContainerCategory, heat_transfer_factor
from position_constraint import constrain_translation, determine_allowed_translation
from thermal_element import Block

logger = logging.getLogger("heat_sim")


class TemperatureSensor:
    """Reads the temperature and color at a fixed point every tick."""
    def __init__(self, position, name="Sensor"):
        self.name = name
        self.position = (float(position[0]), float(position[1]))
        self.sensed_temperature = constants.ROOM_TEMPERATURE
        self.sensed_color = constants.AIR_COLOR

    def update(self, temperature, color):
        self.sensed_temperature = temperature
        self.sensed_color = color


class HeatExchangeModel:
    """
    Moves thermal energy and energy chunks between every body in the scene.

    Data Contract:
    - Inputs:
        - config (dict): The 'simulation' section of the run configuration.
        - rng (np.random.Generator): The master seeded random number generator.
        - blocks, beakers, burners (lists): The bodies in the scene. Blocks and
          beakers must share one EnergyChunkDistributor.
        - ground_spots (list of float): x positions where bodies rest on the
          ground.
        - air (Air, optional): Created from rng and config if not given.
        - sensors (list of TemperatureSensor, optional).
    - Outputs: None. State is read from the bodies after each step.
    - Side Effects: Mutates every body it owns. Logs construction at INFO.
    - Invariants:
        - The phases of step() always run in the same order.
        - Continuous energy moved between two containers leaves one and
          enters the other unchanged.
        - A chunk changes owner at most once per tick.
    """
    def __init__(self, config, rng: np.random.Generator, blocks, beakers, burners, ground_spots,
                 air=None, sensors=None):
        self.config = config
        self.rng = rng
        self.energy_chunks_visible = config.get('energy_chunks_visible', True)
        self.blocks = list(blocks)
        self.beakers = list(beakers)
        self.burners = list(burners)
        self.thermal_containers = self.blocks + self.beakers
        self.air = air if air is not None else Air(rng, self.energy_chunks_visible)
        self.sensors = list(sensors) if sensors is not None else []

        if not ground_spots:
            msg = "At least one ground spot is required."
            raise ValueError(msg)
        self.ground_spots = sorted(float(x) for x in ground_spots)
        if len(self.ground_spots) > 1:
            self.space_between_spot_centers = min(np.diff(self.ground_spots))
        else:
            self.space_between_spot_centers = constants.BEAKER_WIDTH

        self.air_exchange_accumulators = {container: 0.0 for container in self.thermal_containers}
        self.chunks_moved_this_tick = set()
        self.is_playing = True
        self.elapsed_time = 0.0
        self.tick_count = 0

        logger.info(
            f"HeatExchangeModel created with {len(self.blocks)} blocks, {len(self.beakers)} beakers, "
            f"{len(self.burners)} burners and {len(self.ground_spots)} ground spots."
        )

    @property
    def model_elements(self):
        return self.thermal_containers + self.burners

    # --- Time evolution ---

    def step(self, dt):
        """Advances the model by dt seconds, unless it is paused."""
        if not self.is_playing:
            return
        self._step_model(dt)

    def manual_step(self):
        """Runs exactly one nominal tick, paused or not."""
        self._step_model(constants.SIM_TIME_PER_TICK_NORMAL)

    def _step_model(self, dt):
        self.chunks_moved_this_tick.clear()
        self._settle_unsupported_elements(dt)
        self._update_fluid_displacement()

        # The order of the exchanges below is part of the model's behavior.
        self._exchange_energy_between_containers(dt)
        self._exchange_energy_with_burners(dt)
        self._exchange_chunks_with_burners()
        self._exchange_chunks_between_containers()
        self._exchange_with_air(dt)
        self._exchange_chunks_between_burners_and_air()

        self.air.step(dt)
        for burner in self.burners:
            burner.step(dt)
        for container in self.thermal_containers:
            container.step(dt)
        for sensor in self.sensors:
            sensor.update(*self.get_temperature_and_color_at_position(*sensor.position))
        for burner in self.burners:
            burner.update_heat_proportion(self.energy_chunks_visible)

        self.elapsed_time += dt
        self.tick_count += 1

    def _settle_unsupported_elements(self, dt):
        for element in self.thermal_containers:
            if element.user_controlled or element.supporting_surface is not None:
                continue
            raised = element.position[1] != 0
            if raised or element.position[0] not in self.ground_spots:
                self.fall_to_surface(element, dt)

    def _update_fluid_displacement(self):
        displacing_rects = [block.get_bounds() for block in self.blocks]
        for beaker in self.beakers:
            beaker.update_fluid_level(displacing_rects)

    def _exchange_energy_between_containers(self, dt):
        for index, container1 in enumerate(self.thermal_containers):
            for container2 in self.thermal_containers[index + 1:]:
                container1.exchange_energy_with(container2, dt)

    def _exchange_energy_with_burners(self, dt):
        for burner in self.burners:
            if burner.are_any_on_top(self.thermal_containers):
                for container in self.thermal_containers:
                    burner.add_or_remove_energy_to_from_object(container, dt)
            else:
                burner.add_or_remove_energy_to_from_air(self.air, dt)

    def _exchange_chunks_with_burners(self):
        for container in self.thermal_containers:
            for burner in self.burners:
                if not burner.in_contact_with(container):
                    continue
                burner_balance = burner.energy_chunk_balance_with_objects()
                container_balance = container.energy_chunk_balance()

                if (burner.can_supply_energy_chunk() and not burner.is_locked_out and
                        (burner_balance > 0 or container_balance < 0)):
                    chunk = burner.extract_closest_energy_chunk(*container.center_point())
                    if chunk is not None:
                        self.chunks_moved_this_tick.add(chunk.id)
                        container.add_energy_chunk(chunk)
                elif burner.can_accept_energy_chunk() and (
                        burner_balance < 0 or container_balance > 0 or
                        self._surplus_rests_on(container, container_balance)):
                    chunk = container.extract_energy_chunk_closest_to_bounds(
                        burner.flame_ice_rect(), self.chunks_moved_this_tick)
                    if chunk is not None:
                        self.chunks_moved_this_tick.add(chunk.id)
                        burner.add_energy_chunk(chunk)

    def _surplus_rests_on(self, container, container_balance):
        """
        True when a balanced container on a cooling burner carries a container
        with surplus chunks. The bottom one gives up a chunk now and is
        refilled from above on a later tick.
        """
        if container_balance != 0:
            return False
        above = container.top_surface.element_on_surface
        return above is not None and above.energy_chunk_balance() > 0

    def _exchange_chunks_between_containers(self):
        for index, container1 in enumerate(self.thermal_containers):
            for container2 in self.thermal_containers[index + 1:]:
                contact_length = container1.thermal_contact_area.contact_length(container2.thermal_contact_area)
                if contact_length <= 0:
                    continue
                balance1 = container1.energy_chunk_balance()
                balance2 = container2.energy_chunk_balance()
                if balance1 > 0 and (balance2 < 0 or (balance2 == 0 and self._is_immersed_in(container1, container2))):
                    self._transfer_chunk(container1, container2)
                elif balance2 > 0 and (balance1 < 0 or (balance1 == 0 and self._is_immersed_in(container2, container1))):
                    self._transfer_chunk(container2, container1)

    @staticmethod
    def _is_immersed_in(element, container):
        return (isinstance(container, Beaker) and
                container.thermal_contact_area.contains_rect(element.get_bounds()))

    def _transfer_chunk(self, source, destination):
        chunk = source.extract_energy_chunk_closest_to_bounds(
            destination.thermal_contact_area.bounds, self.chunks_moved_this_tick)
        if chunk is not None:
            self.chunks_moved_this_tick.add(chunk.id)
            destination.add_energy_chunk(chunk)

    def _exchange_with_air(self, dt):
        for container in self.thermal_containers:
            immersed = any(
                beaker is not container and self._is_immersed_in(container, beaker) for beaker in self.beakers
            )
            if immersed:
                continue
            self.air.exchange_energy_with(container, dt)
            self._exchange_chunks_with_air(container, dt)

    def _exchange_chunks_with_air(self, container, dt):
        balance = container.energy_chunk_balance()
        accumulator = (self.air_exchange_accumulators[container] +
                       balance * dt * heat_transfer_factor(EnergyContainerCategory.AIR, container.category))
        if abs(accumulator) < constants.AIR_CHUNK_EXCHANGE_THRESHOLD:
            self.air_exchange_accumulators[container] = accumulator
            return
        self.air_exchange_accumulators[container] = 0.0

        bounds = container.get_bounds()
        if balance > 0:
            point_above_x = self.rng.random() * bounds.width + bounds.min_x
            chunk = container.extract_energy_chunk_closest_to_point(
                point_above_x, bounds.max_y, self.chunks_moved_this_tick)
            if chunk is None:
                return
            constraint = None
            if isinstance(container, Beaker):
                # Keep the whole chunk, not just its center, inside the walls.
                margin = constants.AIR_CHUNK_WANDER_MARGIN / 2
                constraint = Rect(bounds.min_x + margin, bounds.min_y, bounds.max_x - margin, bounds.max_y)
            self.chunks_moved_this_tick.add(chunk.id)
            self.air.add_energy_chunk(chunk, constraint)
        elif balance < 0 and container.temperature < self.air.temperature:
            chunk = self.air.request_energy_chunk(*container.center_point())
            self.chunks_moved_this_tick.add(chunk.id)
            container.add_energy_chunk(chunk)

    def _exchange_chunks_between_burners_and_air(self):
        for burner in self.burners:
            count = burner.energy_chunk_count_for_air()
            if count > 0 and not burner.is_locked_out:
                chunk = burner.extract_closest_energy_chunk(*burner.center_point())
                if chunk is not None:
                    self.air.add_energy_chunk(chunk)
            elif count < 0:
                burner.add_energy_chunk(self.air.request_energy_chunk(*burner.center_point()))

    # --- Free fall and stacking ---

    def _elements_in_spot(self, element, spot_x):
        in_spot = []
        for other in self.model_elements:
            if other is element:
                continue
            other_x, other_y = other.position
            if abs(other_x - spot_x) > self.space_between_spot_centers / 2:
                continue
            # Ignore what is carried inside a falling beaker, but not a neighbor resting a hair lower.
            if other_y <= element.position[1] or abs(other_x - element.position[0]) > element.width / 2:
                in_spot.append(other)
        return in_spot

    @staticmethod
    def _stack_holds_beaker(element):
        current = element
        while current is not None:
            if isinstance(current, Beaker):
                return True
            current = current.top_surface.element_on_surface
        return False

    def fall_to_surface(self, element, dt):
        """
        Moves an unsupported element one step toward the nearest place it can
        rest: the highest surface in the nearest usable ground spot, or the
        ground itself. Lands it when it reaches that height.
        """
        spots = sorted(self.ground_spots, key=lambda spot_x: abs(spot_x - element.position[0]))
        destination_x = None
        destination_surface = None
        for spot_x in spots:
            in_spot = self._elements_in_spot(element, spot_x)
            if not in_spot:
                destination_x = spot_x
                break
            highest = max(in_spot, key=lambda other: other.top_surface.y)
            beaker_in_spot = any(isinstance(other, Beaker) for other in in_spot)
            if not (beaker_in_spot and self._stack_holds_beaker(element)):
                destination_surface = highest.top_surface
                break

        min_y = 0.0
        if destination_surface is not None:
            min_y = destination_surface.y
            element.set_position(destination_surface.center_x, element.position[1])
        elif destination_x is not None:
            element.set_position(destination_x, element.position[1])
        else:
            logger.warning(f"{element.name}: no ground spot or surface available, falling in place.")

        velocity = element.vertical_velocity + constants.GRAVITATIONAL_ACCELERATION * dt
        proposed_y = element.position[1] + velocity * dt
        if proposed_y < min_y:
            proposed_y = min_y
            element.vertical_velocity = 0.0
            if destination_surface is not None:
                element.set_supporting_surface(destination_surface)
                destination_surface.add_element(element)
        else:
            element.vertical_velocity = velocity
        element.set_position(element.position[0], proposed_y)

    # --- User interaction ---

    def set_user_controlled(self, element, held):
        element.user_controlled = bool(held)
        if held:
            element.clear_supporting_surface()
            element.vertical_velocity = 0.0

    def move_element(self, element, proposed_position):
        """Moves a held element as far toward proposed_position as the scene allows."""
        x, y = self.constrain_position(element, proposed_position)
        element.set_position(x, y)
        return x, y

    def constrain_position(self, element, proposed_position):
        """
        Returns the position closest to proposed_position that element can
        reach without passing through a burner, a beaker wall or a block.
        """
        x, y = element.position
        translation = (proposed_position[0] - x, proposed_position[1] - y)
        bounds = element.composite_bounds()

        translation = constrain_translation(bounds, translation, [burner.outline_rect() for burner in self.burners])

        for beaker in self.beakers:
            if beaker is element:
                continue
            if not beaker.is_stacked_upon(element):
                translation = constrain_translation(bounds, translation, beaker.wall_bounds())
            else:
                # The beaker rides along, so it must not pass through the other beakers either.
                for other_beaker in self.beakers:
                    if other_beaker is beaker or other_beaker is element:
                        continue
                    translation = constrain_translation(beaker.get_bounds(), translation, other_beaker.wall_bounds())

        for block in self.blocks:
            if block is element:
                continue
            block_bounds = block.get_bounds()
            stacked = block.is_stacked_upon(element)
            if isinstance(element, Beaker):
                if stacked or element.composite_bounds().contains_rect(block_bounds):
                    continue
                for wall in element.wall_bounds():
                    translation = determine_allowed_translation(wall, block_bounds, translation, True)
            else:
                translation = determine_allowed_translation(bounds, block_bounds, translation, not stacked)

        return x + translation[0], y + translation[1]

    # --- Queries ---

    def get_temperature_and_color_at_position(self, x, y):
        """
        What a sensor at (x, y) reads: blocks first, then beaker fluid or steam,
        then burner flames, and the air if none of these contain the point.
        """
        for block in sorted(self.blocks, key=lambda b: (b.position[1], b.position[0]), reverse=True):
            if block.get_bounds().contains_point(x, y):
                return block.temperature, block.color

        for beaker in self.beakers:
            if beaker.thermal_contact_area.bounds.contains_point(x, y):
                return beaker.temperature, beaker.color
            steam_area = beaker.steam_area()
            if beaker.steaming_proportion > 0 and steam_area.contains_point(x, y):
                return beaker.steam_temperature(y - steam_area.min_y), constants.STEAM_COLOR

        for burner in self.burners:
            if burner.flame_ice_rect().contains_point(x, y):
                return burner.temperature, burner.color

        return self.air.temperature, self.air.color

    def total_thermal_energy(self):
        return sum(container.energy for container in self.thermal_containers)

    def reset(self):
        for burner in self.burners:
            burner.reset()
        for container in self.thermal_containers:
            container.reset()
        self.air.reset()
        for container in self.air_exchange_accumulators:
            self.air_exchange_accumulators[container] = 0.0
        self.is_playing = True
        self.elapsed_time = 0.0
        self.tick_count = 0
        logger.info("HeatExchangeModel reset.")


def intro_ground_spots():
    """Evenly spaced resting spots across the scene, one per body."""
    left = constants.SCENE_LEFT_EDGE + constants.SCENE_EDGE_PAD + constants.BEAKER_WIDTH / 2
    usable_width = (constants.SCENE_RIGHT_EDGE - constants.SCENE_LEFT_EDGE -
                    2 * constants.SCENE_EDGE_PAD - constants.BEAKER_WIDTH)
    spacing = usable_width / (constants.NUM_GROUND_SPOTS - 1)
    return [round((spacing * i + left) * 1000) / 1000 for i in range(constants.NUM_GROUND_SPOTS)]


def build_intro_model(config, rng: np.random.Generator):
    """
    Builds the standard scene: an iron block, a brick, a water beaker, an olive
    oil beaker and two burners, each on its own ground spot.
    """
    visible = config.get('energy_chunks_visible', True)
    distributor = EnergyChunkDistributor(rng, config.get('distribution_algorithm', 'repulsive'))
    spots = intro_ground_spots()

    blocks = [
        Block((spots[0], 0.0), EnergyContainerCategory.IRON, distributor, rng, visible),
        Block((spots[1], 0.0), EnergyContainerCategory.BRICK, distributor, rng, visible),
    ]
    beakers = [
        Beaker((spots[2], 0.0), EnergyContainerCategory.WATER, distributor, rng, visible),
        Beaker((spots[3], 0.0), EnergyContainerCategory.OLIVE_OIL, distributor, rng, visible),
    ]
    burners = [
        Burner((spots[4], 0.0), rng, visible, name="Left burner"),
        Burner((spots[5], 0.0), rng, visible, name="Right burner"),
    ]
    sensors = [TemperatureSensor((spot_x, 0.02), name=f"Sensor {index}") for index, spot_x in enumerate(spots)]
    return HeatExchangeModel(config, rng, blocks, beakers, burners, spots, sensors=sensors)
