# air.py

import numpy as np

import constants
from energy_chunk import EnergyChunk, EnergyChunkWanderController, EnergyType
from geometry import Rect
from heat_transfer import EnergyContainerCategory, heat_transfer_factor
from thermal_element import ThermalContactArea

AIR_VOLUME = constants.AIR_WIDTH * constants.AIR_HEIGHT * constants.AIR_DEPTH
AIR_MASS = AIR_VOLUME * constants.AIR_DENSITY
INITIAL_AIR_ENERGY = AIR_MASS * constants.AIR_SPECIFIC_HEAT * constants.ROOM_TEMPERATURE


class Air:
    """
    The ambient air, a heat reservoir that never changes temperature.

    Data Contract:
    - Inputs:
        - rng (np.random.Generator): Seeded generator for chunk wandering.
        - energy_chunks_visible (bool): Visibility given to chunks it creates.
    - Outputs: exchange_energy_with() returns the energy moved into the
      container (negative if the air absorbed energy).
    - Side Effects: Owns the chunks rising through it and drops each one when
      it reaches the top of the air.
    - Invariants: energy is constant, change_energy() is a no-op.
    """
    def __init__(self, rng: np.random.Generator, energy_chunks_visible: bool = True):
        self.name = "Air"
        self.rng = rng
        self.energy_chunks_visible = energy_chunks_visible
        self.mass = AIR_MASS
        self.specific_heat = constants.AIR_SPECIFIC_HEAT
        self.category = EnergyContainerCategory.AIR
        self.color = constants.AIR_COLOR
        self.energy = INITIAL_AIR_ENERGY
        self.chunks = []
        self._wander_controllers = []
        self.thermal_contact_area = ThermalContactArea(
            Rect(-constants.AIR_WIDTH / 2, 0.0, constants.AIR_WIDTH / 2, constants.AIR_HEIGHT), True
        )

    @property
    def temperature(self):
        return self.energy / (self.mass * self.specific_heat)

    def change_energy(self, delta_energy):
        # The air is an infinite sink, gaining or losing energy leaves it unchanged.
        pass

    def exchange_energy_with(self, container, dt):
        """
        Exchanges energy with a container through their contact length. Any
        energy the container holds past its max temperature is dumped here.
        """
        energy_to_exchange = 0.0
        contact_length = self.thermal_contact_area.contact_length(container.thermal_contact_area)
        if contact_length <= 0:
            return 0.0

        factor = heat_transfer_factor(self.category, container.category)
        num_full_steps = int(dt // constants.MAX_HEAT_EXCHANGE_TIME_STEP)
        leftover_time = dt - num_full_steps * constants.MAX_HEAT_EXCHANGE_TIME_STEP
        for step in range(num_full_steps + 1):
            time_step = constants.MAX_HEAT_EXCHANGE_TIME_STEP if step < num_full_steps else leftover_time
            energy_to_exchange += (container.temperature - self.temperature) * contact_length * factor * time_step

        if energy_to_exchange >= 0:
            energy_to_exchange = max(energy_to_exchange, container.energy_beyond_max_temperature())

        container.change_energy(-energy_to_exchange)
        return -energy_to_exchange

    def add_energy_chunk(self, chunk: EnergyChunk, horizontal_constraint=None):
        """Takes a chunk and sends it wandering straight up out of the air."""
        chunk.z_position = 0.0
        self.chunks.append(chunk)
        destination = np.array([chunk.x, constants.AIR_HEIGHT])
        self._wander_controllers.append(
            EnergyChunkWanderController(chunk, destination, self.rng, horizontal_constraint)
        )

    def request_energy_chunk(self, x, y):
        """Creates a chunk at the top of the air, above the given point."""
        return EnergyChunk(EnergyType.THERMAL, (x, constants.AIR_HEIGHT), visible=self.energy_chunks_visible)

    def step(self, dt):
        for controller in list(self._wander_controllers):
            controller.update_position(dt)
            if controller.is_destination_reached():
                self.chunks.remove(controller.chunk)
                self._wander_controllers.remove(controller)

    def reset(self):
        self.energy = INITIAL_AIR_ENERGY
        self.chunks.clear()
        self._wander_controllers.clear()
