# burner.py

import logging
import math

import numpy as np

import constants
from energy_chunk import EnergyChunk, EnergyChunkWanderController, EnergyType
from geometry import Rect
from thermal_element import HorizontalSurface

logger = logging.getLogger("heat_sim")


def interpolate_burner_color(level):
    """Blends between the burner color keyframes for a heat/cool level."""
    for i in range(len(constants.BURNER_COLOR_KEYFRAMES) - 1):
        pos1, color1 = constants.BURNER_COLOR_KEYFRAMES[i]
        pos2, color2 = constants.BURNER_COLOR_KEYFRAMES[i + 1]
        if pos1 <= level <= pos2:
            local_t = (level - pos1) / (pos2 - pos1)
            r = int(color1[0] * (1 - local_t) + color2[0] * local_t)
            g = int(color1[1] * (1 - local_t) + color2[1] * local_t)
            b = int(color1[2] * (1 - local_t) + color2[2] * local_t)
            return (r, g, b)
    return constants.BURNER_COLOR_KEYFRAMES[-1][1]


class Burner:
    """
    A fixed heat source or sink that warms or cools whatever sits on it.

    Data Contract:
    - Inputs:
        - position (tuple): Bottom-center of the burner in meters.
        - rng (np.random.Generator): Seeded generator for chunk wandering.
        - energy_chunks_visible (bool): Visibility given to chunks it creates.
    - Outputs: Chunk balances derived from its two energy accumulators, read by
      the exchange engine to decide discrete transfers.
    - Side Effects: Owns chunks travelling to its center and drops each one on
      arrival. Any chunk it emits starts a short lockout.
    - Invariants: -1 <= level <= 1 and lockout_timer >= 0.
    """
    def __init__(self, position, rng: np.random.Generator, energy_chunks_visible: bool = True, name="Burner"):
        self.name = name
        self.position = np.array(position, dtype=float)
        self.rng = rng
        self.energy_chunks_visible = energy_chunks_visible
        self.level = 0.0
        self.heat_proportion = 0.0
        self.lockout_timer = 0.0
        self.energy_exchanged_with_objects = 0.0
        self.energy_exchanged_with_air = 0.0
        self.chunks = []
        self._wander_controllers = []

        outline = self.outline_rect()
        self.top_surface = HorizontalSurface(self, outline.min_x, outline.max_x, outline.max_y)
        logger.info(f"{self.name} created at x={self.position[0]:.3f}.")

    # --- Geometry ---

    def outline_rect(self) -> Rect:
        x, y = self.position
        half_side = constants.BURNER_SIDE_LENGTH / 2
        return Rect(x - half_side, y, x + half_side, y + constants.BURNER_SIDE_LENGTH)

    def center_point(self):
        return self.position[0], self.position[1] + constants.BURNER_SIDE_LENGTH / 2

    def flame_ice_rect(self) -> Rect:
        outline = self.outline_rect()
        return Rect.from_size(outline.center_x - outline.width / 4, outline.center_y,
                              outline.width / 2, outline.height / 2)

    def in_contact_with(self, container) -> bool:
        outline = self.outline_rect()
        area = container.thermal_contact_area.bounds
        x_contact = outline.min_x < area.center_x < outline.max_x
        y_contact = abs(area.min_y - outline.max_y) < constants.BURNER_CONTACT_DISTANCE
        return x_contact and y_contact

    def are_any_on_top(self, containers) -> bool:
        return any(self.in_contact_with(container) for container in containers)

    # --- Heating and cooling ---

    def set_level(self, level):
        if not -1.0 <= level <= 1.0:
            msg = f"Burner level must be within [-1, 1], got {level}."
            raise ValueError(msg)
        self.level = float(level)

    @property
    def temperature(self):
        return max(constants.ROOM_TEMPERATURE + self.level * 100, constants.WATER_FREEZING_POINT_TEMPERATURE)

    @property
    def color(self):
        return interpolate_burner_color(self.level)

    def can_supply_energy_chunk(self):
        return self.level > 0

    def can_accept_energy_chunk(self):
        return self.level < 0

    def add_or_remove_energy_to_from_object(self, container, dt):
        """Heats or cools a container it touches. Cooling never takes it below its minimum energy."""
        if not self.in_contact_with(container):
            return 0.0
        delta_energy = constants.BURNER_MAX_ENERGY_GENERATION_RATE * self.level * dt
        if delta_energy < 0:
            delta_energy = max(delta_energy, -max(container.energy_above_minimum(), 0.0))
        container.change_energy(delta_energy)
        self.energy_exchanged_with_objects += delta_energy
        return delta_energy

    def add_or_remove_energy_to_from_air(self, air, dt):
        delta_energy = constants.BURNER_MAX_ENERGY_GENERATION_RATE_INTO_AIR * self.level * dt
        air.change_energy(delta_energy)
        self.energy_exchanged_with_air += delta_energy
        return delta_energy

    def energy_chunk_balance_with_objects(self) -> int:
        delta_energy = self.energy_exchanged_with_objects
        return int(math.floor(abs(delta_energy) / constants.ENERGY_PER_CHUNK) * np.sign(delta_energy))

    def energy_chunk_count_for_air(self) -> int:
        """
        Chunks owed to the air. Chunks that drifted out of capture range are
        counted first, otherwise the air accumulator is quantized.
        """
        count = 0
        if self.chunks and self.level >= 0:
            count = sum(
                1 for chunk in self.chunks
                if chunk.distance_to(*self.position) > constants.BURNER_ENERGY_CHUNK_CAPTURE_DISTANCE
            )
        if count == 0:
            delta_energy = self.energy_exchanged_with_air
            count = int(math.floor(abs(delta_energy) / constants.ENERGY_PER_CHUNK) * np.sign(delta_energy))
        return count

    def _reset_accumulators(self):
        self.energy_exchanged_with_objects = 0.0
        self.energy_exchanged_with_air = 0.0

    # --- Energy chunks ---

    @property
    def is_locked_out(self):
        return self.lockout_timer > 0

    def add_energy_chunk(self, chunk: EnergyChunk):
        """Takes a chunk, which then travels to the burner center and disappears."""
        chunk.z_position = 0.0
        self.chunks.append(chunk)
        destination = np.array(self.center_point())
        self._wander_controllers.append(EnergyChunkWanderController(chunk, destination, self.rng))
        self._reset_accumulators()

    def extract_closest_energy_chunk(self, x, y):
        """
        Hands out the chunk nearest a point among those that have left the
        burner's capture range. When heating and none qualify, a new chunk is
        made at the burner center. Returns None if cooling with nothing to give.
        """
        closest_chunk = None
        closest_distance = math.inf
        for chunk in self.chunks:
            if chunk.distance_to(*self.position) <= constants.BURNER_ENERGY_CHUNK_CAPTURE_DISTANCE:
                continue
            distance = chunk.distance_to(x, y)
            if distance < closest_distance:
                closest_chunk = chunk
                closest_distance = distance

        if closest_chunk is not None:
            self.chunks.remove(closest_chunk)
            self._wander_controllers = [
                controller for controller in self._wander_controllers if controller.chunk is not closest_chunk
            ]
        elif self.level > 0:
            closest_chunk = EnergyChunk(EnergyType.THERMAL, self.center_point(), visible=self.energy_chunks_visible)

        if closest_chunk is None:
            logger.warning(f"{self.name}: energy chunk requested while not heating and none available.")
            return None

        self._reset_accumulators()
        self.lockout_timer = constants.BURNER_CHUNK_LOCKOUT_TIME
        return closest_chunk

    def update_heat_proportion(self, energy_chunks_visible):
        """
        With chunks shown, the displayed heat follows the chunks queued in the
        burner through a sigmoid. Otherwise it is just the level.
        """
        if energy_chunks_visible:
            queued = len(self.chunks) + abs(self.energy_chunk_balance_with_objects())
            self.heat_proportion = 2 / (1 + math.exp(-constants.HEAT_PROPORTION_SIGMOID_STEEPNESS * queued)) - 1
        else:
            self.heat_proportion = abs(self.level)

    # --- Time evolution ---

    def step(self, dt):
        self.lockout_timer = max(self.lockout_timer - dt, 0.0)
        for controller in list(self._wander_controllers):
            controller.update_position(dt)
            if controller.is_destination_reached():
                self.chunks.remove(controller.chunk)
                self._wander_controllers.remove(controller)

    def reset(self):
        self.chunks.clear()
        self._wander_controllers.clear()
        self._reset_accumulators()
        self.level = 0.0
        self.heat_proportion = 0.0
        self.lockout_timer = 0.0
        self.top_surface.clear()
