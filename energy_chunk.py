# energy_chunk.py

import enum
import itertools
import math

import numpy as np

import constants

_chunk_ids = itertools.count()


class EnergyType(enum.Enum):
    THERMAL = "thermal"
    ELECTRICAL = "electrical"
    MECHANICAL = "mechanical"
    LIGHT = "light"
    CHEMICAL = "chemical"
    HIDDEN = "hidden"


def energy_to_num_chunks(energy: float) -> int:
    """
    Maps a continuous energy value to the number of chunks that should
    represent it. The map is linear and calibrated on the brick, so it has an
    offset: zero energy does not mean zero chunks until the result is clamped.
    """
    proportion = (energy - constants.LOW_ENERGY_FOR_MAP_FUNCTION) / (
        constants.HIGH_ENERGY_FOR_MAP_FUNCTION - constants.LOW_ENERGY_FOR_MAP_FUNCTION
    )
    num_chunks = constants.NUM_ENERGY_CHUNKS_IN_BRICK_AT_FREEZING + proportion * (
        constants.NUM_ENERGY_CHUNKS_IN_BRICK_AT_ROOM_TEMP - constants.NUM_ENERGY_CHUNKS_IN_BRICK_AT_FREEZING
    )
    return max(int(round(num_chunks)), 0)


class EnergyChunk:
    """
    A single discrete unit of visible energy.

    Data Contract:
    - Inputs:
        - kind (EnergyType): What form of energy the chunk represents.
        - position (sequence of 2 floats): Initial position in meters.
        - velocity (sequence of 2 floats, optional): Initial velocity in m/s.
        - visible (bool): Owned by the configuration surface, never by physics.
    - Outputs: None.
    - Side Effects: Draws a new id from a process-wide counter.
    - Invariants: position and velocity are float arrays of shape (2,) that are
      mutated in place and never rebound, so holders of a reference stay current.
    """
    def __init__(self, kind: EnergyType, position, velocity=None, visible: bool = True):
        self.id = next(_chunk_ids)
        self.kind = kind
        self.position = np.array(position, dtype=float)
        self.velocity = np.zeros(2, dtype=float) if velocity is None else np.array(velocity, dtype=float)
        self.visible = visible
        self.z_position = 0.0

    @property
    def x(self):
        return self.position[0]

    @property
    def y(self):
        return self.position[1]

    def set_position(self, x, y):
        self.position[0] = x
        self.position[1] = y

    def translate(self, dx, dy):
        self.position[0] += dx
        self.position[1] += dy

    def distance_to(self, x, y):
        return math.hypot(self.position[0] - x, self.position[1] - y)

    def __repr__(self):
        return (f"EnergyChunk(id={self.id}, kind={self.kind.name}, "
                f"position=({self.position[0]:.4f}, {self.position[1]:.4f}))")


class EnergyChunkWanderController:
    """
    Moves a chunk toward a destination along a meandering path.

    The heading is re-chosen every 0.4-0.8 s and deviates randomly from the
    straight line until the chunk is close, then points straight at the
    destination. The destination is an array that the owner may keep updating
    in place (e.g. a container's position).

    Data Contract:
    - Inputs:
        - chunk (EnergyChunk): The chunk being moved.
        - destination (np.ndarray): Shape (2,), read on every update.
        - rng (np.random.Generator): Seeded generator for headings and timers.
        - horizontal_constraint (Rect, optional): While the chunk is below the
          top of this rectangle it bounces off its vertical sides.
    - Side Effects: Mutates chunk.position.
    """
    def __init__(self, chunk: EnergyChunk, destination: np.ndarray, rng: np.random.Generator,
                 horizontal_constraint=None):
        self.chunk = chunk
        self.destination = destination
        self.rng = rng
        self.horizontal_constraint = horizontal_constraint
        self.velocity = np.array([0.0, constants.WANDER_MAX_VELOCITY])
        self.countdown_timer = 0.0
        self._reset_countdown_timer()
        self._change_velocity_vector()

    def _reset_countdown_timer(self):
        self.countdown_timer = (constants.WANDER_MIN_TIME_IN_ONE_DIRECTION +
                                (constants.WANDER_MAX_TIME_IN_ONE_DIRECTION -
                                 constants.WANDER_MIN_TIME_IN_ONE_DIRECTION) * self.rng.random())

    def _change_velocity_vector(self):
        to_destination = self.destination - self.chunk.position
        angle = math.atan2(to_destination[1], to_destination[0])
        if np.hypot(to_destination[0], to_destination[1]) > constants.WANDER_STOP_DISTANCE:
            angle += (self.rng.random() - 0.5) * 2 * constants.WANDER_MAX_ANGLE_VARIATION
        speed = (constants.WANDER_MIN_VELOCITY +
                 (constants.WANDER_MAX_VELOCITY - constants.WANDER_MIN_VELOCITY) * self.rng.random())
        self.velocity[0] = speed * math.cos(angle)
        self.velocity[1] = speed * math.sin(angle)

    def update_position(self, dt):
        position = self.chunk.position
        distance = float(np.hypot(*(self.destination - position)))
        speed = float(np.hypot(self.velocity[0], self.velocity[1]))

        if distance < speed * dt:
            # Close enough to arrive this step.
            self.chunk.set_position(self.destination[0], self.destination[1])
            self.velocity[:] = 0.0
            return

        constraint = self.horizontal_constraint
        if constraint is not None and position[1] < constraint.max_y:
            proposed_x = position[0] + self.velocity[0] * dt
            if proposed_x < constraint.min_x or proposed_x > constraint.max_x:
                self.velocity[0] = -self.velocity[0]

        self.chunk.translate(self.velocity[0] * dt, self.velocity[1] * dt)
        self.countdown_timer -= dt
        if self.countdown_timer <= 0:
            self._change_velocity_vector()
            self._reset_countdown_timer()

    def is_destination_reached(self):
        return np.array_equal(self.chunk.position, self.destination)
