# thermal_element.py

import logging
import math

import numpy as np

import constants
from energy_chunk import EnergyChunk, EnergyChunkWanderController, EnergyType, energy_to_num_chunks
from geometry import Rect, horizontal_overlap, union_of, vertical_overlap
from heat_transfer import EnergyContainerCategory, heat_transfer_factor

logger = logging.getLogger("heat_sim")


class EnergyChunkSlice:
    """
    A rectangular layer of a container that holds some of its chunks.

    Several slices per container are offset from one another to fake depth.
    The physics ignores z_position, it only orders the layers for drawing.
    Moving a slice moves every chunk it owns by the same amount.
    """
    def __init__(self, bounds: Rect, z_position: float, anchor: np.ndarray):
        self.bounds = bounds
        self.z_position = z_position
        self.anchor = anchor
        self.chunks = []

    def add_energy_chunk(self, chunk: EnergyChunk):
        chunk.z_position = self.z_position
        self.chunks.append(chunk)

    def remove(self, chunk):
        self.chunks.remove(chunk)

    def translate(self, dx, dy):
        self.bounds = self.bounds.translated(dx, dy)
        for chunk in self.chunks:
            chunk.translate(dx, dy)

    def update_height(self, proportion):
        """Stretches or squashes the slice vertically, keeping its bottom edge fixed."""
        self.bounds = self.bounds.with_height(self.bounds.height * proportion)

    @property
    def num_energy_chunks(self):
        return len(self.chunks)

    @property
    def chunk_density(self):
        return len(self.chunks) / self.bounds.area


class ThermalContactArea:
    """
    The region through which a body exchanges heat, plus whether other bodies
    can be immersed in it (fluids and the air can, blocks cannot).
    """
    def __init__(self, bounds: Rect, supports_immersion: bool):
        self.bounds = bounds
        self.supports_immersion = supports_immersion

    def contact_length(self, other: "ThermalContactArea") -> float:
        """
        Length of the boundary shared with another contact area, in meters.

        Overlap in both axes only counts when one of the areas supports
        immersion, in which case the perimeter of the immersed part is used.
        Overlap in a single axis counts when the other axis is within
        TOUCH_DISTANCE_THRESHOLD of touching.
        """
        this, that = self.bounds, other.bounds
        x_overlap = horizontal_overlap(this, that)
        y_overlap = vertical_overlap(this, that)
        contact_length = 0.0

        if x_overlap > 0 and y_overlap > 0:
            if self.supports_immersion or other.supports_immersion:
                immersion = this.intersection(that)
                contact_length = immersion.width * 2 + immersion.height * 2
                if immersion.width != this.width and immersion.width != that.width:
                    # Only partly overlapping in x.
                    contact_length -= immersion.height
                if immersion.height != this.height and immersion.height != that.height:
                    # Only partly overlapping in y.
                    contact_length -= immersion.width
        elif x_overlap > 0:
            if (abs(this.max_y - that.min_y) < constants.TOUCH_DISTANCE_THRESHOLD or
                    abs(this.min_y - that.max_y) < constants.TOUCH_DISTANCE_THRESHOLD):
                contact_length = x_overlap
        elif y_overlap > 0:
            if (abs(this.max_x - that.min_x) < constants.TOUCH_DISTANCE_THRESHOLD or
                    abs(this.min_x - that.max_x) < constants.TOUCH_DISTANCE_THRESHOLD):
                contact_length = y_overlap
        return contact_length

    def contains_rect(self, rect: Rect) -> bool:
        return self.bounds.contains_rect(rect)


class HorizontalSurface:
    """
    A flat top that one other element may rest on.

    The owner keeps the extent current as it moves. At most one element can
    rest on a surface at a time.
    """
    def __init__(self, owner, min_x=0.0, max_x=0.0, y=0.0):
        self.owner = owner
        self.min_x = min_x
        self.max_x = max_x
        self.y = y
        self.element_on_surface = None

    def update(self, min_x, max_x, y):
        self.min_x = min_x
        self.max_x = max_x
        self.y = y

    @property
    def center_x(self):
        return (self.min_x + self.max_x) / 2

    def overlaps_with(self, other):
        return self.min_x < other.max_x and other.min_x < self.max_x

    def add_element(self, element):
        assert self.element_on_surface is None, "Only one element may rest on a surface at a time"
        self.element_on_surface = element

    def clear(self):
        self.element_on_surface = None


class RectangularThermalElement:
    """
    Base class for movable bodies that hold thermal energy and energy chunks.

    Data Contract:
    - Inputs:
        - name (str): Label used in logs.
        - position (tuple): Bottom-center of the element in meters.
        - width, height (float): Size of the element's outline in meters.
        - mass (float): kg. specific_heat (float): J/kg-K.
        - category (EnergyContainerCategory): Key into the heat transfer table.
        - distributor (EnergyChunkDistributor): Spreads chunks in the slices.
        - rng (np.random.Generator): The master seeded generator.
        - energy_chunks_visible (bool): Visibility given to chunks it creates.
    - Outputs: None. Mutated each tick by the exchange engine.
    - Side Effects: Creates an initial chunk population matching its energy.
    - Invariants:
        - Every chunk is in exactly one of the slices or approaching_chunks.
        - position is one array for the element's lifetime, shared with the
          slices as their anchor.
    """
    def __init__(self, name, position, width, height, mass, specific_heat, category,
                 distributor, rng, energy_chunks_visible=True):
        self.name = name
        self.initial_position = (float(position[0]), float(position[1]))
        self.position = np.array(self.initial_position, dtype=float)
        self.width = width
        self.height = height
        self.mass = mass
        self.specific_heat = specific_heat
        self.category = category
        self.distributor = distributor
        self.rng = rng
        self.energy_chunks_visible = energy_chunks_visible

        self.energy = mass * specific_heat * constants.ROOM_TEMPERATURE
        self.min_energy = constants.WATER_FREEZING_POINT_TEMPERATURE * mass * specific_heat

        self.user_controlled = False
        self.supporting_surface = None
        self.vertical_velocity = 0.0
        self.top_surface = HorizontalSurface(self)

        self.slices = []
        self.approaching_chunks = []
        self._wander_controllers = []
        self.distribution_countdown = 0.0

        self._add_energy_chunk_slices()
        self._update_surfaces()
        self.add_initial_energy_chunks()

        logger.info(
            f"{self.name} created: mass={self.mass:.4f} kg, energy={self.energy:.1f} J, "
            f"{self.num_energy_chunks} energy chunks in {len(self.slices)} slices."
        )

    # --- Geometry ---

    @property
    def x(self):
        return self.position[0]

    @property
    def y(self):
        return self.position[1]

    def get_bounds(self) -> Rect:
        return Rect(self.position[0] - self.width / 2, self.position[1],
                    self.position[0] + self.width / 2, self.position[1] + self.height)

    def composite_bounds(self) -> Rect:
        """Bounds used by the position constraint solver."""
        return self.get_bounds()

    @property
    def thermal_contact_area(self) -> ThermalContactArea:
        return ThermalContactArea(self.get_bounds(), False)

    def center_point(self):
        return self.position[0], self.position[1] + self.height / 2

    def slice_bounds(self) -> Rect:
        return union_of(energy_slice.bounds for energy_slice in self.slices)

    def set_position(self, x, y):
        """
        Moves the element and everything it carries: its slices, the chunks in
        them, and whatever rests on its top surface.
        """
        dx = x - self.position[0]
        dy = y - self.position[1]
        if dx == 0 and dy == 0:
            return
        self.position[0] = x
        self.position[1] = y
        for energy_slice in self.slices:
            energy_slice.translate(dx, dy)
        self._update_surfaces()
        rider = self.top_surface.element_on_surface
        if rider is not None:
            rider.set_position(rider.position[0] + dx, rider.position[1] + dy)

    def _update_surfaces(self):
        bounds = self.get_bounds()
        self.top_surface.update(bounds.min_x, bounds.max_x, bounds.max_y)

    def is_stacked_upon(self, element) -> bool:
        """True if this element rests on element, directly or through a stack."""
        surface = self.supporting_surface
        if surface is None:
            return False
        owner = surface.owner
        if owner is element:
            return True
        return isinstance(owner, RectangularThermalElement) and owner.is_stacked_upon(element)

    def set_supporting_surface(self, surface):
        self.supporting_surface = surface

    def clear_supporting_surface(self):
        if self.supporting_surface is not None:
            self.supporting_surface.clear()
            self.supporting_surface = None

    # --- Energy ---

    @property
    def temperature(self):
        return self.energy / (self.mass * self.specific_heat)

    def change_energy(self, delta_energy):
        self.energy += delta_energy

    def energy_above_minimum(self):
        return self.energy - self.min_energy

    def energy_beyond_max_temperature(self):
        return 0.0

    def set_temperature(self, temperature):
        """Sets the energy to match a temperature and rebuilds the chunk population."""
        self.energy = temperature * self.mass * self.specific_heat
        self.add_initial_energy_chunks()

    def exchange_energy_with(self, other, dt):
        """
        Exchanges energy with another container through their contact length.

        Returns the energy that left this element (negative if it gained). The
        step is subdivided so large dt values cannot overshoot equilibrium.
        """
        exchanged = 0.0
        contact_length = self.thermal_contact_area.contact_length(other.thermal_contact_area)
        if contact_length <= 0:
            return exchanged
        if abs(other.temperature - self.temperature) <= constants.TEMPERATURES_EQUAL_THRESHOLD:
            return exchanged

        factor = heat_transfer_factor(self.category, other.category)
        num_full_steps = int(dt // constants.MAX_HEAT_EXCHANGE_TIME_STEP)
        leftover_time = dt - num_full_steps * constants.MAX_HEAT_EXCHANGE_TIME_STEP
        for step in range(num_full_steps + 1):
            time_step = constants.MAX_HEAT_EXCHANGE_TIME_STEP if step < num_full_steps else leftover_time
            gained = (other.temperature - self.temperature) * contact_length * factor * time_step
            other.change_energy(-gained)
            self.change_energy(gained)
            exchanged -= gained
        return exchanged

    # --- Energy chunks ---

    @property
    def num_energy_chunks_in_slices(self):
        return sum(energy_slice.num_energy_chunks for energy_slice in self.slices)

    @property
    def num_energy_chunks(self):
        return self.num_energy_chunks_in_slices + len(self.approaching_chunks)

    def energy_chunk_balance(self) -> int:
        """Chunks held minus chunks the current energy calls for."""
        return self.num_energy_chunks - energy_to_num_chunks(self.energy)

    def iter_energy_chunks(self):
        for energy_slice in self.slices:
            yield from energy_slice.chunks

    def _add_energy_chunk_slices(self):
        raise NotImplementedError

    def _new_chunk(self, x, y):
        return EnergyChunk(EnergyType.THERMAL, (x, y), visible=self.energy_chunks_visible)

    def add_energy_chunk(self, chunk: EnergyChunk):
        """
        Takes ownership of a chunk. A chunk already inside the slices joins
        one directly, otherwise it wanders toward the element first.
        """
        if self.slice_bounds().contains_point(chunk.x, chunk.y):
            self._add_energy_chunk_to_slice(chunk)
        else:
            chunk.z_position = 0.0
            self.approaching_chunks.append(chunk)
            self._wander_controllers.append(EnergyChunkWanderController(chunk, self.position, self.rng))

    def _add_energy_chunk_to_slice(self, chunk):
        # Start near the middle of the order and take the least crowded slice.
        slice_index = (len(self.slices) - 1) // 2
        chosen_index = None
        lowest_density = math.inf
        for _ in range(len(self.slices)):
            density = self.slices[slice_index].chunk_density
            if chosen_index is None or density < lowest_density:
                chosen_index = slice_index
                lowest_density = density
            slice_index = (slice_index + 1) % len(self.slices)
        self.slices[chosen_index].add_energy_chunk(chunk)
        self.reset_distribution_countdown()

    def remove_energy_chunk(self, chunk):
        for energy_slice in self.slices:
            if chunk in energy_slice.chunks:
                energy_slice.remove(chunk)
                self.reset_distribution_countdown()
                return True
        return False

    def reset_distribution_countdown(self):
        self.distribution_countdown = constants.MAX_ENERGY_CHUNK_REDISTRIBUTION_TIME

    def clear_distribution_countdown(self):
        self.distribution_countdown = 0.0

    def extract_energy_chunk_closest_to_point(self, x, y, exclude=()):
        """
        Removes and returns the chunk nearest a point, or None if the element
        would be left with no chunks. Chunks whose ids are in exclude are
        never picked.
        """
        if self.num_energy_chunks_in_slices <= 1:
            logger.warning(f"{self.name}: only {self.num_energy_chunks_in_slices} energy chunk left, can't extract one.")
            return None
        closest_chunk = None
        closest_distance = math.inf
        for chunk in self.iter_energy_chunks():
            if chunk.id in exclude:
                continue
            # Undo the depth offset, otherwise the front slice almost always wins.
            compensated_y = chunk.y - constants.Z_TO_Y_OFFSET_MULTIPLIER * chunk.z_position
            distance = math.hypot(chunk.x - x, compensated_y - y)
            if distance < closest_distance:
                closest_chunk = chunk
                closest_distance = distance
        if closest_chunk is None:
            logger.warning(f"{self.name}: every energy chunk already moved this tick, none extracted.")
            return None
        self.remove_energy_chunk(closest_chunk)
        return closest_chunk

    def extract_energy_chunk_closest_to_bounds(self, destination: Rect, exclude=()):
        """
        Removes and returns a chunk suited to travel into the destination.

        If this element sits inside the destination, a chunk near one of its
        vertical edges is used. If it encloses the destination, the nearest
        chunk not already inside it is used. Otherwise the chunk nearest the
        destination's center. Chunks whose ids are in exclude are skipped.
        """
        if self.num_energy_chunks_in_slices <= 1:
            logger.warning(f"{self.name}: only {self.num_energy_chunks_in_slices} energy chunk left, can't extract one.")
            return None
        candidates = [chunk for chunk in self.iter_energy_chunks() if chunk.id not in exclude]

        chunk_to_extract = None
        my_bounds = self.slice_bounds()
        contact_area = self.thermal_contact_area

        if destination.contains_rect(contact_area.bounds):
            closest = math.inf
            for chunk in candidates:
                distance = min(abs(my_bounds.min_x - chunk.x), abs(my_bounds.max_x - chunk.x))
                if distance < closest:
                    chunk_to_extract = chunk
                    closest = distance
        elif contact_area.contains_rect(destination):
            closest = math.inf
            for chunk in candidates:
                distance = min(abs(destination.min_x - chunk.x), abs(destination.max_x - chunk.x))
                if not destination.contains_point(chunk.x, chunk.y) and distance < closest:
                    chunk_to_extract = chunk
                    closest = distance
        else:
            return self.extract_energy_chunk_closest_to_point(*destination.center, exclude=exclude)

        if chunk_to_extract is None:
            logger.warning(f"{self.name}: no energy chunk found by extraction rule, using first available.")
            chunk_to_extract = next(iter(candidates), None)
            if chunk_to_extract is None:
                logger.warning(f"{self.name}: no energy chunks available for extraction.")
                return None

        self.remove_energy_chunk(chunk_to_extract)
        return chunk_to_extract

    def add_initial_energy_chunks(self):
        """
        Replaces all chunks with a fresh population sized to the current energy
        and settles it with the distributor.
        """
        for energy_slice in self.slices:
            energy_slice.chunks.clear()
        self.approaching_chunks.clear()
        self._wander_controllers.clear()

        target = energy_to_num_chunks(self.energy)
        small_offset = 0.00001  # Keeps chunks from starting exactly on top of each other.
        slice_index = max(len(self.slices) // 2 - 1, 0)
        for added in range(target):
            energy_slice = self.slices[slice_index]
            center_x, center_y = energy_slice.bounds.center
            energy_slice.add_energy_chunk(self._new_chunk(
                center_x + small_offset * added,
                center_y + small_offset * energy_slice.num_energy_chunks,
            ))
            slice_index = (slice_index + 1) % len(self.slices)

        self.clear_distribution_countdown()
        for cycle in range(constants.MAX_NUMBER_OF_INITIALIZATION_DISTRIBUTION_CYCLES):
            if not self.distributor.update_positions(self.slices, constants.SIM_TIME_PER_TICK_NORMAL):
                break
        else:
            logger.debug(f"{self.name}: initial chunk distribution hit the cycle cap.")

    # --- Time evolution ---

    def step(self, dt):
        if self.distribution_countdown > 0:
            if self.distributor.update_positions(self.slices, dt):
                self.distribution_countdown = max(self.distribution_countdown - dt, 0.0)
            else:
                self.clear_distribution_countdown()
        self._animate_approaching_chunks(dt)

    def _animate_approaching_chunks(self, dt):
        if not self._wander_controllers:
            return
        bounds = self.slice_bounds()
        for controller in list(self._wander_controllers):
            controller.update_position(dt)
            chunk = controller.chunk
            if bounds.contains_point(chunk.x, chunk.y):
                self._wander_controllers.remove(controller)
                self.approaching_chunks.remove(chunk)
                self._add_energy_chunk_to_slice(chunk)

    def reset(self):
        self.clear_supporting_surface()
        self.top_surface.clear()
        self.user_controlled = False
        self.vertical_velocity = 0.0
        self.set_position(*self.initial_position)
        self.energy = self.mass * self.specific_heat * constants.ROOM_TEMPERATURE
        self.add_initial_energy_chunks()


# (density kg/m^3, specific heat J/kg-K, color) per block material.
BLOCK_MATERIALS = {
    EnergyContainerCategory.IRON: (constants.IRON_DENSITY, constants.IRON_SPECIFIC_HEAT, constants.IRON_COLOR),
    EnergyContainerCategory.BRICK: (constants.BRICK_DENSITY, constants.BRICK_SPECIFIC_HEAT, constants.BRICK_COLOR),
}

NUM_BLOCK_SLICES = 4


def map_z_to_xy_offset(z):
    return z * constants.Z_TO_X_OFFSET_MULTIPLIER, z * constants.Z_TO_Y_OFFSET_MULTIPLIER


class Block(RectangularThermalElement):
    """A solid cube of iron or brick."""
    def __init__(self, position, category, distributor, rng, energy_chunks_visible=True, name=None):
        if category not in BLOCK_MATERIALS:
            msg = f"No block material for category {category!r}."
            raise ValueError(msg)
        density, specific_heat, color = BLOCK_MATERIALS[category]
        self.color = color
        width = constants.BLOCK_SURFACE_WIDTH
        super().__init__(
            name or category.name.title(), position, width, width, width ** 3 * density,
            specific_heat, category, distributor, rng, energy_chunks_visible,
        )

    def _add_energy_chunk_slices(self):
        assert not self.slices, "Energy chunk slices were already added"
        # Slices step back in depth, matching the projection used to draw a cube.
        width = constants.BLOCK_SURFACE_WIDTH
        front_x, front_y = map_z_to_xy_offset(width / 2)
        spacing = width / (NUM_BLOCK_SLICES - 1)
        bounds = self.get_bounds()
        for i in range(NUM_BLOCK_SLICES):
            offset_x, offset_y = map_z_to_xy_offset(-i * spacing)
            self.slices.append(EnergyChunkSlice(
                bounds.translated(front_x + offset_x, front_y + offset_y), -i * spacing, self.position
            ))
