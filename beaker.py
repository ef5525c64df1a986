# beaker.py

import logging
import math

import constants
from geometry import Rect, union_of
from heat_transfer import EnergyContainerCategory
from thermal_element import EnergyChunkSlice, RectangularThermalElement, ThermalContactArea

logger = logging.getLogger("heat_sim")

NUM_BEAKER_SLICES = 6

# (specific heat J/kg-K, density kg/m^3, boiling point K, color) per fluid.
FLUIDS = {
    EnergyContainerCategory.WATER: (
        constants.WATER_SPECIFIC_HEAT, constants.WATER_DENSITY,
        constants.WATER_BOILING_POINT_TEMPERATURE, constants.WATER_COLOR,
    ),
    EnergyContainerCategory.OLIVE_OIL: (
        constants.OLIVE_OIL_SPECIFIC_HEAT, constants.OLIVE_OIL_DENSITY,
        constants.OLIVE_OIL_BOILING_POINT_TEMPERATURE, constants.OLIVE_OIL_COLOR,
    ),
}


class Beaker(RectangularThermalElement):
    """
    An open container of fluid that other elements can be immersed in.

    Data Contract:
    - Inputs:
        - position (tuple): Bottom-center of the beaker in meters.
        - category (EnergyContainerCategory): WATER or OLIVE_OIL.
        - distributor, rng, energy_chunks_visible: As for any element.
    - Outputs: fluid_level, steaming_proportion and the steam area/temperature
      queried by sensors.
    - Invariants:
        - temperature never reads above the fluid's boiling point, energy
          past that point is reported by energy_beyond_max_temperature().
        - 0 < fluid_level <= 1.
    """
    def __init__(self, position, category, distributor, rng, energy_chunks_visible=True, name=None):
        if category not in FLUIDS:
            msg = f"No fluid defined for category {category!r}."
            raise ValueError(msg)
        specific_heat, density, boiling_point, color = FLUIDS[category]
        self.fluid_boiling_point = boiling_point
        self.color = color
        self.fluid_level = constants.INITIAL_FLUID_PROPORTION
        self.steaming_proportion = 0.0
        width = constants.BEAKER_WIDTH
        height = constants.BEAKER_HEIGHT
        self.max_steam_height = 2 * height
        mass = math.pi * (width / 2) ** 2 * height * constants.INITIAL_FLUID_PROPORTION * density
        super().__init__(
            name or f"{category.name.title()} beaker", position, width, height, mass,
            specific_heat, category, distributor, rng, energy_chunks_visible,
        )

    # --- Geometry ---

    def wall_bounds(self):
        """Left wall, bottom and right wall, in model space."""
        x, y = self.position
        half_width = self.width / 2
        thickness = constants.BEAKER_MATERIAL_THICKNESS
        return [
            Rect(x - half_width - thickness / 2, y, x - half_width + thickness / 2, y + self.height),
            Rect(x - half_width, y, x + half_width, y + thickness),
            Rect(x + half_width - thickness / 2, y, x + half_width + thickness / 2, y + self.height),
        ]

    def composite_bounds(self):
        return union_of(self.wall_bounds())

    def fluid_rect(self):
        x, y = self.position
        return Rect(x - self.width / 2, y, x + self.width / 2, y + self.height * self.fluid_level)

    @property
    def thermal_contact_area(self):
        return ThermalContactArea(self.fluid_rect(), True)

    def _update_surfaces(self):
        composite = self.composite_bounds()
        x = self.position[0]
        self.top_surface.update(x - self.width / 2, x + self.width / 2,
                                composite.min_y + constants.BEAKER_MATERIAL_THICKNESS)

    def _add_energy_chunk_slices(self):
        assert not self.slices, "Energy chunk slices were already added"
        fluid_rect = self.fluid_rect()
        width_y_projection = abs(self.width * constants.Z_TO_Y_OFFSET_MULTIPLIER)
        for i in range(NUM_BEAKER_SLICES):
            proportion = (i + 1) / (NUM_BEAKER_SLICES + 1)
            # Wide in the middle, narrow at the front and back, to fit the ellipse of the fluid surface.
            slice_width = (-(2 * proportion - 1) ** 2 + 1) * fluid_rect.width
            bottom_y = fluid_rect.min_y - width_y_projection / 2 + proportion * width_y_projection
            bounds = Rect.from_size(fluid_rect.center_x - slice_width / 2, bottom_y, slice_width, fluid_rect.height)
            self.slices.append(EnergyChunkSlice(bounds, -proportion * self.width, self.position))

    def update_fluid_level(self, displacing_rects):
        """
        Sets the fluid level from the area of the given rectangles that sits
        in the fluid, and rescales the slices to match.
        """
        fluid = self.fluid_rect()
        displaced_area = 0.0
        for rect in displacing_rects:
            if rect.exclusive_intersects(fluid):
                displaced_area += fluid.intersection(rect).area
        new_level = min(constants.INITIAL_FLUID_PROPORTION + displaced_area * constants.FLUID_DISPLACEMENT_SCALE, 1.0)
        if new_level == self.fluid_level:
            return
        proportion = new_level / self.fluid_level
        self.fluid_level = new_level
        for energy_slice in self.slices:
            energy_slice.update_height(proportion)

    # --- Energy ---

    @property
    def temperature(self):
        return min(self.energy / (self.mass * self.specific_heat), self.fluid_boiling_point)

    def energy_beyond_max_temperature(self):
        return max(self.energy - self.fluid_boiling_point * self.mass * self.specific_heat, 0.0)

    def steam_area(self):
        x, y = self.position
        liquid_height = self.height * self.fluid_level
        return Rect.from_size(x - self.width / 2, y + liquid_height, self.width, self.max_steam_height)

    def steam_temperature(self, height_above_fluid):
        """Falls off linearly from the fluid temperature to room temperature."""
        steam_height = self.max_steam_height * self.steaming_proportion
        if steam_height <= 0:
            return constants.ROOM_TEMPERATURE
        temperature = self.temperature + (constants.ROOM_TEMPERATURE - self.temperature) * height_above_fluid / steam_height
        return max(temperature, constants.ROOM_TEMPERATURE)

    def extract_energy_chunk_closest_to_point(self, x, y, exclude=()):
        """
        Below the fluid surface this is the usual nearest-chunk rule. Above it,
        the highest chunk of the densest slice is used so that the slices
        bulging up at the back are not drained first.
        """
        if any(y < energy_slice.bounds.max_y for energy_slice in self.slices):
            return super().extract_energy_chunk_closest_to_point(x, y, exclude)

        densest_slice = None
        max_density = 0.0
        for energy_slice in self.slices:
            density = energy_slice.chunk_density
            if density > max_density and any(chunk.id not in exclude for chunk in energy_slice.chunks):
                max_density = density
                densest_slice = energy_slice

        if densest_slice is None or self.num_energy_chunks_in_slices <= 1:
            logger.warning(f"{self.name}: no energy chunks in the beaker, can't extract any.")
            return None

        highest_chunk = max((chunk for chunk in densest_slice.chunks if chunk.id not in exclude),
                            key=lambda chunk: chunk.y)
        self.remove_energy_chunk(highest_chunk)
        return highest_chunk

    # --- Time evolution ---

    def step(self, dt):
        temperature = self.temperature
        if temperature > self.fluid_boiling_point - constants.STEAMING_RANGE:
            self.steaming_proportion = min(max(
                1 - (self.fluid_boiling_point - temperature) / constants.STEAMING_RANGE, 0.0), 1.0)
        else:
            self.steaming_proportion = 0.0
        super().step(dt)

    def reset(self):
        self.update_fluid_level([])
        self.steaming_proportion = 0.0
        super().reset()
