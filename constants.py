# constants.py

"""
Physical Constants

This module defines the static physical and numerical values shared by the
thermal model. These are not expected to change between simulation runs.

Data Contract:
- All values are immutable constants.
- Units are specified in comments where applicable. Lengths are in meters.
"""

import math

# Temperatures
ROOM_TEMPERATURE = 296.0                  # Kelvin
WATER_FREEZING_POINT_TEMPERATURE = 273.15  # Kelvin
WATER_BOILING_POINT_TEMPERATURE = 373.15   # Kelvin
OLIVE_OIL_BOILING_POINT_TEMPERATURE = 573.15  # Kelvin

# Below this difference two temperatures are treated as equal.
TEMPERATURES_EQUAL_THRESHOLD = 1E-6  # Kelvin

# Materials
IRON_SPECIFIC_HEAT = 450.0       # J/kg-K
IRON_DENSITY = 7800.0            # kg/m^3
BRICK_SPECIFIC_HEAT = 840.0      # J/kg-K
BRICK_DENSITY = 3300.0           # kg/m^3
WATER_SPECIFIC_HEAT = 3000.0     # J/kg-K, larger than real water so heating looks reasonable
WATER_DENSITY = 1000.0           # kg/m^3
OLIVE_OIL_SPECIFIC_HEAT = 1411.0  # J/kg-K
OLIVE_OIL_DENSITY = 916.0        # kg/m^3

# Geometry
BLOCK_SURFACE_WIDTH = 0.045
BEAKER_WIDTH = 0.085
BEAKER_HEIGHT = BEAKER_WIDTH * 1.1
BEAKER_MATERIAL_THICKNESS = 0.001
INITIAL_FLUID_PROPORTION = 0.5
BURNER_SIDE_LENGTH = 0.075

# Perspective offsets used to fake depth for the chunk slices.
Z_TO_X_OFFSET_MULTIPLIER = -0.25
Z_TO_Y_OFFSET_MULTIPLIER = -0.25

# Timing
FRAMES_PER_SECOND = 60
SIM_TIME_PER_TICK_NORMAL = 1 / FRAMES_PER_SECOND  # Seconds
MAX_HEAT_EXCHANGE_TIME_STEP = SIM_TIME_PER_TICK_NORMAL  # Seconds
MAX_NUMBER_OF_INITIALIZATION_DISTRIBUTION_CYCLES = 500
MAX_ENERGY_CHUNK_REDISTRIBUTION_TIME = 2.0  # Seconds

# Energy chunk quantum.
# The energy-to-chunk map is linear and pinned to the brick: a brick at the
# freezing point holds 1.25 chunks, a brick at room temperature holds 2.4.
_BRICK_HEAT_CAPACITY = BLOCK_SURFACE_WIDTH ** 3 * BRICK_DENSITY * BRICK_SPECIFIC_HEAT  # J/K
LOW_ENERGY_FOR_MAP_FUNCTION = _BRICK_HEAT_CAPACITY * WATER_FREEZING_POINT_TEMPERATURE  # J
HIGH_ENERGY_FOR_MAP_FUNCTION = _BRICK_HEAT_CAPACITY * ROOM_TEMPERATURE  # J
NUM_ENERGY_CHUNKS_IN_BRICK_AT_FREEZING = 1.25
NUM_ENERGY_CHUNKS_IN_BRICK_AT_ROOM_TEMP = 2.4
ENERGY_PER_CHUNK = (HIGH_ENERGY_FOR_MAP_FUNCTION - LOW_ENERGY_FOR_MAP_FUNCTION) / (
    NUM_ENERGY_CHUNKS_IN_BRICK_AT_ROOM_TEMP - NUM_ENERGY_CHUNKS_IN_BRICK_AT_FREEZING
)  # J

# Energy chunk distribution
CHUNK_MASS = 1E-3                       # kg, chosen arbitrarily
CHUNK_DIAMETER = 1E-3                   # m
CHUNK_CROSS_SECTIONAL_AREA = math.pi * CHUNK_DIAMETER ** 2  # m^2, chunk treated as a sphere
DISTRIBUTION_FLUID_DENSITY = 1000.0     # kg/m^3, used for drag only
DRAG_COEFFICIENT = 500.0                # Unitless
DRAG_MULTIPLIER = 0.5 * DISTRIBUTION_FLUID_DENSITY * DRAG_COEFFICIENT * CHUNK_CROSS_SECTIONAL_AREA
OUTSIDE_SLICE_FORCE = 0.01              # Newtons
MAX_DISTRIBUTION_TIME_STEP = SIM_TIME_PER_TICK_NORMAL / 3  # Seconds
REDISTRIBUTION_THRESHOLD_ENERGY = 1E-4  # Joules
MIN_DISTANCE_DIVISOR = 20.0
FORCE_CONSTANT_SCALE = 0.1

# Energy chunk wandering
WANDER_MIN_VELOCITY = 0.06   # m/s
WANDER_MAX_VELOCITY = 0.10   # m/s
WANDER_MIN_TIME_IN_ONE_DIRECTION = 0.4  # Seconds
WANDER_MAX_TIME_IN_ONE_DIRECTION = 0.8  # Seconds
WANDER_STOP_DISTANCE = 0.05  # m, below this chunks head straight for the destination
WANDER_MAX_ANGLE_VARIATION = math.pi * 0.2  # Radians

# Burner
BURNER_MAX_ENERGY_GENERATION_RATE = 5000.0  # J/s
BURNER_MAX_ENERGY_GENERATION_RATE_INTO_AIR = BURNER_MAX_ENERGY_GENERATION_RATE * 0.3  # J/s
BURNER_CONTACT_DISTANCE = 0.001
BURNER_ENERGY_CHUNK_CAPTURE_DISTANCE = 0.2
BURNER_CHUNK_LOCKOUT_TIME = 0.25  # Seconds between emitted chunks
HEAT_PROPORTION_SIGMOID_STEEPNESS = 1.5  # Per queued chunk

# Air
AIR_WIDTH = 0.7
AIR_HEIGHT = 0.85  # Also the max travel height of chunks released to the air
AIR_DEPTH = 0.1
AIR_SPECIFIC_HEAT = 1012.0  # J/kg-K
AIR_DENSITY = 10.0          # kg/m^3, far denser than real air so things cool faster
AIR_CHUNK_EXCHANGE_THRESHOLD = 20.0  # Accumulated balance * s * W/(m K)
AIR_CHUNK_WANDER_MARGIN = 0.01  # Chunk width kept clear of a beaker's walls

# Thermal contact
TOUCH_DISTANCE_THRESHOLD = 0.001
MIN_INTER_ELEMENT_DISTANCE = 1E-9

# Motion
GRAVITATIONAL_ACCELERATION = -9.8  # m/s^2
FLUID_DISPLACEMENT_SCALE = 120.0   # Fluid level gained per m^2 of displacing area

# Scene layout
SCENE_LEFT_EDGE = -0.30
SCENE_RIGHT_EDGE = 0.30
SCENE_EDGE_PAD = 0.016
NUM_GROUND_SPOTS = 6
STEAMING_RANGE = 10.0  # Kelvin below boiling over which steam appears

# Colors (RGB)
IRON_COLOR = (150, 150, 150)
BRICK_COLOR = (200, 22, 11)
WATER_COLOR = (175, 238, 238)
OLIVE_OIL_COLOR = (255, 210, 0)
AIR_COLOR = (249, 244, 205)
STEAM_COLOR = (255, 255, 255)

# Burner color as a function of heat/cool level.
# Each keyframe is a tuple: (level, (R, G, B) color).
BURNER_COLOR_KEYFRAMES = [
    (-1.0, (0, 0, 240)),     # Cold
    (0.0,  (255, 255, 255)), # Off
    (1.0,  (255, 69, 0))     # Hot
]
