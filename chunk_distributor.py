# chunk_distributor.py

import logging
import math

import numba
import numpy as np

import constants
from geometry import union_of

logger = logging.getLogger("heat_sim")

DISTRIBUTION_ALGORITHMS = ("repulsive", "simple")

# --- JIT-Compiled Distribution Kernels ---
# These operate on the dense chunk arena (one row per chunk) built by
# EnergyChunkDistributor for every call, so they never touch Python objects.


@numba.jit(nopython=True, fastmath=True)
def _accumulate_forces_jit(positions, slice_bounds, forces, min_distance, force_constant,
                           random_angles, outside_force):
    """
    Computes the net force on every chunk.

    A chunk inside its slice is pushed by every other chunk and by the four
    edges of its slice, each with an inverse-square law whose distance is
    floored at min_distance. A chunk outside its slice is pulled toward the
    slice center with a fixed force instead.
    """
    num_chunks = positions.shape[0]
    min_distance_sq = min_distance * min_distance
    for i in range(num_chunks):
        x = positions[i, 0]
        y = positions[i, 1]
        min_x = slice_bounds[i, 0]
        min_y = slice_bounds[i, 1]
        max_x = slice_bounds[i, 2]
        max_y = slice_bounds[i, 3]
        fx = 0.0
        fy = 0.0

        if x >= min_x and x <= max_x and y >= min_y and y <= max_y:
            # Edge forces, each pointing away from its edge.
            d_right = max(max_x - x, min_distance)
            d_left = max(x - min_x, min_distance)
            d_top = max(max_y - y, min_distance)
            d_bottom = max(y - min_y, min_distance)
            fx += force_constant / (d_left * d_left) - force_constant / (d_right * d_right)
            fy += force_constant / (d_bottom * d_bottom) - force_constant / (d_top * d_top)

            # Repulsion from every other chunk, in all slices.
            for j in range(num_chunks):
                if j == i:
                    continue
                dx = x - positions[j, 0]
                dy = y - positions[j, 1]
                dist_sq = dx * dx + dy * dy
                if dist_sq < min_distance_sq:
                    if dist_sq == 0.0:
                        dx = min_distance * math.cos(random_angles[i])
                        dy = min_distance * math.sin(random_angles[i])
                    else:
                        scale = min_distance / math.sqrt(dist_sq)
                        dx *= scale
                        dy *= scale
                    dist_sq = min_distance_sq
                dist = math.sqrt(dist_sq)
                magnitude = force_constant / dist_sq
                fx += magnitude * dx / dist
                fy += magnitude * dy / dist
        else:
            to_center_x = (min_x + max_x) / 2 - x
            to_center_y = (min_y + max_y) / 2 - y
            length = math.sqrt(to_center_x * to_center_x + to_center_y * to_center_y)
            if length > 0.0:
                fx = outside_force * to_center_x / length
                fy = outside_force * to_center_y / length

        forces[i, 0] = fx
        forces[i, 1] = fy


@numba.jit(nopython=True, fastmath=True)
def _update_velocities_jit(velocities, forces, dt, chunk_mass, drag_multiplier):
    """
    Applies net force plus quadratic drag to every velocity in place and
    returns the largest per-chunk energy estimate, 0.5*m*v^2 + |F|*pi/2,
    evaluated with the pre-update velocity.
    """
    max_energy = 0.0
    force_multiplier = dt / chunk_mass
    for i in range(velocities.shape[0]):
        vx = velocities[i, 0]
        vy = velocities[i, 1]
        speed_sq = vx * vx + vy * vy
        drag_x = 0.0
        drag_y = 0.0
        if speed_sq > 0.0:
            drag_magnitude = drag_multiplier * speed_sq
            speed = math.sqrt(speed_sq)
            drag_x = -vx / speed * drag_magnitude
            drag_y = -vy / speed * drag_magnitude

        fx = forces[i, 0]
        fy = forces[i, 1]
        velocities[i, 0] = vx + (fx + drag_x) * force_multiplier
        velocities[i, 1] = vy + (fy + drag_y) * force_multiplier

        energy = 0.5 * chunk_mass * speed_sq + math.sqrt(fx * fx + fy * fy) * math.pi / 2
        if energy > max_energy:
            max_energy = energy
    return max_energy


class EnergyChunkDistributor:
    """
    Spreads the chunks held by a set of slices so they do not clump or overlap.

    Data Contract:
    - Inputs:
        - rng (np.random.Generator): The master seeded random number generator,
          used to break ties between exactly coincident chunks.
        - algorithm (str): "repulsive" (default) or "simple".
    - Outputs: update_positions() returns True while chunks are still moving.
    - Side Effects: Mutates the position and velocity arrays of the chunks it
      is given. Holds no per-chunk state between calls.
    - Invariants: Never creates, removes or reassigns chunks.
    """
    def __init__(self, rng: np.random.Generator, algorithm: str = "repulsive"):
        if algorithm not in DISTRIBUTION_ALGORITHMS:
            msg = f"Unknown energy chunk distribution algorithm '{algorithm}', expected one of {DISTRIBUTION_ALGORITHMS}."
            raise ValueError(msg)
        self.rng = rng
        self.algorithm = algorithm
        logger.info(f"EnergyChunkDistributor created using the '{algorithm}' algorithm.")

    def update_positions(self, slices, dt: float) -> bool:
        if self.algorithm == "simple":
            return self._snap_to_slice_centers(slices)
        return self._repulsive_update(slices, dt)

    def _snap_to_slice_centers(self, slices):
        """Cheap alternative for slow machines: every chunk sits at its slice center."""
        for energy_slice in slices:
            center_x, center_y = energy_slice.bounds.center
            for chunk in energy_slice.chunks:
                chunk.set_position(center_x, center_y)
                chunk.velocity[:] = 0.0
        return False

    def _build_arena(self, slices):
        chunks = []
        bounds_rows = []
        for energy_slice in slices:
            bounds = tuple(energy_slice.bounds)
            for chunk in energy_slice.chunks:
                chunks.append(chunk)
                bounds_rows.append(bounds)
        if not chunks:
            return chunks, None, None, None
        positions = np.array([chunk.position for chunk in chunks], dtype=float)
        velocities = np.array([chunk.velocity for chunk in chunks], dtype=float)
        slice_bounds = np.array(bounds_rows, dtype=float)
        return chunks, positions, velocities, slice_bounds

    def _repulsive_update(self, slices, dt):
        chunks, positions, velocities, slice_bounds = self._build_arena(slices)
        num_chunks = len(chunks)
        if num_chunks == 0:
            return False

        bounding_rect = union_of(energy_slice.bounds for energy_slice in slices)
        min_distance = min(bounding_rect.width, bounding_rect.height) / constants.MIN_DISTANCE_DIVISOR
        if min_distance <= 0.0:
            logger.warning(f"Degenerate slice bounds {bounding_rect}, skipping distribution.")
            return False

        # Repulsion weakens as the population grows so crowded slices do not explode.
        force_constant = (constants.CHUNK_MASS * bounding_rect.width * bounding_rect.height *
                          constants.FORCE_CONSTANT_SCALE / num_chunks)

        forces = np.zeros_like(positions)
        num_full_steps = int(dt // constants.MAX_DISTRIBUTION_TIME_STEP)
        leftover_time = dt - num_full_steps * constants.MAX_DISTRIBUTION_TIME_STEP

        redistributed = False
        for step in range(num_full_steps + 1):
            time_step = constants.MAX_DISTRIBUTION_TIME_STEP if step < num_full_steps else leftover_time
            random_angles = self.rng.random(num_chunks) * 2 * math.pi

            _accumulate_forces_jit(positions, slice_bounds, forces, min_distance, force_constant,
                                   random_angles, constants.OUTSIDE_SLICE_FORCE)
            max_energy = _update_velocities_jit(velocities, forces, time_step,
                                                constants.CHUNK_MASS, constants.DRAG_MULTIPLIER)

            redistributed = max_energy > constants.REDISTRIBUTION_THRESHOLD_ENERGY
            if redistributed:
                positions += velocities * time_step

        assert np.all(np.isfinite(positions)), "Energy chunk position became NaN or infinite"

        for index, chunk in enumerate(chunks):
            chunk.position[:] = positions[index]
            chunk.velocity[:] = velocities[index]
        return redistributed
