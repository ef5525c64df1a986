# main.py

import constants
import json
import logging
import logger_setup
import numpy as np
from heat_model import build_intro_model

# Get the application's dedicated logger
logger = logging.getLogger("heat_sim")

import cProfile, pstats


def load_config(config_path='config.json'):
    """
    Reads the run configuration and checks the simulation section.

    Data Contract:
    - Inputs: config_path (str) - Path to the JSON configuration file.
    - Outputs: dict - The whole configuration.
    - Side Effects: None.
    - Invariants: 'master_seed' is present and 'simulation' is a dict.
    """
    with open(config_path, 'r') as f:
        config = json.load(f)
    if 'master_seed' not in config:
        msg = f"{config_path} has no 'master_seed'."
        raise ValueError(msg)
    if not isinstance(config.get('simulation', {}), dict):
        msg = f"'simulation' in {config_path} must be an object."
        raise ValueError(msg)
    return config


def apply_burner_levels(model, levels):
    for burner, level in zip(model.burners, levels):
        burner.set_level(level)


def run_simulation_loop(model, sim_config):
    """
    Runs the model headless for the configured number of seconds.
    Returns the number of ticks run.
    """
    run_seconds = sim_config.get('run_seconds', 60.0)
    log_interval = max(int(sim_config.get('log_interval_ticks', 60)), 1)
    total_ticks = int(round(run_seconds / constants.SIM_TIME_PER_TICK_NORMAL))

    last_logged_energy = model.total_thermal_energy()
    for tick in range(total_ticks):
        model.manual_step()

        # --- Logging (throttled) ---
        if tick % log_interval == 0:
            total_energy = model.total_thermal_energy()
            delta_e = total_energy - last_logged_energy
            last_logged_energy = total_energy
            temperatures = ", ".join(
                f"{container.name}={container.temperature:.1f}K/{container.num_energy_chunks}ec"
                for container in model.thermal_containers
            )
            logger.debug(
                f"Tick={tick}, "
                f"Time={model.elapsed_time:.2f}s, "
                f"ContainerEnergy={total_energy:.1f}, "
                f"Delta_E={delta_e:+.1f}, "
                f"AirChunks={len(model.air.chunks)}, "
                f"{temperatures}"
            )
    return total_ticks


def main(config_path='config.json'):
    """
    Main function to build the intro scene and run it without a display.
    """
    # --- Setup ---
    logger_setup.setup_logging(config_path)

    config = load_config(config_path)
    sim_config = config.get('simulation', {})

    logger.info("Application starting...")
    logger.info(f"Loaded configuration: {config}")

    # Initialize the master random number generator (RNG)
    rng = np.random.default_rng(config['master_seed'])
    logger.info(f"Master RNG initialized with seed: {config['master_seed']}")

    # --- Initialization ---
    model = build_intro_model(sim_config, rng)
    apply_burner_levels(model, sim_config.get('burner_levels', []))

    if sim_config.get('profile', False):
        profiler = cProfile.Profile()
        profiler.enable()
        ticks = run_simulation_loop(model, sim_config)
        profiler.disable()
        logger.info("Profiling complete. Printing stats...")
        stats = pstats.Stats(profiler).sort_stats('cumtime')
        stats.print_stats(20)  # Print the top 20 time-consuming functions
    else:
        ticks = run_simulation_loop(model, sim_config)

    for container in model.thermal_containers:
        logger.info(
            f"{container.name}: {container.temperature:.2f} K, {container.num_energy_chunks} energy chunks."
        )
    logger.info(f"Application shutting down after {ticks} ticks.")
    logger_setup.teardown_logging()
    return model


if __name__ == "__main__":
    main()
