# logger_setup.py

import logging
import os
import json

LOGGER_NAME = "heat_sim"


def setup_logging(config_path='config.json'):
    """
    Points the "heat_sim" logger at the console and at runs/<run_id>/simulation.log.

    Only the dedicated logger is configured. It does not propagate, so the
    root logger (and Numba's compiler output on it) stays untouched.

    Data Contract:
    - Inputs: config_path (str) - Path to the run configuration.
    - Outputs: str - Path of the log file that was opened.
    - Side Effects:
        - Replaces any handlers already on the "heat_sim" logger.
        - Creates runs/<run_id>/ if it does not exist.
    - Invariants: The config holds 'run_id' and a 'logging' dictionary with
      'level' and 'format'. 'console' in that dictionary is optional.
    """
    with open(config_path, 'r') as f:
        config = json.load(f)

    run_id = config['run_id']
    log_config = config['logging']

    log_dir = os.path.join('runs', run_id)
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, 'simulation.log')

    teardown_logging()
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_config['level'])
    logger.propagate = False

    formatter = logging.Formatter(log_config['format'])
    handlers = [logging.FileHandler(log_file)]
    if log_config.get('console', True):
        handlers.append(logging.StreamHandler())
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.info(f"Logging initialized. Run ID: {run_id}. Log file: {log_file}")
    return log_file


def teardown_logging():
    """Closes and detaches every handler on the "heat_sim" logger and lets it propagate again."""
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.propagate = True
