# main.py
"""
Main entry point for the Particle Life simulation.

This script orchestrates the entire simulation lifecycle:
1. Loads configuration from `config.json`.
2. Initializes the logging system.
3. Builds the simulation (and the visualizer unless running headless).
4. Runs the frame loop: one tick per frame.
5. Handles clean shutdown.
"""
import cProfile
import io
import logging
import pstats

import numpy as np

from utils import load_config, setup_logging


def main():
    """
    The main function to run the simulation.
    """
    # Logging is not set up yet, so we use a print for this one error.
    try:
        config = load_config('config.json')
    except Exception as e:
        print(f"FATAL: Could not load config.json. Error: {e}")
        return

    setup_logging(config)

    logging.info("--- Particle Life Simulation Starting ---")

    sim_params = config['simulation_parameters']
    run_params = config['run_control']
    vis_params = config['visualization']

    from simulation import Simulation

    sim = Simulation.from_config(sim_params)
    logging.info(f"Attraction seed: {sim.export_seed()}")

    headless = run_params.get('headless', False)
    visualizer = None
    if not headless:
        from visualization import Visualizer
        window_size = vis_params.get('window_size')
        visualizer = Visualizer(
            particle_size=vis_params.get('particle_size', 3),
            window_size=tuple(window_size) if window_size else None,
        )

    profiler = cProfile.Profile()

    log_throttle = run_params.get('log_throttle_steps', 300)
    # 0 means run until the window is closed.
    max_steps = run_params.get('max_steps', 0)
    if headless and not max_steps:
        logging.warning("Headless run without max_steps; defaulting to 1000 steps.")
        max_steps = 1000

    running = True
    step_num = 0

    profiler.enable()
    try:
        while running:
            sim.tick()
            step_num += 1

            if visualizer is not None and not visualizer.draw(sim):
                running = False

            # Hot loops must throttle logs
            if step_num % log_throttle == 0:
                logging.info(f"Simulation step {step_num}")
                avg_speed = np.mean(np.linalg.norm(sim.current_state().velocities, axis=1))
                logging.debug(f"Step {step_num} | Average Speed: {avg_speed:.6f}")

            if max_steps and step_num >= max_steps:
                logging.info(f"Reached max_steps ({max_steps}). Stopping simulation.")
                running = False
    finally:
        profiler.disable()
        if visualizer is not None:
            visualizer.close()
        sim.close()
    logging.info("Simulation loop finished.")

    logging.info("--- Performance Profile ---")
    s = io.StringIO()
    stats = pstats.Stats(profiler, stream=s).sort_stats('cumtime')
    stats.print_stats(20)
    logging.info(f"\n{s.getvalue()}")

    logging.info("--- Particle Life Simulation Shutting Down ---")


if __name__ == "__main__":
    main()
