from .simulated import SimulationOptions, simulate_action

__all__ = ["SimulationOptions", "simulate_action"]
