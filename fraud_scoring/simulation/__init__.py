"""Synthetic traffic for demos and load tests."""

from fraud_scoring.simulation.traffic import FraudPattern, SimulatedEvent, SimulatedUser, TrafficSimulator

__all__ = ["FraudPattern", "SimulatedEvent", "SimulatedUser", "TrafficSimulator"]
