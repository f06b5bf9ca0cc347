"""Relay control logic."""

from .agent import RelayAgent, build_agent
from .config_poller import ConfigPoller
from .health import HealthReporter
from .intervals import parse_interval_ms, parse_interval_seconds
from .pairing import PairingState, PairingStateMachine
from .scheduler import CycleResult, SnapshotScheduler
from .status import StatusMonitor
from .timers import TaskRegistry

__all__ = [
    "ConfigPoller",
    "CycleResult",
    "HealthReporter",
    "PairingState",
    "PairingStateMachine",
    "RelayAgent",
    "SnapshotScheduler",
    "StatusMonitor",
    "TaskRegistry",
    "build_agent",
    "parse_interval_ms",
    "parse_interval_seconds",
]
