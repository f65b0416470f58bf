"""
Controller module.
The poll, reserve and dispatch control loop.
"""

from stackctl.controller.coordinator import ReservationCoordinator
from stackctl.controller.dispatcher import DispatchEngine
from stackctl.controller.poller import QueuePoller
from stackctl.controller.reporter import FailureReporter

__all__ = [
    "QueuePoller",
    "ReservationCoordinator",
    "DispatchEngine",
    "FailureReporter",
]
