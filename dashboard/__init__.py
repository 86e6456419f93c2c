"""Dashboard state machine and control loop."""

from dashboard.controller import ControlLoop
from dashboard.state import ApplicationState, Screen, ViewMode

__all__ = ["ApplicationState", "ControlLoop", "Screen", "ViewMode"]
