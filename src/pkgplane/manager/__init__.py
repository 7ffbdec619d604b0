"""Work queues and control loops driving the reconcilers."""

from pkgplane.manager.controller import Controller
from pkgplane.manager.manager import ControllerManager
from pkgplane.manager.queue import WorkQueue

__all__ = [
    "Controller",
    "ControllerManager",
    "WorkQueue",
]
