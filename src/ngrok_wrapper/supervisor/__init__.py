"""Ownership and supervision of the ngrok child process."""

from .channels import OneShot, StopSignal, SupervisorChannels
from .process import ProcessSupervisor, resolve_executable

__all__ = [
    "ProcessSupervisor",
    "SupervisorChannels",
    "OneShot",
    "StopSignal",
    "resolve_executable",
]
