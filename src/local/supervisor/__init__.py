"""
The Supervisor package.
Manages the lifecycle of the per-vault mounting processes.

This package contains the VaultSupervisor (one per vault), the VaultService that
routes calls to them, and the probe, controller and platform helpers they use to
spawn, health-check and stop the mounting executable.
"""
from .service import VaultService
from .supervisor import VaultSupervisor

__all__ = ['VaultService', 'VaultSupervisor']
