"""Pure domain primitives for the ERP kernel (no I/O)."""

from erp_kernel.domain.clock import Clock, DeterministicClock, SystemClock

__all__ = ["Clock", "DeterministicClock", "SystemClock"]
