"""Resource limits applied to every isolation unit."""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ResourceLimits:
    """Immutable resource limits fixed when a unit is created.

    Limits are part of the provisioning request and are never renegotiated
    once the unit has started.  The network policy is expressed as the list
    of DNS servers the unit may use.
    """

    memory_limit_mb: int = 50
    cpu_period: int = 100000
    cpu_quota: int = 50000
    pids_limit: int = 100
    dns_servers: tuple[str, ...] = field(default_factory=lambda: ("8.8.8.8",))

    def __post_init__(self) -> None:
        """Validate invariants that must never be violated."""
        if self.memory_limit_mb <= 0:
            raise ValueError("memory_limit_mb must be a positive integer.")
        if self.pids_limit <= 0:
            raise ValueError("pids_limit must be a positive integer.")
        if self.cpu_period <= 0:
            raise ValueError("cpu_period must be a positive integer.")
        if self.cpu_quota <= 0:
            raise ValueError("cpu_quota must be a positive integer.")
        if self.cpu_quota > self.cpu_period:
            raise ValueError("cpu_quota must not exceed cpu_period.")

    def to_container_config(self) -> dict:
        """Convert to Docker SDK ``containers.create`` keyword arguments."""
        return {
            "mem_limit": f"{self.memory_limit_mb}m",
            "memswap_limit": f"{self.memory_limit_mb}m",  # No swap
            "cpu_period": self.cpu_period,
            "cpu_quota": self.cpu_quota,
            "pids_limit": self.pids_limit,
            "dns": list(self.dns_servers),
        }
