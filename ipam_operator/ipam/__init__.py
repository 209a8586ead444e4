"""IP address management: the pool manager and its errors."""

from ipam_operator.ipam.ippool_manager import (
    IPCLAIM_FINALIZER,
    IPPOOL_FINALIZER,
    IPAMError,
    IPPoolManager,
    InvalidNetwork,
    InvalidOwner,
    ManagerFactory,
    NoAvailableIPs,
    RequeueAfterError,
    calculate_available_ips,
)

__all__ = [
    "IPCLAIM_FINALIZER",
    "IPPOOL_FINALIZER",
    "IPAMError",
    "IPPoolManager",
    "InvalidNetwork",
    "InvalidOwner",
    "ManagerFactory",
    "NoAvailableIPs",
    "RequeueAfterError",
    "calculate_available_ips",
]
