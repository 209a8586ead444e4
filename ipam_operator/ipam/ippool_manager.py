"""IP pool manager: address allocation bookkeeping for one pool."""

import ipaddress
from typing import Dict, List, Optional, Set, Tuple, Union

from ipam_operator.models import Cluster, IPAddress, IPAddressClaim, IPClaim, IPPool
from ipam_operator.models.base import ObjectKey, utcnow
from ipam_operator.store import (
    ObjectAlreadyExists,
    ObjectNotFound,
    ObjectStore,
    snapshot,
)
from ipam_operator.utils.logger import get_logger
from ipam_operator.utils.telemetry import (
    add_span_attributes,
    add_span_event,
    get_tracer,
)

logger = get_logger(__name__)
tracer = get_tracer()

IPPOOL_FINALIZER = "ippool.ipam.metal3.io"
IPCLAIM_FINALIZER = "ipclaim.ipam.metal3.io"

Claim = Union[IPClaim, IPAddressClaim]


# Exception classes
class IPAMError(Exception):
    """Base exception for IP pool management errors."""

    pass


class RequeueAfterError(IPAMError):
    """The operation cannot complete yet and should be retried later."""

    def __init__(self, requeue_after: float = 0.0, message: Optional[str] = None):
        self.requeue_after = requeue_after
        super().__init__(message or f"requeue in {requeue_after}s")

    def get_requeue_after(self) -> float:
        return self.requeue_after


class InvalidNetwork(IPAMError):
    """Invalid network configuration."""

    pass


class NoAvailableIPs(IPAMError):
    """No available IPs in the pool."""

    pass


class InvalidOwner(IPAMError):
    """Owner reference cannot be built from the given object."""

    pass


# Helper functions
def calculate_available_ips(cidr: str, gateway: Optional[str]) -> Tuple[str, str]:
    """
    Calculate start_ip and end_ip from CIDR.

    Args:
        cidr: CIDR notation (e.g., "172.16.0.0/24")
        gateway: Optional gateway IP (e.g., "172.16.0.1"), excluded from the range

    Returns:
        Tuple of (start_ip, end_ip)

    Raises:
        InvalidNetwork: If CIDR or gateway is invalid
    """
    try:
        net = ipaddress.ip_network(cidr, strict=False)
        gateway_ip = ipaddress.ip_address(gateway) if gateway else None
    except ValueError as e:
        raise InvalidNetwork(f"Invalid network configuration: {e}") from e

    if net.num_addresses <= 2:
        first, last = net[0], net[-1]
    elif net.version == 4:
        # Usable hosts exclude network and broadcast
        first, last = net[1], net[-2]
    else:
        first, last = net[1], net[-1]

    if gateway_ip is not None and gateway_ip == first:
        first = first + 1
    if gateway_ip is not None and gateway_ip == last:
        last = last - 1

    if first > last:
        raise InvalidNetwork(f"No available IPs after excluding gateway {gateway}")

    return (str(first), str(last))


def ip_to_int(ip: str) -> int:
    """Convert IP string to integer for iteration."""
    return int(ipaddress.ip_address(ip))


def int_to_ip(ip_int: int, version: int = 4) -> str:
    """Convert integer back to IP string."""
    if version == 6:
        return str(ipaddress.IPv6Address(ip_int))
    return str(ipaddress.IPv4Address(ip_int))


def address_object_name(prefix: str, address: str) -> str:
    """Name of the IPAddress object for an address, e.g. 'pool-a-192-168-1-2'."""
    return f"{prefix}-{address.replace('.', '-').replace(':', '-')}"


class IPPoolManager:
    """Allocation and release of addresses for one IPPool.

    The pool itself is only mutated in memory; the caller persists it.
    Claims and IPAddress objects are written to the store directly.
    """

    def __init__(self, store: ObjectStore, pool: IPPool):
        self.store = store
        self.pool = pool

    def set_finalizer(self) -> None:
        """Add the pool finalizer if missing."""
        if IPPOOL_FINALIZER not in self.pool.finalizers:
            self.pool.finalizers = [*self.pool.finalizers, IPPOOL_FINALIZER]

    def unset_finalizer(self) -> None:
        """Remove the pool finalizer if present."""
        self.pool.finalizers = [
            f for f in self.pool.finalizers if f != IPPOOL_FINALIZER
        ]

    def set_cluster_owner_ref(self, cluster: Optional[Cluster]) -> None:
        """Record the cluster as owner of the pool.

        Raises:
            InvalidOwner: If the cluster has no name
        """
        if cluster is None or not cluster.name:
            raise InvalidOwner("cannot set an owner reference to a cluster without a name")

        for ref in self.pool.owner_references:
            if ref.get("kind") == Cluster.KIND and ref.get("name") == cluster.name:
                return

        self.pool.owner_references = [
            *self.pool.owner_references,
            {
                "api_version": Cluster.API_VERSION,
                "kind": Cluster.KIND,
                "name": cluster.name,
            },
        ]

    def update_addresses(self) -> int:
        """
        Bring allocations in line with the claims referencing the pool.

        Deleted claims get their address released. New claims get an
        address unless the pool itself is being deleted.

        Returns:
            Number of addresses still allocated from the pool

        Raises:
            RequeueAfterError: If an address object could not be created yet
            InvalidNetwork: If the pool's range is invalid
        """
        pool = self.pool
        with tracer.start_as_current_span("ipam.ippool.update_addresses"):
            add_span_attributes(
                **{"ippool.name": pool.name, "ippool.namespace": pool.namespace}
            )

            allocations = dict(pool.allocations)
            claims = self._claims()
            claimed = set()

            for claim in claims:
                claimed.add(claim.name)
                if claim.is_deleting:
                    self._release(claim, allocations)
                    continue

                if claim.address_name and self._adopt(claim, allocations):
                    continue

                if pool.is_deleting:
                    logger.debug(
                        "Pool is being deleted, not allocating",
                        extra={"claim": claim.name},
                    )
                    continue

                self._allocate(claim, allocations)

            for claim_name in list(allocations):
                if claim_name not in claimed:
                    self._release_orphan(claim_name, allocations[claim_name])
                    del allocations[claim_name]

            if allocations != pool.allocations:
                pool.allocations = allocations
                pool.last_updated = utcnow()

            add_span_attributes(**{"ippool.allocated": len(allocations)})
            return len(allocations)

    def _claims(self) -> List[Claim]:
        pool = self.pool
        claims: List[Claim] = [
            claim
            for claim in self.store.list(IPClaim)
            if claim.pool_name == pool.name
            and (claim.pool_namespace or claim.namespace) == pool.namespace
        ]
        claims.extend(
            claim
            for claim in self.store.list(IPAddressClaim, namespace=pool.namespace)
            if claim.pool_ref_name == pool.name
            and claim.pool_ref_kind == IPPool.KIND
        )
        return claims

    def _address_range(self) -> Tuple[int, int, int]:
        """
        Raises:
            InvalidNetwork: If the bounds are malformed, of mixed IP
                versions, reversed, or outside the pool's CIDR
        """
        pool = self.pool
        if not (pool.start_ip and pool.end_ip):
            start_ip, end_ip = calculate_available_ips(pool.cidr, pool.gateway)
            start = ipaddress.ip_address(start_ip)
            return int(start), ip_to_int(end_ip), start.version

        try:
            net = ipaddress.ip_network(pool.cidr, strict=False)
            start = ipaddress.ip_address(pool.start_ip)
            end = ipaddress.ip_address(pool.end_ip)
        except ValueError as e:
            raise InvalidNetwork(f"Invalid network configuration: {e}") from e

        if start.version != end.version or start.version != net.version:
            raise InvalidNetwork(
                f"Range {start}-{end} mixes IP versions with network {net}"
            )
        if start > end:
            raise InvalidNetwork(f"Range start {start} is after range end {end}")
        if start not in net or end not in net:
            raise InvalidNetwork(f"Range {start}-{end} is outside network {net}")

        return int(start), int(end), start.version

    def _pick_address(self, claim_name: str, allocations: Dict[str, str]) -> str:
        pool = self.pool
        used: Set[int] = {ip_to_int(address) for address in allocations.values()}
        used.update(
            ip_to_int(address)
            for name, address in pool.pre_allocations.items()
            if name != claim_name
        )

        preallocated = pool.pre_allocations.get(claim_name)
        if preallocated:
            if ip_to_int(preallocated) in used:
                raise NoAvailableIPs(
                    f"Pre-allocated address {preallocated} is already in use"
                )
            return str(ipaddress.ip_address(preallocated))

        start_int, end_int, version = self._address_range()
        if pool.gateway:
            used.add(ip_to_int(pool.gateway))

        for ip_int in range(start_int, end_int + 1):
            if ip_int not in used:
                return int_to_ip(ip_int, version)

        total_ips = end_int - start_int + 1
        raise NoAvailableIPs(
            f"No available IPs in pool '{pool.name}' ({len(allocations)}/{total_ips} allocated)"
        )

    def _allocate(self, claim: Claim, allocations: Dict[str, str]) -> None:
        pool = self.pool
        before = snapshot(claim)

        try:
            address = self._pick_address(claim.name, allocations)
        except NoAvailableIPs as e:
            logger.warning(
                "No address available for claim",
                extra={"claim": claim.name, "error": str(e)},
            )
            claim.error_message = str(e)
            self.store.patch(before, claim)
            return

        address_name = address_object_name(pool.name_prefix or pool.name, address)
        ip_address = IPAddress(
            name=address_name,
            namespace=pool.namespace,
            pool_name=pool.name,
            claim_name=claim.name,
            claim_kind=claim.KIND,
            address=address,
            prefix=pool.prefix,
            gateway=pool.gateway,
            owner_references=[
                {"api_version": "ipam.metal3.io/v1alpha1", "kind": IPPool.KIND, "name": pool.name},
                {"api_version": "ipam.metal3.io/v1alpha1", "kind": claim.KIND, "name": claim.name},
            ],
        )

        try:
            self.store.create(ip_address)
        except ObjectAlreadyExists as e:
            existing = self.store.get(IPAddress, ObjectKey(pool.namespace, address_name))
            if existing.claim_name != claim.name or existing.claim_kind != claim.KIND:
                raise RequeueAfterError(
                    0, f"address {address} is already taken, retrying"
                ) from e

        claim.address_name = address_name
        claim.error_message = None
        if IPCLAIM_FINALIZER not in claim.finalizers:
            claim.finalizers = [*claim.finalizers, IPCLAIM_FINALIZER]
        self.store.patch(before, claim)

        allocations[claim.name] = address
        add_span_event("ipaddress.allocated", {"ip": address, "claim": claim.name})
        logger.info(
            "IP allocated successfully",
            extra={"claim": claim.name, "claim_kind": claim.KIND, "ip_address": address},
        )

    def _adopt(self, claim: Claim, allocations: Dict[str, str]) -> bool:
        """Keep an existing allocation, recovering it from its IPAddress if needed."""
        if claim.name in allocations:
            return True
        try:
            existing = self.store.get(
                IPAddress, ObjectKey(self.pool.namespace, claim.address_name)
            )
        except ObjectNotFound:
            return False
        if existing.pool_name != self.pool.name or existing.claim_name != claim.name:
            return False
        allocations[claim.name] = existing.address
        return True

    def _release(self, claim: Claim, allocations: Dict[str, str]) -> None:
        before = snapshot(claim)
        if claim.address_name:
            self._delete_address(claim.address_name)

        address = allocations.pop(claim.name, None)
        claim.address_name = None
        claim.finalizers = [f for f in claim.finalizers if f != IPCLAIM_FINALIZER]
        try:
            self.store.patch(before, claim)
        except ObjectNotFound:
            logger.debug("Claim already gone", extra={"claim": claim.name})

        add_span_event("ipaddress.released", {"claim": claim.name})
        logger.info(
            "IP released successfully",
            extra={"claim": claim.name, "claim_kind": claim.KIND, "ip_address": address},
        )

    def _release_orphan(self, claim_name: str, address: str) -> None:
        pool = self.pool
        # The object name depends on name_prefix, which may have changed
        for ip_address in self.store.list(IPAddress, namespace=pool.namespace):
            if ip_address.pool_name == pool.name and ip_address.address == address:
                self._delete_address(ip_address.name)
        logger.info(
            "Released address of a vanished claim",
            extra={"claim": claim_name, "ip_address": address},
        )

    def _delete_address(self, address_name: str) -> None:
        try:
            self.store.delete(IPAddress, ObjectKey(self.pool.namespace, address_name))
        except ObjectNotFound:
            logger.debug("IPAddress already gone", extra={"address": address_name})


class ManagerFactory:
    """Builds a pool manager per reconciliation pass."""

    def __init__(self, store: ObjectStore):
        self.store = store

    def new_ippool_manager(self, pool: IPPool) -> IPPoolManager:
        """
        Raises:
            IPAMError: If the pool is missing
        """
        if pool is None:
            raise IPAMError("no IPPool given")
        return IPPoolManager(self.store, pool)
