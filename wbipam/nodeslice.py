"""Division of a network range into per-node slices and their assignment to nodes.

A :class:`NodeSlicePool` records how one network's range is cut into
equally sized subnets and which node owns each subnet. The functions here
compute the desired state of such a pool from the IPAM settings of the
network attachments that use it and from the set of nodes in the cluster.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, replace
from typing import Iterable, List, Optional

from wbipam.iphelpers import divide_range_by_size

NAD_API_VERSION = "k8s.cni.cncf.io/v1"
NAD_KIND = "NetworkAttachmentDefinition"
POOL_API_VERSION = "whereabouts.cni.cncf.io/v1alpha1"
POOL_KIND = "NodeSlicePool"


class IPAMMismatchError(ValueError):
    """Attachments sharing a network name disagree on range or slice size."""


@dataclass
class NodeSliceAllocation:
    """One slice of the pool's range and the node it is given to ("" if free)."""

    slice_range: str
    node_name: str = ""


@dataclass(frozen=True)
class OwnerReference:
    """Reference from a pool to a network attachment that owns it."""

    name: str
    uid: str = ""
    api_version: str = NAD_API_VERSION
    kind: str = NAD_KIND
    controller: bool = False
    block_owner_deletion: bool = False


@dataclass
class NodeSlicePool:
    """A network range cut into slices, with the slices' node assignments."""

    name: str
    namespace: str
    range: str
    slice_size: str
    allocations: List[NodeSliceAllocation] = field(default_factory=list)
    owner_references: List[OwnerReference] = field(default_factory=list)
    api_version: str = POOL_API_VERSION
    kind: str = POOL_KIND


@dataclass
class IPAMSettings:
    """The parts of an attachment's IPAM configuration that shape node slices."""

    name: str
    network_name: str = ""
    ranges: List[str] = field(default_factory=list)
    node_slice_size: str = ""


def node_has_allocation(allocations: Iterable[NodeSliceAllocation], node_name: str) -> bool:
    """Return True if some slice is already given to *node_name*."""
    return any(allocation.node_name == node_name for allocation in allocations)


def assign_node_to_slice(allocations: List[NodeSliceAllocation], node_name: str) -> None:
    """Give the first free slice to *node_name*, unless it already has one.

    The list is changed in place; when every slice is taken nothing happens.
    """
    if node_has_allocation(allocations, node_name):
        return
    for index, allocation in enumerate(allocations):
        if not allocation.node_name:
            allocations[index] = NodeSliceAllocation(allocation.slice_range, node_name)
            return


def remove_unused_nodes(allocations: List[NodeSliceAllocation], node_names: Iterable[str]) -> None:
    """Free, in place, every slice held by a node not in *node_names*."""
    present = set(node_names)
    for index, allocation in enumerate(allocations):
        if allocation.node_name and allocation.node_name not in present:
            allocations[index] = NodeSliceAllocation(allocation.slice_range)


def has_owner_ref(pool: NodeSlicePool, name: str) -> bool:
    """Return True if *pool* lists an owner called *name*."""
    return any(ref.name == name for ref in pool.owner_references)


def slice_name(settings: IPAMSettings) -> str:
    """Return the pool name: the network name if set, else the configuration name."""
    return settings.network_name or settings.name


def _first_range(settings: IPAMSettings) -> Optional[str]:
    return settings.ranges[0] if settings.ranges else None


def ipam_settings_match(first: IPAMSettings, second: IPAMSettings) -> bool:
    """Return False only if both share a network name but differ in range or slice size."""
    if first.network_name != second.network_name:
        return True
    return (
        _first_range(first) == _first_range(second)
        and first.node_slice_size == second.node_slice_size
    )


def check_multi_nad_mismatch(settings: IPAMSettings, others: Iterable[IPAMSettings]) -> None:
    """Raise IPAMMismatchError if any of *others* conflicts with *settings*."""
    for other in others:
        if not ipam_settings_match(settings, other):
            raise IPAMMismatchError(
                "found IPAM conf mismatch for network-attachment-definitions with same network name"
            )


def slice_allocations(ip_range: str, slice_size: str, node_names: Iterable[str]) -> List[NodeSliceAllocation]:
    """Cut *ip_range* into slices of *slice_size* and hand them to nodes in order."""
    allocations = [NodeSliceAllocation(subnet) for subnet in divide_range_by_size(ip_range, slice_size)]
    for node_name in node_names:
        assign_node_to_slice(allocations, node_name)
    return allocations


def _controller_owner_ref(owner: OwnerReference) -> OwnerReference:
    return OwnerReference(
        name=owner.name,
        uid=owner.uid,
        api_version=NAD_API_VERSION,
        kind=NAD_KIND,
        controller=True,
        block_owner_deletion=True,
    )


def auxiliary_owner_ref(owner: OwnerReference) -> OwnerReference:
    """Return a non-controlling owner reference for an additional owner."""
    return replace(owner, controller=False, block_owner_deletion=False)


def pools_to_delete(pools: Iterable[NodeSlicePool], nad_name: str) -> List[NodeSlicePool]:
    """Return the pools whose only owner is the removed attachment *nad_name*."""
    return [
        pool
        for pool in pools
        if has_owner_ref(pool, nad_name) and len(pool.owner_references) == 1
    ]


def reconcile_pool(
    current: Optional[NodeSlicePool],
    settings: IPAMSettings,
    owner: OwnerReference,
    node_names: Iterable[str],
    namespace: str,
) -> Optional[NodeSlicePool]:
    """Return the desired pool for *settings*, or None if it uses no node slices.

    With no *current* pool a new one is built. Otherwise a copy of *current*
    is returned with *owner* added to its owners; if the range or slice size
    changed the range is sliced afresh, else nodes are assigned to free
    slices and slices of vanished nodes are freed. *current* is not changed.
    """
    if not settings.node_slice_size or not settings.ranges:
        return None
    nodes = list(node_names)
    ip_range = settings.ranges[0]

    if current is None:
        return NodeSlicePool(
            name=slice_name(settings),
            namespace=namespace,
            range=ip_range,
            slice_size=settings.node_slice_size,
            allocations=slice_allocations(ip_range, settings.node_slice_size, nodes),
            owner_references=[_controller_owner_ref(owner)],
        )

    pool = copy.deepcopy(current)
    if not has_owner_ref(pool, owner.name):
        pool.owner_references.append(auxiliary_owner_ref(owner))

    if pool.slice_size != settings.node_slice_size or pool.range != ip_range:
        pool.range = ip_range
        pool.slice_size = settings.node_slice_size
        pool.allocations = slice_allocations(ip_range, settings.node_slice_size, nodes)
    else:
        for node_name in nodes:
            assign_node_to_slice(pool.allocations, node_name)
        remove_unused_nodes(pool.allocations, nodes)
    return pool