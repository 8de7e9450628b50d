"""Helpers for reclaiming the addresses of deleted pods.

When a pod is deleted, the allocations it held in the IP pools of its
secondary networks become stale. The functions here read a pod's network
status, find the allocations that belong to it and build the events that
report the outcome of the cleanup.
"""

from __future__ import annotations

import copy
import ipaddress
import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from wbipam.iphelpers import ip_add_offset

NETWORK_STATUS_ANNOTATION = "k8s.v1.cni.cncf.io/network-status"
NETWORK_ATTACHMENT_ANNOTATION = "k8s.v1.cni.cncf.io/networks"

NAMESPACE_ENV_VARIABLE = "WHEREABOUTS_NAMESPACE"
DEFAULT_NAMESPACE = "kube-system"
NODE_NAME_ENV_VARIABLE = "NODENAME"

DEFAULT_MOUNT_PATH = "/host"
CONFIG_PATH = "/etc/cni/net.d/whereabouts.d/whereabouts.conf"
QUEUE_NAME = "pod-updates"
MAX_RETRIES = 2

EVENT_TYPE_NORMAL = "Normal"
EVENT_TYPE_WARNING = "Warning"
ADDRESS_GARBAGE_COLLECTED = "IPAddressGarbageCollected"
ADDRESS_GARBAGE_COLLECTION_FAILED = "IPAddressGarbageCollectionFailed"


@dataclass
class NetworkStatus:
    """The status of one of a pod's network interfaces."""

    name: str
    interface: str = ""
    ips: List[str] = field(default_factory=list)
    mac: str = ""
    default: bool = False
    dns: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NetworkStatus":
        """Build a status from one entry of the network-status annotation."""
        if not isinstance(data, Mapping):
            raise ValueError(f"network status entry is not an object: {data!r}")
        return cls(
            name=str(data.get("name", "")),
            interface=str(data.get("interface", "")),
            ips=list(data.get("ips") or []),
            mac=str(data.get("mac", "")),
            default=bool(data.get("default", False)),
            dns=dict(data.get("dns") or {}),
        )


@dataclass
class Pod:
    """The parts of a pod that address cleanup needs."""

    name: str
    namespace: str
    annotations: Dict[str, str] = field(default_factory=dict)
    spec: Dict[str, Any] = field(default_factory=dict)
    status: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DeletedFinalStateUnknown:
    """An object whose deletion was seen without its final state."""

    key: str
    obj: Any


def pod_id(namespace: str, name: str) -> str:
    """Return the ``namespace/name`` reference of a pod."""
    return f"{namespace}/{name}"


def pod_network_status(pod: Pod) -> List[NetworkStatus]:
    """Return the interface statuses recorded in the pod's annotation.

    A pod without the annotation has no statuses. Raises ValueError if the
    annotation is not a JSON list of objects.
    """
    raw = pod.annotations.get(NETWORK_STATUS_ANNOTATION)
    if raw is None:
        return []
    data = json.loads(raw)
    if data is None:
        return []
    if not isinstance(data, list):
        raise ValueError("network status annotation is not a list")
    return [NetworkStatus.from_dict(entry) for entry in data]


def ip_pools_namespace(environ: Optional[Mapping[str, str]] = None) -> str:
    """Return the namespace holding the IP pools, taken from the environment."""
    env = os.environ if environ is None else environ
    return env.get(NAMESPACE_ENV_VARIABLE, DEFAULT_NAMESPACE)


def pod_from_tombstone(obj: Any) -> Pod:
    """Return the pod carried by a delete notification.

    Raises TypeError if *obj* is neither a pod nor a tombstone holding one.
    """
    if isinstance(obj, Pod):
        return obj
    if not isinstance(obj, DeletedFinalStateUnknown):
        raise TypeError(f"received unexpected object: {obj!r}")
    if not isinstance(obj.obj, Pod):
        raise TypeError(f"deletedFinalStateUnknown contained non-Pod object: {obj.obj!r}")
    return obj.obj


def strip_pod(pod: Pod) -> Pod:
    """Return a copy of *pod* keeping only its metadata."""
    stripped = copy.deepcopy(pod)
    stripped.spec = {}
    stripped.status = {}
    return stripped


def split_network_name(name: str) -> Tuple[str, str]:
    """Split a ``namespace/name`` network reference into its two parts."""
    parts = name.split("/")
    if len(parts) < 2:
        raise ValueError(f"pod {name} name does not feature namespace/pod name syntax")
    return parts[0], parts[1]


def _allocation_pod_ref(allocation: Any) -> Optional[str]:
    if isinstance(allocation, Mapping):
        return allocation.get("podref")
    return getattr(allocation, "pod_ref", None)


def stale_allocations(allocations: Mapping[str, Any], pod_ref: str) -> List[Tuple[str, Any]]:
    """Return the ``(index, allocation)`` pairs held by the pod *pod_ref*.

    Allocations may be mappings with a ``podref`` key or objects with a
    ``pod_ref`` attribute.
    """
    return [
        (index, allocation)
        for index, allocation in allocations.items()
        if _allocation_pod_ref(allocation) == pod_ref
    ]


def garbage_collected_message(ip_range: str, allocation_index: str, network_name: str) -> str:
    """Return the event text for an address released from *ip_range*.

    The address is the range's address advanced by the allocation index.
    Raises ValueError for a malformed range or index.
    """
    if "/" not in ip_range:
        raise ValueError(f"invalid CIDR address: {ip_range}")
    base = ipaddress.ip_interface(ip_range).ip
    index = int(allocation_index)
    address = ip_add_offset(base, index)
    if address is None:
        raise ValueError(f"allocation index {index} is out of range for {ip_range}")
    return f"successful cleanup of IP address [{address}] from network {network_name}"


def garbage_collection_failed_message(pod: Pod) -> str:
    """Return the event text for a pod whose addresses could not be reclaimed."""
    return f"failed to garbage collect addresses for pod {pod_id(pod.namespace, pod.name)}"


def should_retry(retries: int) -> bool:
    """Return True if a failed cleanup after *retries* attempts is to be requeued."""
    return retries <= MAX_RETRIES