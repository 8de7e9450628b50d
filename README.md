# wbipam

Building blocks for an IP address management service that hands out
addresses to pods across a cluster. The package has no dependencies beyond
the standard library.

## Modules

- `wbipam.iphelpers`: address arithmetic on IPv4 and IPv6 using
  `ipaddress` objects (strings are accepted too). IPv4-mapped IPv6
  addresses are treated as IPv4.
  - `compare_ips`, `is_ip_in_range`, `is_ipv4`
  - `network_ip`, `subnet_broadcast_ip`, `has_usable_ips`,
    `first_usable_ip`, `last_usable_ip`, `get_ip_range`
  - `inc_ip`, `dec_ip` (wrap around within the address family)
  - `ip_get_offset`, `ip_add_offset`
  - `divide_range_by_size` splits an IPv4 CIDR range into equal subnets
  - `bytes_add`, `bytes_sub`, `bytes_to_int`, `int_to_bytes` for 16-byte
    big-endian numbers
- `wbipam.logsink`: a levelled logger. `Level` has `PANIC`, `ERROR`,
  `VERBOSE` and `DEBUG`; a `Logger` writes timestamped lines to stderr
  and/or an append-only file and can be used as a context manager. The
  module-level functions `debug`, `verbose`, `error`, `panic`,
  `set_log_level`, `set_log_stderr`, `set_log_file` and
  `get_logging_level` act on a shared default logger (level `DEBUG`,
  writing to stderr). `error` returns a `RuntimeError` with the logged
  text; `parse_level` turns a name into a `Level` case-insensitively.
- `wbipam.nodeslice`: splitting a network range into per-node slices.
  Data classes `NodeSliceAllocation`, `OwnerReference`, `NodeSlicePool`
  and `IPAMSettings`; `slice_allocations`, `assign_node_to_slice`,
  `remove_unused_nodes`, `check_multi_nad_mismatch` (raises
  `IPAMMismatchError`), `pools_to_delete` and `reconcile_pool`, which
  returns the desired state of a pool without changing the current one.
- `wbipam.podgc`: helpers for reclaiming addresses of deleted pods:
  `Pod`, `NetworkStatus`, `DeletedFinalStateUnknown`, `pod_network_status`,
  `pod_from_tombstone`, `strip_pod`, `split_network_name`,
  `stale_allocations`, `garbage_collected_message`,
  `garbage_collection_failed_message`, `should_retry` and
  `ip_pools_namespace`.
- `wbipam.signals`: `setup_signal_handler()` installs handlers for SIGINT
  and SIGTERM and returns a `threading.Event` that the first signal sets;
  a second signal ends the process with status 1. It may be called once.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Examples

Subnet arithmetic:

```python
import ipaddress
from wbipam.iphelpers import divide_range_by_size, get_ip_range

divide_range_by_size("10.0.0.0/8", "/10")
# ['10.0.0.0/10', '10.64.0.0/10', '10.128.0.0/10', '10.192.0.0/10']

network = ipaddress.ip_network("192.168.2.0/24")
get_ip_range(network, ipaddress.ip_address("192.168.2.50"), None)
# (IPv4Address('192.168.2.50'), IPv4Address('192.168.2.254'))
```

Assigning nodes to slices:

```python
from wbipam.nodeslice import slice_allocations

allocations = slice_allocations("10.0.0.0/8", "/10", ["node1", "node2"])
[(a.slice_range, a.node_name) for a in allocations]
# [('10.0.0.0/10', 'node1'), ('10.64.0.0/10', 'node2'),
#  ('10.128.0.0/10', ''), ('10.192.0.0/10', '')]
```

Logging:

```python
from wbipam import logsink

logsink.set_log_level("verbose")
logsink.verbose("pool range [%s]", "192.168.2.0/24")
```

The namespace that holds IP pools is read from the `WHEREABOUTS_NAMESPACE`
environment variable and defaults to `kube-system`
(`wbipam.podgc.ip_pools_namespace`).

## What the package does not do

The package computes state and messages; it does not talk to a cluster.
There is no API client, no informer or work queue, no running controller
and no command-line program. Reading network attachment configurations,
storing pools and recording events are left to the caller.