import pytest

from wbipam.nodeslice import (
    NAD_API_VERSION,
    NAD_KIND,
    IPAMMismatchError,
    IPAMSettings,
    NodeSliceAllocation,
    NodeSlicePool,
    OwnerReference,
    assign_node_to_slice,
    auxiliary_owner_ref,
    check_multi_nad_mismatch,
    has_owner_ref,
    ipam_settings_match,
    node_has_allocation,
    pools_to_delete,
    reconcile_pool,
    remove_unused_nodes,
    slice_allocations,
    slice_name,
)

NAMESPACE = "default"


def settings(name, network, ip_range, size):
    return IPAMSettings(name="test-name", network_name=network, ranges=[ip_range], node_slice_size=size)


def owner(name):
    return OwnerReference(name=name)


def owner_refs(*names):
    if not names:
        return []
    refs = [OwnerReference(name=names[0], controller=True, block_owner_deletion=True)]
    refs.extend(OwnerReference(name=n, api_version=NAD_API_VERSION, kind=NAD_KIND) for n in names[1:])
    return refs


def allocs(*pairs):
    return [NodeSliceAllocation(slice_range=r, node_name=n) for n, r in pairs]


def pool(name, ip_range, size, allocations, *owners):
    return NodeSlicePool(
        name=name,
        namespace=NAMESPACE,
        range=ip_range,
        slice_size=size,
        allocations=allocations,
        owner_references=owner_refs(*owners),
    )


FOUR_SLICES_EMPTY = [("", "10.0.0.0/10"), ("", "10.64.0.0/10"), ("", "10.128.0.0/10"), ("", "10.192.0.0/10")]
FOUR_SLICES_TWO_NODES = [
    ("node1", "10.0.0.0/10"),
    ("node2", "10.64.0.0/10"),
    ("", "10.128.0.0/10"),
    ("", "10.192.0.0/10"),
]


def test_creates_pool_no_nodes():
    result = reconcile_pool(None, settings("test", "test", "10.0.0.0/8", "/10"), owner("test"), [], NAMESPACE)
    assert result == pool("test", "10.0.0.0/8", "/10", allocs(*FOUR_SLICES_EMPTY), "test")


def test_creates_pool_with_nodes():
    result = reconcile_pool(
        None, settings("test", "test", "10.0.0.0/8", "/10"), owner("test"), ["node1", "node2"], NAMESPACE
    )
    assert result == pool("test", "10.0.0.0/8", "/10", allocs(*FOUR_SLICES_TWO_NODES), "test")


def test_do_nothing_without_pools():
    assert pools_to_delete([], "test") == []


def test_node_joins():
    current = pool("test", "10.0.0.0/8", "/10", allocs(*FOUR_SLICES_EMPTY), "test")
    result = reconcile_pool(current, settings("test", "test", "10.0.0.0/8", "/10"), owner("test"), ["node1"], NAMESPACE)
    expected = allocs(("node1", "10.0.0.0/10"), *FOUR_SLICES_EMPTY[1:])
    assert result == pool("test", "10.0.0.0/8", "/10", expected, "test")
    assert current.allocations == allocs(*FOUR_SLICES_EMPTY)


def test_node_leaves():
    current = pool("test", "10.0.0.0/8", "/10", allocs(("node1", "10.0.0.0/10"), *FOUR_SLICES_EMPTY[1:]), "test")
    result = reconcile_pool(current, settings("test", "test", "10.0.0.0/8", "/10"), owner("test"), [], NAMESPACE)
    assert result == pool("test", "10.0.0.0/8", "/10", allocs(*FOUR_SLICES_EMPTY), "test")


def test_nad_delete():
    current = pool("test", "10.0.0.0/8", "/10", allocs(*FOUR_SLICES_TWO_NODES), "test")
    assert pools_to_delete([current], "test") == [current]


def test_update_no_impactful_change():
    current = pool("test", "10.0.0.0/8", "/10", allocs(*FOUR_SLICES_TWO_NODES), "test2")
    result = reconcile_pool(
        current, settings("test2", "test", "10.0.0.0/8", "/10"), owner("test2"), ["node1", "node2"], NAMESPACE
    )
    assert result == current


def test_update_range_and_slice_change():
    current = pool("test", "10.0.0.0/8", "/10", allocs(*FOUR_SLICES_TWO_NODES), "test")
    result = reconcile_pool(
        current, settings("test", "test", "10.0.0.0/10", "/12"), owner("test"), ["node1", "node2"], NAMESPACE
    )
    expected = allocs(("node1", "10.0.0.0/12"), ("node2", "10.16.0.0/12"), ("", "10.32.0.0/12"), ("", "10.48.0.0/12"))
    assert result == pool("test", "10.0.0.0/10", "/12", expected, "test")


def test_update_range_change():
    current = pool("test", "10.0.0.0/8", "/10", allocs(*FOUR_SLICES_TWO_NODES), "test")
    result = reconcile_pool(
        current, settings("test", "test", "11.0.0.0/8", "/10"), owner("test"), ["node1", "node2"], NAMESPACE
    )
    expected = allocs(
        ("node1", "11.0.0.0/10"), ("node2", "11.64.0.0/10"), ("", "11.128.0.0/10"), ("", "11.192.0.0/10")
    )
    assert result == pool("test", "11.0.0.0/8", "/10", expected, "test")


def test_update_slice_change():
    current = pool("test", "10.0.0.0/8", "/10", allocs(*FOUR_SLICES_TWO_NODES), "test")
    result = reconcile_pool(
        current, settings("test", "test", "10.0.0.0/8", "/11"), owner("test"), ["node1", "node2"], NAMESPACE
    )
    expected = allocs(
        ("node1", "10.0.0.0/11"),
        ("node2", "10.32.0.0/11"),
        ("", "10.64.0.0/11"),
        ("", "10.96.0.0/11"),
        ("", "10.128.0.0/11"),
        ("", "10.160.0.0/11"),
        ("", "10.192.0.0/11"),
        ("", "10.224.0.0/11"),
    )
    assert result == pool("test", "10.0.0.0/8", "/11", expected, "test")


def test_multiple_nads_same_network_name_appends_owner():
    current = pool("test", "10.0.0.0/8", "/10", allocs(*FOUR_SLICES_TWO_NODES), "test1")
    result = reconcile_pool(
        current, settings("test2", "test", "10.0.0.0/8", "/10"), owner("test2"), ["node1", "node2"], NAMESPACE
    )
    assert result == pool("test", "10.0.0.0/8", "/10", allocs(*FOUR_SLICES_TWO_NODES), "test1", "test2")


def test_multiple_nads_delete_one_keeps_pool():
    current = pool("test", "10.0.0.0/8", "/10", allocs(*FOUR_SLICES_TWO_NODES), "test1", "test2")
    assert pools_to_delete([current], "test2") == []


def test_two_networks_range_and_slice_mismatch():
    first = settings("test1", "test", "10.0.0.0/8", "/10")
    second = settings("test2", "test", "10.0.0.0/8", "/8")
    with pytest.raises(IPAMMismatchError):
        check_multi_nad_mismatch(second, [first, second])


def test_matching_settings_pass_check():
    first = settings("test1", "test", "10.0.0.0/8", "/10")
    other = settings("x", "other", "11.0.0.0/8", "/12")
    check_multi_nad_mismatch(first, [first, other])
    assert ipam_settings_match(first, other) is True
    assert ipam_settings_match(first, settings("y", "test", "11.0.0.0/8", "/10")) is False


def test_reconcile_skips_without_slice_size_or_range():
    assert reconcile_pool(None, IPAMSettings(name="n", ranges=["10.0.0.0/8"]), owner("n"), [], NAMESPACE) is None
    assert reconcile_pool(None, IPAMSettings(name="n", node_slice_size="/10"), owner("n"), [], NAMESPACE) is None


def test_slice_name_prefers_network_name():
    assert slice_name(IPAMSettings(name="conf", network_name="net")) == "net"
    assert slice_name(IPAMSettings(name="conf")) == "conf"


def test_assign_node_is_idempotent_and_stops_when_full():
    allocations = allocs(("", "10.0.0.0/9"), ("", "10.128.0.0/9"))
    for node in ["a", "a", "b", "c"]:
        assign_node_to_slice(allocations, node)
    assert allocations == allocs(("a", "10.0.0.0/9"), ("b", "10.128.0.0/9"))
    assert node_has_allocation(allocations, "c") is False


def test_remove_unused_nodes_frees_missing():
    allocations = allocs(("a", "10.0.0.0/9"), ("b", "10.128.0.0/9"))
    remove_unused_nodes(allocations, ["b"])
    assert allocations == allocs(("", "10.0.0.0/9"), ("b", "10.128.0.0/9"))


def test_slice_allocations_and_owner_helpers():
    assert slice_allocations("10.0.0.0/8", "9", ["n1"]) == allocs(("n1", "10.0.0.0/9"), ("", "10.128.0.0/9"))
    aux = auxiliary_owner_ref(OwnerReference(name="nad", uid="u1", controller=True, block_owner_deletion=True))
    assert aux == OwnerReference(name="nad", uid="u1")
    p = pool("p", "10.0.0.0/8", "/10", [], "nad")
    assert has_owner_ref(p, "nad") is True
    assert has_owner_ref(p, "other") is False


def test_slice_allocations_rejects_smaller_slice():
    with pytest.raises(ValueError):
        slice_allocations("10.0.0.0/10", "/8", [])