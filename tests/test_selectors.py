import pytest

from failover.errors import ConfigError
from failover.selectors import LabelSelector, Operator, ResourceKind, ResourceSelector

from fakes import FakeStore, make_master, make_node


@pytest.mark.parametrize(
    "expr,labels,expected",
    [
        ("", {"a": "b"}, True),
        ("role=db", {"role": "db"}, True),
        ("role==db", {"role": "db"}, True),
        ("role=db", {"role": "web"}, False),
        ("role=db", {}, False),
        ("role!=db", {"role": "web"}, True),
        ("role!=db", {}, True),
        ("role!=db", {"role": "db"}, False),
        ("pool", {"pool": ""}, True),
        ("!pool", {"pool": "true"}, False),
        ("!pool", {}, True),
        ("zone in (a, b)", {"zone": "b"}, True),
        ("zone in (a,b)", {"zone": "c"}, False),
        ("zone notin (a,b)", {"zone": "c"}, True),
        ("zone notin (a,b)", {}, True),
        ("role=db,zone in (a,b),!drain", {"role": "db", "zone": "a"}, True),
        ("role=db,zone in (a,b),!drain", {"role": "db", "zone": "a", "drain": "1"}, False),
        ("node-role.kubernetes.io/worker", {"node-role.kubernetes.io/worker": ""}, True),
    ],
)
def test_matches(expr, labels, expected):
    assert LabelSelector.parse(expr).matches(labels) is expected


@pytest.mark.parametrize(
    "expr",
    ["role=db=x", "=db", "zone in (a,b", "zone in a,b)", "role=db,,x=y", "bad key=1", "zone in ()", "zone notin ( )"],
)
def test_parse_errors(expr):
    with pytest.raises(ConfigError):
        LabelSelector.parse(expr)


def test_string_form_is_canonical():
    sel = LabelSelector.parse(" role == db , zone in (b,a), !drain ")
    assert str(sel) == "role=db,zone in (a,b),!drain"
    assert [r.operator for r in sel.requirements] == [Operator.EQUALS, Operator.IN, Operator.DOES_NOT_EXIST]
    assert LabelSelector.parse(str(sel)) == sel


def test_resource_selector_is_bound_to_its_kind():
    store = FakeStore()
    store.add_node(make_node("n1"))
    store.add_node(make_node("n2", role="web"))
    nodes = ResourceSelector(ResourceKind.NODE, "role=db").nodes(store)
    assert [n.name for n in nodes] == ["n1"]

    with pytest.raises(TypeError):
        ResourceSelector(ResourceKind.NODE, "role=db").pods(store, "failover")
    with pytest.raises(TypeError):
        ResourceSelector(ResourceKind.POD, "app=master").nodes(store)


def test_pod_selector_filters_by_node():
    store = FakeStore()
    store.add_pod(make_master("n1"))
    store.add_pod(make_master("n2"))
    pods = ResourceSelector(ResourceKind.POD, "app=master").pods(store, "failover", node_name="n2")
    assert [p.name for p in pods] == ["master-n2"]
    assert store.queries[-1] == ("list_pods", "failover", "spec.nodeName=n2", "app=master")
