import pytest

from konjure.application import (
    ApplicationNode,
    GroupKind,
    LabelSelector,
    index,
    matches_label_selector,
    strip_version,
)


@pytest.mark.parametrize(
    "group_kind, expected",
    [
        (GroupKind(), "."),
        (GroupKind(kind="Foo"), "Foo."),
        (GroupKind(group="apps", kind="Deployment"), "Deployment.apps"),
    ],
)
def test_group_kind_string(group_kind, expected):
    assert str(group_kind) == expected


@pytest.mark.parametrize(
    "gv, expected",
    [("", ""), ("v1", ""), ("apps/v1", "apps"), ("batch/v1beta1", "batch")],
)
def test_strip_version(gv, expected):
    assert strip_version(gv) == expected


def test_group_kind_matches():
    assert GroupKind(kind="Service").matches("v1", "Service")
    assert GroupKind(group="apps", kind="Deployment").matches("apps/v1", "Deployment")
    assert not GroupKind(group="apps", kind="Deployment").matches("v1", "Deployment")
    assert not GroupKind(kind="Service").matches("v1", "ConfigMap")


def test_label_selector_string():
    selector = LabelSelector(
        match_labels={"app": "web"},
        match_expressions=[
            {"key": "tier", "operator": "In", "values": ["b", "a"]},
            {"key": "env", "operator": "NotIn", "values": ["dev"]},
            {"key": "owner", "operator": "Exists"},
            {"key": "legacy", "operator": "DoesNotExist"},
        ],
    )
    assert str(selector) == "app=web,tier in (a,b),env notin (dev),owner,!legacy"


def test_empty_label_selector_string():
    assert str(LabelSelector()) == ""


@pytest.mark.parametrize(
    "selector, expected",
    [
        ("", True),
        ("app=web", True),
        ("app==web", True),
        ("app=db", False),
        ("app!=db", True),
        ("tier in (front,back)", True),
        ("tier notin (front,back)", False),
        ("tier", True),
        ("!tier", False),
        ("!missing", True),
        ("app=web,tier in (back)", False),
    ],
)
def test_matches_label_selector(selector, expected):
    labels = {"app": "web", "tier": "front"}
    assert matches_label_selector(labels, selector) is expected


def test_matches_label_selector_invalid():
    with pytest.raises(ValueError):
        matches_label_selector({}, "tier in (a")


def _app(name, namespace, spec):
    return {
        "apiVersion": "app.k8s.io/v1beta1",
        "kind": "Application",
        "metadata": {"name": name, "namespace": namespace},
        "spec": spec,
    }


def _deployment(name, namespace, labels):
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": name, "namespace": namespace, "labels": labels},
    }


def test_index_moves_applications():
    app = _app(
        "shop",
        "prod",
        {
            "selector": {"matchLabels": {"app": "shop"}},
            "componentKinds": [{"group": "apps", "kind": "Deployment"}],
        },
    )
    other = _deployment("web", "prod", {"app": "shop"})
    apps = {}
    remaining = index([app, other], apps)

    assert remaining == [other]
    node = apps[("shop", "prod")]
    assert node.namespace == "prod"
    assert node.selector == "app=shop"
    assert node.component_kinds == [GroupKind(group="apps", kind="Deployment")]
    assert node.node["spec"]["selector"] == {"matchLabels": {"app": "shop"}}


def test_index_merges_repeated_applications():
    first = _app("shop", "prod", {"componentKinds": [{"kind": "Service"}]})
    second = _app("shop", "prod", {"selector": {"matchLabels": {"app": "shop"}}})
    apps = {}
    assert index([first, second], apps) == []
    node = apps[("shop", "prod")]
    assert node.component_kinds == [GroupKind(kind="Service")]
    assert node.selector == "app=shop"
    assert set(node.node["spec"]) == {"componentKinds", "selector"}


def test_application_filter_removes_owned():
    app = ApplicationNode(
        namespace="prod",
        component_kinds=[GroupKind(group="apps", kind="Deployment")],
        selector="app=shop",
    )
    owned = _deployment("web", "prod", {"app": "shop"})
    other_label = _deployment("db", "prod", {"app": "other"})
    other_namespace = _deployment("web", "dev", {"app": "shop"})
    other_kind = {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {"name": "web", "namespace": "prod", "labels": {"app": "shop"}},
    }
    nodes = [owned, other_label, other_namespace, other_kind]
    assert app.filter(nodes) == [other_label, other_namespace, other_kind]