import base64

import pytest

from konjure.api import (
    API_VERSION,
    File,
    Helm,
    Jsonnet,
    Kubernetes,
    Resource,
    Secret,
    get_rnode,
)
from konjure.file_reader import FileReader
from konjure.readers import (
    Filter,
    new_reader,
    with_default_types,
    with_kubeconfig,
    with_kubectl_executor,
    with_kustomize_executor,
    with_recursive_directories,
    with_working_directory,
)
from konjure.tools import HelmReader, KubernetesReader

DEPLOYMENT = "apiVersion: apps/v1\nkind: Deployment\nmetadata:\n  name: web\n"
CONFIG_MAP = b"apiVersion: v1\nkind: ConfigMap\nmetadata:\n  name: cm\n"


def test_new_reader_copies_fields():
    reader = new_reader(Helm(chart="nginx", version="1.2.3"))
    assert isinstance(reader, HelmReader)
    assert (reader.chart, reader.version) == ("nginx", "1.2.3")


@pytest.mark.parametrize("res", [Resource(), Jsonnet(), "not a resource"])
def test_new_reader_unrecognised(res):
    assert new_reader(res) is None


def test_options_ignore_other_readers():
    reader = new_reader(Helm(chart="nginx"))
    assert with_recursive_directories(True)(reader) is reader
    assert with_kubeconfig("/kube/config")(reader) is reader
    assert not hasattr(reader, "kubeconfig")


def test_option_settings():
    file_reader = new_reader(File(path="a"))
    with_recursive_directories(True)(file_reader)
    with_working_directory("/base")(file_reader)
    assert file_reader.recurse is True
    assert file_reader.abs_path("sub/x.yaml") == "/base/sub/x.yaml"
    assert file_reader.abs_path("/abs/./y.yaml") == "/abs/y.yaml"

    kube_reader = new_reader(Kubernetes())
    with_default_types("deployments", "statefulsets")(kube_reader)
    assert isinstance(kube_reader, KubernetesReader)
    assert kube_reader.default_types == ["deployments", "statefulsets"]


def test_depth_zero_is_noop():
    node = get_rnode(File(path="/nowhere"))
    assert Filter().filter([node]) == [node]


def test_plain_nodes_are_kept():
    node = {"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": "cm"}}
    assert Filter(depth=5).filter([node]) == [node]


def test_expand_file(tmp_path):
    (tmp_path / "deploy.yaml").write_text(DEPLOYMENT)
    node = get_rnode(File(path=str(tmp_path / "deploy.yaml")))
    result = Filter(depth=3).filter([node])
    assert len(result) == 1
    assert result[0]["kind"] == "Deployment"
    assert result[0]["metadata"]["name"] == "web"


def test_relative_file_needs_working_directory(tmp_path):
    (tmp_path / "deploy.yaml").write_text(DEPLOYMENT)
    node = get_rnode(File(path="deploy.yaml"))
    with pytest.raises(ValueError, match="unable to resolve relative path"):
        Filter(depth=1).filter([node])

    result = Filter(depth=1, reader_options=[with_working_directory(str(tmp_path))]).filter(
        [node]
    )
    assert [n["metadata"]["name"] for n in result] == ["web"]


def test_expand_kustomize_directory(tmp_path):
    (tmp_path / "kustomization.yaml").write_text("resources: []\n")
    node = get_rnode(File(path=str(tmp_path)))

    [kustomize] = Filter(depth=1).filter([node])
    assert kustomize["kind"] == "Kustomize"
    assert kustomize["root"] == str(tmp_path)

    calls = []

    def executor(cmd):
        calls.append(list(cmd.args))
        return CONFIG_MAP

    result = Filter(depth=2, reader_options=[with_kustomize_executor(executor)]).filter(
        [node]
    )
    assert calls == [["kustomize", "build", str(tmp_path)]]
    assert [n["metadata"]["name"] for n in result] == ["cm"]


def test_expand_kubernetes():
    calls = []

    def executor(cmd):
        calls.append(list(cmd.args))
        return b""

    node = get_rnode(Kubernetes(namespace="default"))
    options = [
        with_default_types("deployments", "statefulsets"),
        with_kubectl_executor(executor),
        with_kubeconfig("/kube/config"),
    ]
    result = Filter(depth=1, reader_options=options).filter([node])
    assert result == []
    [args] = calls
    assert args[0] == "kubectl"
    assert args[1:3] == ["--kubeconfig", "/kube/config"]
    assert args[-3:] == ["--namespace", "default", "deployments,statefulsets"]


def test_expand_secret():
    node = get_rnode(Secret(secret_name="creds", literal_sources=["k=v"]))
    [secret] = Filter(depth=2).filter([node])
    assert secret["apiVersion"] == "v1"
    assert secret["metadata"]["name"] == "creds"
    assert base64.b64decode(secret["data"]["k"]) == b"v"


def test_unreadable_type():
    node = get_rnode(Resource(resources=["x"]))
    with pytest.raises(ValueError, match="unable to read resources from type: Resource"):
        Filter(depth=1).filter([node])


def test_unknown_konjure_kind():
    node = {"apiVersion": API_VERSION, "kind": "Bogus"}
    with pytest.raises(ValueError, match="unknown kind: Bogus"):
        Filter(depth=1).filter([node])


class _CleanableReader:
    def __init__(self, nodes, fail=False):
        self.nodes = nodes
        self.fail = fail
        self.cleaned = False

    def read(self):
        if self.fail:
            raise RuntimeError("read failed")
        return list(self.nodes)

    def clean(self):
        self.cleaned = True


def test_cleaners_run_after_iteration():
    node = {"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": "cm"}}
    fake = _CleanableReader([node])
    result = Filter(depth=1, reader_options=[lambda reader: fake]).filter([node])
    assert result == [node]
    assert fake.cleaned is True


def test_cleaners_run_on_error():
    node = {"apiVersion": "v1", "kind": "ConfigMap", "metadata": {"name": "cm"}}
    fake = _CleanableReader([], fail=True)
    with pytest.raises(RuntimeError, match="read failed"):
        Filter(depth=1, reader_options=[lambda reader: fake]).filter([node])
    assert fake.cleaned is True


def test_file_reader_option_recurse(tmp_path):
    sub = tmp_path / "sub"
    sub.mkdir()
    (sub / "deploy.yaml").write_text(DEPLOYMENT)
    node = get_rnode(File(path=str(tmp_path)))

    assert Filter(depth=1).filter([node]) == []

    result = Filter(depth=1, reader_options=[with_recursive_directories(True)]).filter([node])
    assert [n["metadata"]["name"] for n in result] == ["web"]
    assert isinstance(new_reader(File(path=str(tmp_path))), FileReader)