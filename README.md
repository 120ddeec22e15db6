# konjure

`konjure` is a library that turns resource specifications into Kubernetes
resource nodes. A specification can name a local file or directory, a Git
repository, an HTTP URL, a Helm chart, a Kustomize root, resources living in
a cluster, or a Secret whose data is generated on the spot. Specifications
are expanded step by step until only plain resources are left.

Resource nodes are plain Python mappings, as produced by a YAML parser.

## Installing

```
pip install .
```

Reading from Git, Helm, Kustomize or a cluster runs the `git`, `helm`,
`kustomize` or `kubectl` programs, which must be on your `PATH`.

## Resource types

`konjure.api` defines the specification types of the
`konjure.stormforge.io/v1beta2` API as dataclasses: `Resource`, `Helm`
(with `HelmValue`), `Jsonnet` (with `JsonnetParameter`), `Kubernetes`,
`Kustomize`, `Secret` (with `PasswordRecipe`), `Git`, `HTTP` and `File`.

* `get_rnode(obj)` turns one of them into a resource node with its
  `apiVersion` and `kind` filled in; any other type raises `TypeError`.
* `decode(node)` turns such a node back into a typed object.
* `new_for_type(api_version, kind)` creates an empty object for a kind and
  raises `ValueError` for an unknown API version or kind.
* `resource_meta(node)` reads a node's type and object metadata into a
  `ResourceMeta` (API version, kind, name, namespace, labels, annotations).

```python
from konjure.api import File, get_rnode, decode

node = get_rnode(File(path="/srv/manifests"))
assert decode(node) == File(path="/srv/manifests")
```

## Expanding resources

`konjure.readers.Filter` expands resource nodes, up to `depth` times, until
none of them changes any more. Nodes that are not Konjure resources are
passed through as they are. Readers that hold temporary data (such as Git
checkouts) are cleaned up after each round. Options set how each reader
behaves:

```python
from konjure.api import File, get_rnode
from konjure.readers import Filter, with_working_directory, with_recursive_directories

expander = Filter(
    depth=100,
    reader_options=[
        with_working_directory("/srv"),
        with_recursive_directories(True),
    ],
)
manifests = expander.filter([get_rnode(File(path="manifests"))])
```

`new_reader(res)` returns the reader for a single typed resource, or `None`
if there is none. The other options are `with_kubeconfig`,
`with_kubectl_executor`, `with_kustomize_executor` and `with_default_types`.
An executor is a callable that receives a `konjure.kio.Command` and returns
its standard output as bytes, which makes it possible to run commands
elsewhere or to stand in for them.

## Readers

Every reader has a `read()` method returning a list of resource nodes. They
can also be used directly:

* `konjure.file_reader.FileReader`: a file or directory. A directory that
  holds a kustomization becomes a `Kustomize` resource, `.jsonnet` files
  become `Jsonnet` resources, and `.yaml`, `.yml`, `.json` and
  extension-less files are parsed, keeping only nodes that look like
  resources (see `keep_node`). Relative paths need `abs_path` to resolve
  them.
* `konjure.remote.GitReader`: a shallow fetch of a repository into a
  temporary directory, producing a `File` resource for the chosen context;
  `clean()` removes the checkout. `konjure.remote.HTTPReader`: resources
  fetched over HTTP(S); a response code outside 2xx raises `OSError`.
* `konjure.tools.HelmReader`, `KustomizeReader` and `KubernetesReader`:
  the output of `helm template`, `kustomize build` and `kubectl get`.
  Helm test hooks are dropped unless `include_tests` is set. A failing
  command raises `konjure.kio.CommandError`.
* `konjure.secret.SecretReader`: a `Secret` built from literals, files,
  `.env` files, random UUIDs, ULIDs and passwords, with its data base64
  encoded. `generate_password`, `password_args` and `new_ulid` are
  available on their own.

`konjure.kio` holds the building blocks: `ByteReader` and `from_bytes` parse
YAML or JSON documents (unwrapping `kind: List`), `StaticReader` returns a
fixed list of nodes, and `Runtime` and `Command` run external programs.

## Applications

`konjure.application.index` gathers `app.k8s.io/v1beta1` `Application`
resources out of a list of nodes into a dictionary keyed by
`(name, namespace)`, merging repeated definitions. `ApplicationNode.filter`
removes the resources an application owns, matched by namespace, component
kinds and label selector. `matches_label_selector` evaluates a label
selector string against a set of labels, and the recommended label names
are available as `LABEL_NAME`, `LABEL_INSTANCE` and so on.

## What it does not do

* There is no command-line program; everything is used from Python.
* `Resource` and `Jsonnet` resources have no reader: `new_reader` returns
  `None` for them and `Filter` raises `ValueError` when it meets one,
  including the `Jsonnet` nodes that `FileReader` makes from `.jsonnet`
  files.
* URL-like specification strings (such as `helm://` or `k8s:` forms) are
  not parsed; resources are built from the typed objects.
* Expanded resources are returned as nodes; writing them out as YAML, JSON
  or other formats is left to the caller.