import pytest

from conftest import PRIVILEGED_POD, SECURE_DEPLOYMENT, memory_fs
from kube_guardrails import MemoryFileSystem, ParseError, ScanCancelled, ScanContext
from kube_guardrails.parser import ManifestParser


def parse(files, root=".", skip_required_check=False):
    parser = ManifestParser(skip_required_check=skip_required_check)
    return parser.parse_fs(ScanContext(), memory_fs(files), root)


def test_multi_document_file_keeps_document_order():
    content = SECURE_DEPLOYMENT + "---\n" + PRIVILEGED_POD

    filesets = parse({"bundle.yaml": content})

    documents = filesets["bundle.yaml"]
    assert [doc.kind for doc in documents] == ["Deployment", "Pod"]
    assert [doc.index for doc in documents] == [0, 1]
    assert documents[0].start_line == 1
    assert documents[1].start_line > documents[0].end_line


def test_non_manifest_files_are_omitted():
    filesets = parse(
        {
            "chart/values.yaml": "replicas: 3\nimage: nginx\n",
            "README.md": "apiVersion kind metadata",
            "deploy/pod.yml": PRIVILEGED_POD,
        }
    )

    assert list(filesets) == ["deploy/pod.yml"]


def test_skip_required_check_parses_every_yaml_file():
    filesets = parse({"values.yaml": "replicas: 3\n"}, skip_required_check=True)

    assert filesets["values.yaml"][0].content == {"replicas": 3}


def test_empty_and_scalar_documents_are_dropped():
    content = "---\n---\njust a string\n---\n" + PRIVILEGED_POD

    filesets = parse({"mixed.yaml": content})

    assert [doc.kind for doc in filesets["mixed.yaml"]] == ["Pod"]
    assert filesets["mixed.yaml"][0].index == 0


def test_json_manifests_are_parsed():
    content = '{"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": "shop"}}'

    filesets = parse({"ns.json": content})

    assert filesets["ns.json"][0].content["metadata"]["name"] == "shop"


def test_custom_tags_are_tolerated():
    content = "apiVersion: v1\nkind: ConfigMap\nmetadata:\n  name: cfg\ndata:\n  url: !Sub https://example.com\n"

    filesets = parse({"cm.yaml": content})

    assert filesets["cm.yaml"][0].content["data"]["url"] == "https://example.com"


def test_only_files_below_root_are_parsed():
    filesets = parse({"prod/pod.yaml": PRIVILEGED_POD, "staging/pod.yaml": PRIVILEGED_POD}, root="prod")

    assert list(filesets) == ["prod/pod.yaml"]


def test_empty_tree_returns_empty_mapping():
    assert ManifestParser().parse_fs(ScanContext(), MemoryFileSystem(), ".") == {}


def test_malformed_yaml_raises_parse_error():
    broken = "apiVersion: v1\nkind: Pod\nmetadata: {name: x\n"

    with pytest.raises(ParseError) as excinfo:
        parse({"broken.yaml": broken})

    assert excinfo.value.path == "broken.yaml"


def test_missing_root_raises_parse_error():
    with pytest.raises(ParseError):
        parse({"pod.yaml": PRIVILEGED_POD}, root="nowhere")


def test_cancelled_context_stops_parsing():
    ctx = ScanContext()
    ctx.cancel()

    with pytest.raises(ScanCancelled):
        ManifestParser().parse_fs(ctx, memory_fs({"pod.yaml": PRIVILEGED_POD}), ".")


def test_fields_mentioned_only_in_comments_do_not_make_a_manifest():
    template = (
        "# Rendered by the chart into a manifest with apiVersion, kind and metadata.\n"
        "replicas: {{ .Values.replicas }\n"
    )

    assert parse({"templates/deployment.yaml": template}) == {}
    with pytest.raises(ParseError):
        parse({"templates/deployment.yaml": template}, skip_required_check=True)


def test_documents_without_required_fields_are_dropped():
    content = "kind: List\nitems: []\n---\n" + PRIVILEGED_POD

    documents = parse({"mixed.yaml": content})["mixed.yaml"]

    assert [doc.kind for doc in documents] == ["Pod"]
    assert documents[0].index == 0
