import io
import json

from conftest import FLAG_POLICY, PRIVILEGED_POD, SECURE_DEPLOYMENT, feature_config
from kube_guardrails import cli


def test_cli_generates_json_report(tmp_path, capsys):
    manifests = tmp_path / "k8s"
    manifests.mkdir()
    (manifests / "pod.yaml").write_text(PRIVILEGED_POD, encoding="utf-8")
    output_path = tmp_path / "scan.json"

    exit_code = cli.main([str(manifests), "--out", str(output_path)])

    captured = capsys.readouterr()
    assert "Scan Summary" in captured.out
    assert exit_code == 2  # privileged container and host network are HIGH
    data = json.loads(output_path.read_text(encoding="utf-8"))
    assert data["summary"]["high"] >= 2
    assert data["passed"] is False


def test_cli_passes_on_clean_manifest(tmp_path, capsys):
    manifest = tmp_path / "deploy.yaml"
    manifest.write_text(SECURE_DEPLOYMENT, encoding="utf-8")

    output_path = tmp_path / "clean.json"
    exit_code = cli.main([str(manifest), "--out", str(output_path)])

    captured = capsys.readouterr()
    assert "Status    : PASS" in captured.out
    assert exit_code == 0
    data = json.loads(output_path.read_text(encoding="utf-8"))
    assert data["summary"]["high"] == 0
    assert data["passed"] is True


def test_cli_uses_external_policies_only(tmp_path, capsys):
    policies = tmp_path / "policies"
    policies.mkdir()
    (policies / "flag.yaml").write_text(FLAG_POLICY, encoding="utf-8")
    manifests = tmp_path / "k8s"
    manifests.mkdir()
    (manifests / "flags.yaml").write_text(feature_config(False), encoding="utf-8")
    (manifests / "pod.yaml").write_text(PRIVILEGED_POD, encoding="utf-8")

    exit_code = cli.main([str(manifests), "--no-embedded", "--policy-dir", str(policies), "--trace", "--out", str(tmp_path / "r.json")])

    data = json.loads((tmp_path / "r.json").read_text(encoding="utf-8"))
    assert exit_code == 2
    assert [r["rule"]["id"] for r in data["results"]] == ["TEST001"]
    assert data["results"][0]["traces"]


def test_cli_reads_manifest_from_stdin(monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.TextIOWrapper(io.BytesIO(PRIVILEGED_POD.encode())))

    exit_code = cli.main(["-"])

    captured = capsys.readouterr()
    assert exit_code == 2
    assert "stdin.yaml" in captured.out


def test_cli_reports_parse_errors(tmp_path, capsys):
    (tmp_path / "broken.yaml").write_text("apiVersion: v1\nkind: Pod\nmetadata: [\n", encoding="utf-8")

    exit_code = cli.main([str(tmp_path)])

    captured = capsys.readouterr()
    assert exit_code == cli.EXIT_USAGE_ERROR
    assert "broken.yaml" in captured.err
