import textwrap

import pytest
import yaml

from kube_guardrails import PolicyLoadError
from kube_guardrails.engine import paths
from kube_guardrails.engine.policy import Condition, ConditionError, load_policy_document
from kube_guardrails.severity import Severity

DEPLOYMENT = {
    "apiVersion": "apps/v1",
    "kind": "Deployment",
    "metadata": {"name": "web"},
    "spec": {
        "template": {
            "spec": {
                "containers": [
                    {"name": "app", "image": "nginx", "securityContext": {"privileged": True}},
                    {"name": "sidecar", "image": "envoy:1.29", "resources": {"limits": {"cpu": 2}}},
                ]
            }
        }
    },
}


def load_one(text):
    policies = load_policy_document(yaml.safe_load(textwrap.dedent(text)), "test.yaml")
    assert len(policies) == 1
    return policies[0]


def test_parse_path_tokens():
    assert paths.parse_path("spec.containers[*].ports[0]") == ("spec", "containers", "*", "ports", 0)
    assert paths.parse_path("$pod.volumes") == ("$pod", "volumes")


@pytest.mark.parametrize("expression", ["", "a..b", "a.", "a[x]", "spec.$pod", "a]b"])
def test_parse_path_rejects_malformed_expressions(expression):
    with pytest.raises(ValueError):
        paths.parse_path(expression)


def test_pod_alias_resolves_for_cronjobs():
    cronjob = {
        "kind": "CronJob",
        "spec": {"jobTemplate": {"spec": {"template": {"spec": {"hostPID": True}}}}},
    }

    assert paths.resolve(cronjob, paths.parse_path("$pod.hostPID")) == [True]
    assert paths.resolve({"kind": "Service"}, paths.parse_path("$pod.hostPID")) == []


def test_for_each_policy_reports_each_denied_item():
    policy = load_one(
        """
        id: P1
        title: Unpinned image
        severity: low
        message: "{item} in {kind}/{name}"
        for_each: $pod.containers[*]
        deny:
          - path: image
            op: matches
            value: "^[^:@]+$"
        """
    )

    evaluation = policy.evaluate(DEPLOYMENT)

    assert evaluation.denials == ["app in Deployment/web"]
    assert policy.metadata.severity is Severity.LOW
    assert policy.metadata.long_id == "unpinned-image"
    assert policy.metadata.frameworks == ("default",)


def test_any_block_denies_when_one_condition_holds():
    policy = load_one(
        """
        id: P2
        title: Limits
        for_each: $pod.containers[*]
        deny:
          any:
            - path: resources.limits.cpu
              op: missing
            - path: resources.limits.cpu
              op: gt
              value: 1
        """
    )

    assert len(policy.evaluate(DEPLOYMENT).denials) == 2


def test_all_block_needs_every_condition():
    policy = load_one(
        """
        id: P3
        title: Privileged nginx
        for_each: $pod.containers[*]
        deny:
          all:
            - path: securityContext.privileged
              op: equals
              value: true
            - path: image
              op: in
              value: [envoy:1.29]
        """
    )

    assert policy.evaluate(DEPLOYMENT).denials == []


def test_boolean_equality_does_not_match_integers():
    policy = load_one(
        """
        id: P4
        title: Replicas
        deny:
          - path: spec.replicas
            op: equals
            value: true
        """
    )

    assert policy.evaluate({"kind": "Deployment", "spec": {"replicas": 1}}).denials == []


def test_numeric_comparison_on_text_raises_condition_error():
    policy = load_one(
        """
        id: P5
        title: Replicas
        deny:
          - path: spec.replicas
            op: lt
            value: 2
        """
    )

    with pytest.raises(ConditionError):
        policy.evaluate({"kind": "Deployment", "spec": {"replicas": "two"}})


def test_policies_list_and_kind_matching():
    text = textwrap.dedent(
        """
        policies:
          - id: A
            title: a
            match: {kinds: [Pod]}
            deny: [{path: spec, op: exists}]
          - id: B
            title: b
            deny: [{path: spec, op: exists}]
        """
    )
    policies = load_policy_document(yaml.safe_load(text), "pack.yaml")

    assert [policy.applies_to({"kind": "Deployment"}) for policy in policies] == [False, True]


@pytest.mark.parametrize(
    "text, fragment",
    [
        ("title: no id\ndeny: [{path: a, op: exists}]", "id"),
        ("id: X\ntitle: t\n", "deny"),
        ("id: X\ntitle: t\ndeny: [{path: a, op: near}]", "unknown operator"),
        ("id: X\ntitle: t\nseverity: urgent\ndeny: [{path: a, op: exists}]", "unknown severity"),
        ("id: X\ntitle: t\ndeny: [{path: a, op: matches, value: '('}]", "invalid policy"),
        ("id: X\ntitle: t\ndeny: [{path: a, op: gt, value: many}]", "numeric"),
        ("id: X\ntitle: t\nmessage: '{unknown}'\ndeny: [{path: a, op: exists}]", "unknown"),
        ("id: X\ntitle: t\ndeny: [{path: 'a..b', op: exists}]", "empty segment"),
        ("- just\n- strings\n", "policy must be a mapping"),
    ],
)
def test_invalid_policies_raise_policy_load_error(text, fragment):
    with pytest.raises(PolicyLoadError, match=fragment) as excinfo:
        load_policy_document(yaml.safe_load(text), "bad.yaml")

    assert excinfo.value.source == "bad.yaml"


def test_empty_policy_file_loads_nothing():
    assert load_policy_document(None, "empty.yaml") == []


def test_matches_condition_without_pattern_raises_condition_error():
    condition = Condition(path="image", op="matches", value="^nginx", tokens=paths.parse_path("image"))

    with pytest.raises(ConditionError, match="regular expression"):
        condition.evaluate({"image": "nginx"})
