import io
import textwrap

import pytest

from kube_guardrails import MemoryFileSystem

SECURE_DEPLOYMENT = textwrap.dedent(
    """
    apiVersion: apps/v1
    kind: Deployment
    metadata:
      name: web
      namespace: shop
    spec:
      replicas: 2
      template:
        spec:
          containers:
            - name: app
              image: registry.example.com/shop/web:1.4.2
              resources:
                limits:
                  cpu: 500m
                  memory: 256Mi
              securityContext:
                privileged: false
                allowPrivilegeEscalation: false
                runAsNonRoot: true
                readOnlyRootFilesystem: true
    """
).lstrip()

PRIVILEGED_POD = textwrap.dedent(
    """
    apiVersion: v1
    kind: Pod
    metadata:
      name: debug
    spec:
      hostNetwork: true
      containers:
        - name: shell
          image: busybox:1.36
          resources:
            limits:
              cpu: 100m
              memory: 64Mi
          securityContext:
            privileged: true
            allowPrivilegeEscalation: false
            runAsNonRoot: true
            readOnlyRootFilesystem: true
    """
).lstrip()

FLAG_POLICY = textwrap.dedent(
    """
    policies:
      - id: TEST001
        title: Feature flag must be enabled
        severity: HIGH
        message: "{kind} '{name}' disables the feature flag"
        match:
          kinds: [FeatureConfig]
        deny:
          all:
            - path: spec.enabled
              op: equals
              value: false
    """
).lstrip()


def feature_config(enabled: bool, name: str = "flags") -> str:
    return textwrap.dedent(
        f"""
        apiVersion: example.com/v1
        kind: FeatureConfig
        metadata:
          name: {name}
        spec:
          enabled: {str(enabled).lower()}
        """
    ).lstrip()


def memory_fs(files):
    """Build an in-memory filesystem from a ``{path: text}`` mapping."""

    memfs = MemoryFileSystem()
    for path, text in files.items():
        parent = path.rsplit("/", 1)[0] if "/" in path else "."
        memfs.mkdir_all(parent)
        memfs.write_file(path, text.encode("utf-8"))
    return memfs


def policy_stream(text: str) -> io.BytesIO:
    return io.BytesIO(text.encode("utf-8"))


@pytest.fixture
def flag_policy():
    return policy_stream(FLAG_POLICY)
