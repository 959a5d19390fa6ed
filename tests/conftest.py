import textwrap
import pytest


APPLICATION = '''\
  apiVersion: argoproj.io/v1alpha1
  kind: Application
  metadata:
    name: {name}
    namespace: argocd
  spec:
    project: default
    source:
      repoURL: https://github.com/example/config.git
      targetRevision: HEAD
      path: {path}
    destination:
      server: https://kubernetes.default.svc
      namespace: {namespace}
    syncPolicy:
      syncOptions:
      - CreateNamespace=true
  {automated}'''

AUTOMATED = '''\
      automated:
        selfHeal: {self_heal}
        prune: true
  '''

DEPLOYMENT = '''\
  apiVersion: apps/v1
  kind: Deployment
  metadata:
    name: {name}
  spec:
    replicas: 1
  '''

SERVICE = '''\
  apiVersion: v1
  kind: Service
  metadata:
    name: {name}
  spec:
    ports:
    - port: {port}
      targetPort: {port}
  '''


@pytest.fixture
def make_app(tmp_path):
  '''Write an Application definition under apps/<env>/ and, optionally, its manifests.'''
  def _make_app(env: str,
                service: str,
                path: str | None = None,
                name: str | None = None,
                namespace: str | None = None,
                auto_sync: bool | None = None,
                manifests: tuple = ('deployment', 'service'),
                definition_file: str | None = None,
                port: int = 8080) -> str:
    name = name or f'{env}-{service}'
    path = path or f'{env}/{service}'
    namespace = namespace or name
    if auto_sync is None:
      auto_sync = env != 'production'

    automated = textwrap.dedent(AUTOMATED.format(self_heal='true')) if auto_sync else ''
    definition = textwrap.dedent(APPLICATION).format(name=name, path=path, namespace=namespace,
                                                     automated=textwrap.indent(automated, '    '))

    definition_path = tmp_path / (definition_file or f'apps/{env}/{service}.yaml')
    definition_path.parent.mkdir(parents=True, exist_ok=True)
    definition_path.write_text(definition)

    manifest_dir = tmp_path / path
    manifest_dir.mkdir(parents=True, exist_ok=True)
    if 'deployment' in manifests:
      (manifest_dir / 'deployment.yaml').write_text(textwrap.dedent(DEPLOYMENT.format(name=service)))
    if 'service' in manifests:
      (manifest_dir / 'service.yaml').write_text(textwrap.dedent(SERVICE.format(name=f'{service}-svc', port=port)))

    return name

  return _make_app
