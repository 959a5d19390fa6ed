import pytest

from argocd_selective_sync.application import Application, SyncPolicy
from argocd_selective_sync.policy import select_policy
from argocd_selective_sync.registry import load
from argocd_selective_sync.resolver import resolve, resolve_changes, find_owners, normalize_changed_path, ChangeSet
from argocd_selective_sync.type import EnvironmentTier
from argocd_selective_sync.exception import AmbiguousOwnershipError


def _app(name: str, source_path: str, tier: EnvironmentTier = EnvironmentTier.DEV) -> Application:
  policy = select_policy(tier)

  return Application(name=name,
                     source_path=source_path,
                     destination_namespace=name,
                     environment_tier=tier,
                     sync_policy=SyncPolicy(policy.auto_sync, policy.self_heal, policy.auto_sync),
                     hook_policy=policy.hook_policy())


@pytest.fixture
def registry(tmp_path, make_app):
  for env in ['dev', 'staging', 'production']:
    make_app(env, 'demo-app')
    make_app(env, 'api-service')

  applications, errors = load(tmp_path)
  assert errors == []

  return applications


##################
### normalize_changed_path
##################

@pytest.mark.parametrize('changed_path, expected', [
  ('dev/demo-app/deployment.yaml', 'dev/demo-app/deployment.yaml'),
  ('./dev/demo-app/deployment.yaml', 'dev/demo-app/deployment.yaml'),
  ('/dev//demo-app/', 'dev/demo-app'),
  ('dev\\demo-app\\service.yaml', 'dev/demo-app/service.yaml'),
  ('dev/demo-app/../api-service/deployment.yaml', 'dev/api-service/deployment.yaml'),
  ('dev/demo-app/./config/../service.yaml', 'dev/demo-app/service.yaml'),
  ('../outside/deployment.yaml', '../outside/deployment.yaml'),
  ('dev/../../dev/demo-app', '../dev/demo-app'),
  ('', ''),
])
def test_normalize_changed_path(changed_path, expected):
  assert normalize_changed_path(changed_path) == expected

##################
### resolve
##################

def test_resolve__dev_application(registry):
  app = resolve('dev/demo-app/deployment.yaml', registry)

  assert app.name == 'dev-demo-app'
  assert app.environment_tier == EnvironmentTier.DEV
  assert app.sync_policy.auto_sync is True
  assert app.hook_policy.wait_seconds == 10
  assert app.hook_policy.retry_attempts == 3

def test_resolve__production_application(registry):
  app = resolve('production/api-service/service.yaml', registry)
  policy = select_policy(app.environment_tier)

  assert app.name == 'production-api-service'
  assert app.destination_namespace == 'production-api-service'
  assert policy.auto_sync is False
  assert app.hook_policy.wait_seconds == 30
  assert app.hook_policy.retry_attempts == 5
  assert policy.hook_name(app.name) == 'production-api-service-validation'

def test_resolve__nested_file(registry):
  assert resolve('staging/api-service/config/nginx.conf', registry).name == 'staging-api-service'

def test_resolve__source_directory_itself(registry):
  assert resolve('staging/api-service', registry).name == 'staging-api-service'

@pytest.mark.parametrize('changed_path', [
  'README.md',
  'dev/other-service/deployment.yaml',
  'dev/demo',
  'dev',
  'apps/dev/demo-app.yaml',
])
def test_resolve__no_owner(registry, changed_path):
  assert resolve(changed_path, registry) is None

def test_resolve__segment_aware():
  registry = [_app('dev-demo-app', 'dev/demo-app/'), _app('dev-demo-app-extra', 'dev/demo-app-extra/')]

  assert resolve('dev/demo-app-extra/deployment.yaml', registry).name == 'dev-demo-app-extra'
  assert resolve('dev/demo-app/deployment.yaml', registry).name == 'dev-demo-app'
  assert resolve('dev/demo-apps/deployment.yaml', registry) is None

def test_resolve__parent_segments_are_collapsed(registry):
  assert resolve('dev/demo-app/../api-service/deployment.yaml', registry).name == 'dev-api-service'
  assert resolve('dev/demo-app/config/../deployment.yaml', registry).name == 'dev-demo-app'
  assert resolve('dev/demo-app/..', registry) is None

@pytest.mark.parametrize('changed_path', [
  '../dev/demo-app/deployment.yaml',
  'dev/../../dev/demo-app/deployment.yaml',
  '..',
])
def test_resolve__path_outside_repository(registry, changed_path):
  assert resolve(changed_path, registry) is None
  assert find_owners(changed_path, registry) == []

def test_resolve__empty_registry():
  assert resolve('dev/demo-app/deployment.yaml', []) is None

def test_resolve__ambiguous_ownership(caplog):
  registry = [_app('dev-demo-app', 'dev/demo-app/'), _app('dev-nested', 'dev/demo-app/nested/')]

  with pytest.raises(AmbiguousOwnershipError) as e:
    resolve('dev/demo-app/nested/deployment.yaml', registry)

  assert e.value.app_names == ['dev-demo-app', 'dev-nested']
  assert e.value.path == 'dev/demo-app/nested/deployment.yaml'
  assert 'is claimed by several applications: dev-demo-app, dev-nested' in caplog.text

def test_resolve__every_file_has_at_most_one_owner(registry):
  for app in registry:
    assert resolve(f'{app.source_path}deployment.yaml', registry) == app
    assert len(find_owners(f'{app.source_path}deployment.yaml', registry)) == 1

##################
### resolve_changes
##################

def test_resolve_changes(registry):
  change_set = resolve_changes(['dev/demo-app/deployment.yaml',
                                'dev/demo-app/service.yaml',
                                './dev/demo-app/service.yaml',
                                'production/api-service/service.yaml',
                                'README.md',
                                'README.md',
                                ''], registry)

  assert change_set.affected == {
    'dev-demo-app': ['dev/demo-app/deployment.yaml', 'dev/demo-app/service.yaml'],
    'production-api-service': ['production/api-service/service.yaml'],
  }
  assert change_set.applications['production-api-service'].environment_tier == EnvironmentTier.PRODUCTION
  assert change_set.unowned == ['README.md']
  assert change_set.conflicts == []

def test_resolve_changes__no_paths(registry):
  assert resolve_changes([], registry) == ChangeSet()

def test_resolve_changes__parent_segments(registry):
  change_set = resolve_changes(['dev/demo-app/../api-service/deployment.yaml',
                                'dev/api-service/deployment.yaml',
                                '../outside/deployment.yaml'], registry)

  assert change_set.affected == {'dev-api-service': ['dev/api-service/deployment.yaml']}
  assert change_set.unowned == ['../outside/deployment.yaml']

def test_resolve_changes__conflicts_are_collected():
  registry = [_app('dev-demo-app', 'dev/demo-app/'), _app('dev-nested', 'dev/demo-app/nested/')]

  change_set = resolve_changes(['dev/demo-app/nested/a.yaml', 'dev/demo-app/b.yaml'], registry)

  assert change_set.affected == {'dev-demo-app': ['dev/demo-app/b.yaml']}
  assert change_set.conflicts == ['Path dev/demo-app/nested/a.yaml is claimed by several applications: dev-demo-app, dev-nested']

def test_resolve__does_not_check_manifests(tmp_path):
  (tmp_path / 'dev' / 'demo-app').mkdir(parents=True)
  registry = [_app('dev-demo-app', 'dev/demo-app/')]

  assert resolve('dev/demo-app/kustomization.yaml', registry).name == 'dev-demo-app'
