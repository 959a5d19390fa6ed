import pytest
import yaml

from argocd_selective_sync.scaffold import validate_environment_name, is_production_like, add_environment
from argocd_selective_sync.registry import load
from argocd_selective_sync.type import EnvironmentTier
from argocd_selective_sync.exception import InvalidEnvironmentError, UnknownTierError


def _read(path) -> dict:
  with open(path) as f:
    return yaml.safe_load(f)


##################
### validate_environment_name
##################

@pytest.mark.parametrize('env_name', ['qa', 'uat-2', 'a' * 20])
def test_validate_environment_name__valid(tmp_path, env_name):
  validate_environment_name(str(tmp_path), 'environments', env_name)

@pytest.mark.parametrize('env_name, reason', [
  ('QA', 'only lowercase letters, numbers, and hyphens are allowed'),
  ('qa_1', 'only lowercase letters, numbers, and hyphens are allowed'),
  ('', 'only lowercase letters, numbers, and hyphens are allowed'),
  ('a' * 21, 'longer than 20 characters'),
])
def test_validate_environment_name__invalid(tmp_path, env_name, reason):
  with pytest.raises(InvalidEnvironmentError) as e:
    validate_environment_name(str(tmp_path), 'environments', env_name)

  assert e.value.reason == reason

def test_validate_environment_name__exists(tmp_path, caplog):
  (tmp_path / 'environments' / 'qa').mkdir(parents=True)

  with pytest.raises(InvalidEnvironmentError):
    validate_environment_name(str(tmp_path), 'environments', 'qa')
  assert 'Environment \'qa\' already exists' in caplog.text

def test_is_production_like():
  assert is_production_like('production')
  assert is_production_like('prod-eu')
  assert not is_production_like('preprod')

##################
### add_environment
##################

def test_add_environment__files(tmp_path):
  written = add_environment(tmp_path, 'qa', tier='staging')

  assert written == [
    'environments/qa/demo-app/deployment.yaml',
    'environments/qa/demo-app/service.yaml',
    'apps/qa/demo-app.yaml',
    'environments/qa/api-service/deployment.yaml',
    'environments/qa/api-service/service.yaml',
    'apps/qa/api-service.yaml',
  ]
  for path in written:
    assert (tmp_path / path).is_file()

def test_add_environment__application(tmp_path):
  add_environment(tmp_path, 'qa', tier='staging')

  app = _read(tmp_path / 'apps' / 'qa' / 'demo-app.yaml')

  assert app['kind'] == 'Application'
  assert app['metadata']['name'] == 'qa-demo-app'
  assert app['metadata']['namespace'] == 'argocd'
  assert app['metadata']['labels'] == {'environment': 'qa', 'argocd-selective-sync/tier': 'staging'}
  assert app['spec']['source']['path'] == 'environments/qa/demo-app'
  assert app['spec']['destination']['namespace'] == 'qa-demo-app'
  assert app['spec']['syncPolicy'] == {
    'syncOptions': ['CreateNamespace=true'],
    'automated': {'selfHeal': True, 'prune': True},
  }

def test_add_environment__manifests(tmp_path):
  add_environment(tmp_path, 'qa', tier='dev', replicas=3, service_type='NodePort')

  demo_deployment = _read(tmp_path / 'environments' / 'qa' / 'demo-app' / 'deployment.yaml')
  api_deployment = _read(tmp_path / 'environments' / 'qa' / 'api-service' / 'deployment.yaml')
  service = _read(tmp_path / 'environments' / 'qa' / 'demo-app' / 'service.yaml')
  api_service = _read(tmp_path / 'environments' / 'qa' / 'api-service' / 'service.yaml')

  assert demo_deployment['metadata']['name'] == 'argocd-demo-app'
  assert demo_deployment['spec']['replicas'] == 3
  container = demo_deployment['spec']['template']['spec']['containers'][0]
  assert container['image'] == 'nanajanashia/argocd-app:1.2'
  assert container['env'] == [{'name': 'ENVIRONMENT', 'value': 'qa'}]
  assert 'resources' not in container
  assert api_deployment['spec']['replicas'] == 2
  assert service['metadata']['name'] == 'argocd-demo-app-service'
  assert service['spec']['type'] == 'NodePort'
  assert service['spec']['ports'] == [{'port': 8080, 'protocol': 'TCP', 'targetPort': 8080}]
  assert api_service['spec']['type'] == 'ClusterIP'

def test_add_environment__production_like(tmp_path):
  add_environment(tmp_path, 'prod-eu', tier='production', replicas=1)

  app = _read(tmp_path / 'apps' / 'prod-eu' / 'api-service.yaml')
  deployment = _read(tmp_path / 'environments' / 'prod-eu' / 'api-service' / 'deployment.yaml')

  assert app['spec']['syncPolicy'] == {'syncOptions': ['CreateNamespace=true']}
  assert deployment['spec']['replicas'] == 1
  assert deployment['spec']['template']['spec']['containers'][0]['resources'] == {
    'requests': {'memory': '64Mi', 'cpu': '50m'},
    'limits': {'memory': '128Mi', 'cpu': '100m'},
  }

def test_add_environment__tier_from_name(tmp_path):
  add_environment(tmp_path, 'dev')

  app = _read(tmp_path / 'apps' / 'dev' / 'demo-app.yaml')
  assert app['metadata']['labels']['argocd-selective-sync/tier'] == 'dev'

def test_add_environment__tier_required(tmp_path):
  with pytest.raises(UnknownTierError):
    add_environment(tmp_path, 'qa')

  assert not (tmp_path / 'apps').exists()

def test_add_environment__unknown_tier(tmp_path):
  with pytest.raises(UnknownTierError):
    add_environment(tmp_path, 'qa', tier='testing')

def test_add_environment__overrides(tmp_path):
  add_environment(tmp_path, 'qa', tier='dev', auto_heal=False)
  add_environment(tmp_path, 'uat', tier='dev', auto_sync=False)

  assert _read(tmp_path / 'apps' / 'qa' / 'demo-app.yaml')['spec']['syncPolicy']['automated'] == {
    'selfHeal': False, 'prune': True}
  assert 'automated' not in _read(tmp_path / 'apps' / 'uat' / 'demo-app.yaml')['spec']['syncPolicy']

@pytest.mark.parametrize('kwargs', [{'replicas': 0}, {'service_type': 'ExternalName'}])
def test_add_environment__invalid_options(tmp_path, kwargs):
  with pytest.raises(InvalidEnvironmentError):
    add_environment(tmp_path, 'qa', tier='dev', **kwargs)

  assert not (tmp_path / 'environments').exists()

def test_add_environment__service_type_per_service(tmp_path):
  services = {'web': {'image': 'nginx:1.25', 'service_type': 'LoadBalancer'}, 'worker': {'image': 'busybox:1.36'}}

  add_environment(tmp_path, 'qa', tier='dev', service_type='NodePort', services=services)

  assert _read(tmp_path / 'environments' / 'qa' / 'web' / 'service.yaml')['spec']['type'] == 'LoadBalancer'
  assert _read(tmp_path / 'environments' / 'qa' / 'worker' / 'service.yaml')['spec']['type'] == 'NodePort'

def test_add_environment__invalid_service_type_per_service(tmp_path, caplog):
  with pytest.raises(InvalidEnvironmentError):
    add_environment(tmp_path, 'qa', tier='dev', services={'web': {'image': 'nginx:1.25', 'service_type': 'ExternalName'}})

  assert 'Service type of web must be one of: ClusterIP, NodePort, LoadBalancer' in caplog.text

def test_add_environment__existing(tmp_path):
  add_environment(tmp_path, 'qa', tier='dev')

  with pytest.raises(InvalidEnvironmentError):
    add_environment(tmp_path, 'qa', tier='dev')

def test_add_environment__custom_layout(tmp_path):
  services = {'web': {'image': 'nginx:1.25', 'port': 8000}}
  argocd = {'repo_url': 'https://example.com/config.git'}

  written = add_environment(tmp_path, 'qa', tier='dev', manifests_dir='k8s', apps_dir='.argocd',
                            argocd=argocd, services=services)

  assert written == ['k8s/qa/web/deployment.yaml', 'k8s/qa/web/service.yaml', '.argocd/qa/web.yaml']
  app = _read(tmp_path / '.argocd' / 'qa' / 'web.yaml')
  assert app['spec']['source']['repoURL'] == 'https://example.com/config.git'
  assert app['spec']['project'] == 'default'
  deployment = _read(tmp_path / 'k8s' / 'qa' / 'web' / 'deployment.yaml')
  assert deployment['metadata']['name'] == 'web'
  assert deployment['spec']['template']['spec']['containers'][0]['env'] == [{'name': 'ENVIRONMENT', 'value': 'qa'}]

def test_add_environment__loads_as_valid_registry(tmp_path):
  add_environment(tmp_path, 'qa', tier='staging')
  add_environment(tmp_path, 'production')

  applications, errors = load(tmp_path)

  assert errors == []
  assert [app.name for app in applications] == ['production-api-service', 'production-demo-app',
                                                'qa-api-service', 'qa-demo-app']
  assert applications[0].environment_tier == EnvironmentTier.PRODUCTION
  assert applications[0].sync_policy.auto_sync is False
  assert applications[3].environment_tier == EnvironmentTier.STAGING
  assert applications[3].source_path == 'environments/qa/demo-app/'
  assert applications[3].sync_policy.self_heal is True
