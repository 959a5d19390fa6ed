import logging
import os
import re

from argocd_selective_sync import default
from argocd_selective_sync.type import EnvironmentTier
from argocd_selective_sync.application import build_app_name
from argocd_selective_sync.policy import select_policy
from argocd_selective_sync.renderer import YamlRenderer
from argocd_selective_sync.resource.writer import write_yaml
from argocd_selective_sync.exception import InvalidEnvironmentError, UnknownTierError


log = logging.getLogger(__name__)

_env_name_re = re.compile(r'^[a-z0-9-]+$')


def validate_environment_name(root_dir: str, manifests_dir: str, env_name: str) -> None:
  if not _env_name_re.match(env_name):
    log.error('Environment name must contain only lowercase letters, numbers, and hyphens')
    raise InvalidEnvironmentError(env_name, 'only lowercase letters, numbers, and hyphens are allowed')

  if len(env_name) > default.ENV_NAME_MAX_LENGTH:
    log.error(f'Environment name must be {default.ENV_NAME_MAX_LENGTH} characters or less')
    raise InvalidEnvironmentError(env_name, f'longer than {default.ENV_NAME_MAX_LENGTH} characters')

  if os.path.exists(os.path.join(root_dir, manifests_dir, env_name)):
    log.error(f'Environment \'{env_name}\' already exists')
    raise InvalidEnvironmentError(env_name, 'already exists')


def is_production_like(env_name: str) -> bool:
  return env_name.startswith('prod')


def _service_settings(name: str, settings: dict | None, service_type: str) -> dict:
  '''Per-service settings over the defaults; `service_type` applies unless the service pins its own.'''
  service = {
    'workload': name,
    'service': name,
    'port': 80,
    'env_var': 'ENVIRONMENT',
    'replica_offset': 0,
    'service_type': service_type,
  }
  service.update(settings or {})

  return service


def _sync_policy(auto_sync: bool, auto_heal: bool) -> dict:
  sync_policy = {'syncOptions': ['CreateNamespace=true']}
  if auto_sync:
    sync_policy['automated'] = {'selfHeal': auto_heal, 'prune': True}

  return sync_policy


def add_environment(root_dir: str,
                    env_name: str,
                    tier: str | None = None,
                    replicas: int = 2,
                    service_type: str = 'ClusterIP',
                    auto_heal: bool | None = None,
                    auto_sync: bool | None = None,
                    manifests_dir: str = default.MANIFESTS_DIR,
                    apps_dir: str = default.APP_DIRS[0],
                    argocd: dict | None = None,
                    services: dict | None = None) -> list[str]:
  '''
  Create per-application manifests and ArgoCD Application definitions for a new environment.

  Returns the repository-relative paths of the written files.
  '''
  root_dir = str(root_dir)
  validate_environment_name(root_dir, manifests_dir, env_name)

  if tier is None:
    if env_name not in [t.value for t in EnvironmentTier]:
      log.error(f'Environment {env_name} is not a tier name, a tier has to be given explicitly')
      raise UnknownTierError(env_name)
    tier = env_name
  policy = select_policy(tier)

  if replicas < 1:
    log.error('Replicas must be a positive number')
    raise InvalidEnvironmentError(env_name, 'replicas must be a positive number')

  if service_type not in default.SERVICE_TYPES:
    log.error(f'Service type must be one of: {", ".join(default.SERVICE_TYPES)}')
    raise InvalidEnvironmentError(env_name, f'unsupported service type {service_type}')

  auto_sync = policy.auto_sync if auto_sync is None else auto_sync
  auto_heal = policy.self_heal if auto_heal is None else auto_heal
  argocd = dict(default.ARGOCD_DEFAULTS, **(argocd or {}))
  services = default.SERVICES_DEFAULTS if services is None else services

  renderer = YamlRenderer()
  written = []

  for service_name, settings in services.items():
    service = _service_settings(service_name, settings, service_type)
    if service['service_type'] not in default.SERVICE_TYPES:
      log.error(f'Service type of {service_name} must be one of: {", ".join(default.SERVICE_TYPES)}')
      raise InvalidEnvironmentError(env_name, f'unsupported service type {service["service_type"]} for {service_name}')

    source_path = f'{manifests_dir}/{env_name}/{service_name}'
    app_name = build_app_name(env_name, service_name)
    template_vars = {
      'env_name': env_name,
      'app_name': app_name,
      'tier': str(policy.tier),
      'tier_label': default.TIER_LABEL,
      'service': service,
      'service_type': service['service_type'],
      'replicas': max(replicas - service['replica_offset'], 1),
      'production_like': is_production_like(env_name),
      'source_path': source_path,
      'namespace': app_name,
      'argocd': argocd,
      'sync_policy': _sync_policy(auto_sync, auto_heal),
    }
    renderer.set_template_vars(template_vars)

    for filename, template in ((f'{source_path}/deployment.yaml', default.DEPLOYMENT_TEMPLATE),
                               (f'{source_path}/service.yaml', default.SERVICE_TEMPLATE),
                               (f'{apps_dir}/{env_name}/{service_name}.yaml', default.ARGOCD_APPLICATION_CR_TEMPLATE)):
      renderer.set_template_origin(filename)
      write_yaml(os.path.join(root_dir, filename), renderer.render_object(template))
      written.append(filename)

    log.info(f'Created application {app_name} (tier {policy.tier}, auto sync {auto_sync}, self heal {auto_heal})')

  return written
