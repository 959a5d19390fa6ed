import logging
from dataclasses import dataclass
from typing import Any

from argocd_selective_sync import default
from argocd_selective_sync.type import EnvironmentTier, CheckType
from argocd_selective_sync.util import path_parts
from argocd_selective_sync.exception import InvalidDefinitionError


log = logging.getLogger(__name__)

ARGOCD_API_GROUP = 'argoproj.io'
APPLICATION_KIND = 'Application'


@dataclass(frozen=True)
class SyncPolicy:
  auto_sync: bool = False
  self_heal: bool = False
  prune_resources: bool = False


@dataclass(frozen=True)
class HookPolicy:
  wait_seconds: int
  retry_attempts: int
  checks: tuple[CheckType, ...]


@dataclass(frozen=True)
class ApplicationDefinition:
  '''Raw registry entry as declared in an ArgoCD Application manifest, before validation.'''
  name: str
  source_path: str
  destination_namespace: str
  environment: str
  service: str
  sync_policy: SyncPolicy
  checks: tuple[CheckType, ...] | None
  origin: str


@dataclass(frozen=True)
class Application:
  name: str
  source_path: str
  destination_namespace: str
  environment_tier: EnvironmentTier
  sync_policy: SyncPolicy
  hook_policy: HookPolicy
  origin: str = ''

  @property
  def service(self) -> str:
    return path_parts(self.source_path)[-1]


def build_app_name(tier: str, service: str) -> str:
  return f'{tier}-{service}'


def normalize_source_path(path: str) -> str:
  parts = path_parts(path)
  if not parts or '..' in parts:
    raise ValueError(f'Invalid source path \'{path}\'')

  return '/'.join(parts) + '/'


def is_application_manifest(obj: Any) -> bool:
  if not isinstance(obj, dict):
    return False

  api_version = obj.get('apiVersion')

  return (obj.get('kind') == APPLICATION_KIND and
          isinstance(api_version, str) and
          api_version.split('/', 1)[0] == ARGOCD_API_GROUP)


def _mapping(obj: dict, key: str, origin: str, what: str | None = None) -> dict:
  value = obj.get(key)
  if value is None:
    return {}
  if not isinstance(value, dict):
    raise InvalidDefinitionError(origin, f'{what or key} must be a mapping, got {type(value).__name__}')

  return value


def _parse_sync_policy(spec: dict, origin: str) -> SyncPolicy:
  sync_policy = _mapping(spec, 'syncPolicy', origin, 'spec.syncPolicy')
  automated = sync_policy.get('automated')

  # `automated: {}` enables auto sync with selfHeal and prune off
  if automated is None or automated is False:
    return SyncPolicy()
  if automated is True:
    automated = {}
  if not isinstance(automated, dict):
    raise InvalidDefinitionError(origin, f'spec.syncPolicy.automated must be a mapping, got {type(automated).__name__}')

  return SyncPolicy(auto_sync=True,
                    self_heal=bool(automated.get('selfHeal', False)),
                    prune_resources=bool(automated.get('prune', False)))


def _parse_checks(annotations: dict, origin: str) -> tuple[CheckType, ...] | None:
  raw = annotations.get(default.CHECKS_ANNOTATION)
  if raw is None:
    return None

  checks = []
  for item in str(raw).split(','):
    item = item.strip()
    if not item:
      continue
    try:
      checks.append(CheckType(item))
    except ValueError:
      log.error(f'Unknown check \'{item}\' in {origin}. Valid checks: {[c.value for c in CheckType]}')
      raise InvalidDefinitionError(origin, f'unknown check {item}')

  if not checks:
    raise InvalidDefinitionError(origin, f'empty {default.CHECKS_ANNOTATION} annotation')

  return tuple(checks)


def parse_application(obj: dict, origin: str) -> ApplicationDefinition:
  metadata = _mapping(obj, 'metadata', origin)
  spec = _mapping(obj, 'spec', origin)
  source = _mapping(spec, 'source', origin, 'spec.source')
  destination = _mapping(spec, 'destination', origin, 'spec.destination')
  labels = _mapping(metadata, 'labels', origin, 'metadata.labels')
  annotations = _mapping(metadata, 'annotations', origin, 'metadata.annotations')

  name = metadata.get('name')
  if not name:
    raise InvalidDefinitionError(origin, 'missing metadata.name')

  if not source.get('path'):
    raise InvalidDefinitionError(origin, f'application {name} has no spec.source.path')

  namespace = destination.get('namespace')
  if not namespace:
    raise InvalidDefinitionError(origin, f'application {name} has no spec.destination.namespace')

  try:
    source_path = normalize_source_path(str(source['path']))
  except ValueError:
    raise InvalidDefinitionError(origin, f'application {name} has invalid source path {source["path"]}') from None

  parts = path_parts(source_path)
  service = parts[-1]
  env_segment = parts[-2] if len(parts) > 1 else None
  environment = labels.get(default.TIER_LABEL) or labels.get(default.ENVIRONMENT_LABEL) or env_segment
  if not environment:
    raise InvalidDefinitionError(origin, f'cannot derive environment of application {name} from {source_path}')

  expected_name = build_app_name(env_segment or environment, service)
  if name != expected_name:
    log.warning(f'Application {name} in {origin} does not follow the <environment>-<service> naming convention '
                f'(expected {expected_name})')

  return ApplicationDefinition(name=str(name),
                               source_path=source_path,
                               destination_namespace=str(namespace),
                               environment=str(environment),
                               service=service,
                               sync_policy=_parse_sync_policy(spec, origin),
                               checks=_parse_checks(annotations, origin),
                               origin=origin)
