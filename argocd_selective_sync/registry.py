import logging
import os
import yaml
from collections import defaultdict
from dataclasses import dataclass, field

from argocd_selective_sync import default
from argocd_selective_sync.type import EnvironmentTier, ValidationErrorType
from argocd_selective_sync.application import (Application, ApplicationDefinition, is_application_manifest,
                                               parse_application)
from argocd_selective_sync.policy import select_policy, policy_drift
from argocd_selective_sync.util import paths_overlap
from argocd_selective_sync.exception import InvalidDefinitionError, UnknownTierError
from argocd_selective_sync.resource.viewer import build_scoped_viewer, ResourceType


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationError:
  error_type: ValidationErrorType
  app_name: str | None
  message: str
  origin: str = ''

  def __str__(self) -> str:
    location = f' ({self.origin})' if self.origin else ''
    return f'[{self.error_type}] {self.message}{location}'


@dataclass
class Registry:
  applications: list[Application] = field(default_factory=list)
  errors: list[ValidationError] = field(default_factory=list)

  @property
  def is_valid(self) -> bool:
    return not self.errors

  def get(self, name: str) -> Application | None:
    for app in self.applications:
      if app.name == name:
        return app

    return None

  def by_tier(self, tier: EnvironmentTier) -> list[Application]:
    return [app for app in self.applications if app.environment_tier == tier]


def _read_definitions(registry_root: str,
                      app_dirs: list[str]) -> tuple[list[ApplicationDefinition], list[ValidationError]]:
  definitions = []
  errors = []

  for app_dir in app_dirs:
    viewer = build_scoped_viewer(os.path.join(registry_root, app_dir))
    if viewer.resource_type != ResourceType.DIRECTORY:
      log.debug(f'Application directory {app_dir} does not exist in {registry_root}')
      continue

    for child in viewer.search_subresources(resource_types=[ResourceType.YAML]):
      origin = os.path.join(app_dir, child.rel_path)
      try:
        documents = list(yaml.safe_load_all(child.content))
      except yaml.YAMLError as e:
        log.error(f'Invalid YAML in {origin}')
        errors.append(ValidationError(ValidationErrorType.INVALID_DEFINITION, None, f'invalid YAML: {e}', origin))
        continue

      for document in documents:
        if not is_application_manifest(document):
          continue
        try:
          definitions.append(parse_application(document, origin))
        except InvalidDefinitionError as e:
          log.error(str(e))
          metadata = document.get('metadata')
          name = metadata.get('name') if isinstance(metadata, dict) else None
          errors.append(ValidationError(ValidationErrorType.INVALID_DEFINITION, name, e.reason, origin))

  return definitions, errors


def _check_overlaps(definitions: list[ApplicationDefinition]) -> tuple[set[int], list[ValidationError]]:
  excluded = set()
  errors = []

  for i, first in enumerate(definitions):
    for j in range(i + 1, len(definitions)):
      second = definitions[j]
      if not paths_overlap(first.source_path, second.source_path):
        continue

      excluded.update((i, j))
      if first.source_path == second.source_path:
        message = (f'Applications {first.name} and {second.name} both claim source path {first.source_path}')
      else:
        message = (f'Source path {first.source_path} of application {first.name} overlaps '
                   f'{second.source_path} of application {second.name}')
      errors.append(ValidationError(ValidationErrorType.AMBIGUOUS_OWNERSHIP, first.name, message,
                                    f'{first.origin}, {second.origin}'))

  return excluded, errors


def _check_unique(definitions: list[ApplicationDefinition],
                  attribute: str,
                  error_type: ValidationErrorType,
                  what: str) -> tuple[set[int], list[ValidationError]]:
  holders = defaultdict(list)
  for i, definition in enumerate(definitions):
    holders[getattr(definition, attribute)].append(i)

  excluded = set()
  errors = []
  for value, indexes in holders.items():
    if len(indexes) < 2:
      continue

    excluded.update(indexes)
    origins = ', '.join(definitions[i].origin for i in indexes)
    errors.append(ValidationError(error_type, definitions[indexes[0]].name,
                                  f'{what} {value} is declared {len(indexes)} times', origins))

  return excluded, errors


def _missing_manifests(registry_root: str, source_path: str, required_manifests: list[str]) -> list[str]:
  viewer = build_scoped_viewer(os.path.join(registry_root, source_path))
  if viewer.resource_type != ResourceType.DIRECTORY:
    return [f'{manifest}.yaml' for manifest in required_manifests]

  return [f'{manifest}.yaml' for manifest in required_manifests
          if not (viewer.exists(f'{manifest}.yaml') or viewer.exists(f'{manifest}.yml'))]


def load(registry_root: str,
         app_dirs: list[str] | None = None,
         required_manifests: list[str] | None = None) -> tuple[list[Application], list[ValidationError]]:
  '''
  Read every ArgoCD Application below `app_dirs` of `registry_root` and validate the set.

  Each broken rule yields one ValidationError and drops the offending entries
  from the returned applications; the load itself never aborts.
  '''
  if app_dirs is None:
    app_dirs = default.APP_DIRS
  if required_manifests is None:
    required_manifests = default.REQUIRED_MANIFESTS

  registry_root = str(registry_root)
  definitions, errors = _read_definitions(registry_root, app_dirs)
  log.debug(f'Found {len(definitions)} application definitions in {registry_root}')

  excluded = set()
  for check_excluded, check_errors in (_check_overlaps(definitions),
                                       _check_unique(definitions, 'name', ValidationErrorType.DUPLICATE_NAME,
                                                     'Application name'),
                                       _check_unique(definitions, 'destination_namespace',
                                                     ValidationErrorType.DUPLICATE_NAMESPACE, 'Destination namespace')):
    excluded.update(check_excluded)
    errors.extend(check_errors)

  applications = []
  for i, definition in enumerate(definitions):
    missing = _missing_manifests(registry_root, definition.source_path, required_manifests)
    if missing:
      excluded.add(i)
      errors.append(ValidationError(ValidationErrorType.MISSING_MANIFEST, definition.name,
                                    f'Missing {", ".join(missing)} in {definition.source_path}', definition.origin))

    try:
      policy = select_policy(definition.environment)
    except UnknownTierError:
      excluded.add(i)
      errors.append(ValidationError(ValidationErrorType.UNKNOWN_TIER, definition.name,
                                    f'Unknown environment tier {definition.environment}', definition.origin))
      continue

    if i in excluded:
      continue

    application = Application(name=definition.name,
                              source_path=definition.source_path,
                              destination_namespace=definition.destination_namespace,
                              environment_tier=policy.tier,
                              sync_policy=definition.sync_policy,
                              hook_policy=policy.hook_policy(definition.checks),
                              origin=definition.origin)
    for drift in policy_drift(application):
      log.warning(f'Application {application.name}: {drift}')

    applications.append(application)

  for error in errors:
    log.debug(f'Validation error: {error}')

  return sorted(applications, key=lambda app: app.name), errors


def load_registry(registry_root: str,
                  app_dirs: list[str] | None = None,
                  required_manifests: list[str] | None = None) -> Registry:
  applications, errors = load(registry_root, app_dirs, required_manifests)

  return Registry(applications=applications, errors=errors)
