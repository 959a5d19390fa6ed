import logging
import os
import yaml
from dataclasses import dataclass

from argocd_selective_sync import default
from argocd_selective_sync.type import CheckType
from argocd_selective_sync.application import Application
from argocd_selective_sync.policy import select_policy
from argocd_selective_sync.renderer import YamlRenderer
from argocd_selective_sync.resource.viewer import build_scoped_viewer, ResourceType
from argocd_selective_sync.resource.writer import write_yaml


log = logging.getLogger(__name__)

DEFAULT_SERVICE_PORT = 80


@dataclass(frozen=True)
class ServiceEndpoint:
  name: str
  port: int

  def url(self, namespace: str) -> str:
    return f'http://{self.name}.{namespace}.svc.cluster.local:{self.port}/'


@dataclass(frozen=True)
class HookCheck:
  name: str
  command: str


def find_service_endpoint(app: Application, registry_root: str) -> ServiceEndpoint:
  '''Name and first port of the Service declared in the application's source directory.'''
  fallback = ServiceEndpoint(app.service, DEFAULT_SERVICE_PORT)
  viewer = build_scoped_viewer(os.path.join(str(registry_root), app.source_path))
  if viewer.resource_type != ResourceType.DIRECTORY:
    log.warning(f'Source directory of application {app.name} does not exist, using service {fallback.name}')
    return fallback

  for child in viewer.search_subresources(resource_types=[ResourceType.YAML], depth=1):
    try:
      documents = list(yaml.safe_load_all(child.content))
    except yaml.YAMLError:
      log.warning(f'Skipping invalid YAML file {child.rel_path} of application {app.name}')
      continue

    for document in documents:
      if not isinstance(document, dict) or document.get('kind') != 'Service':
        continue

      name = (document.get('metadata') or {}).get('name') or fallback.name
      ports = (document.get('spec') or {}).get('ports') or []
      port = ports[0].get('port', DEFAULT_SERVICE_PORT) if ports and isinstance(ports[0], dict) else DEFAULT_SERVICE_PORT

      return ServiceEndpoint(str(name), int(port))

  log.warning(f'No Service found for application {app.name}, using service {fallback.name}')

  return fallback


def build_checks(app: Application, endpoint: ServiceEndpoint) -> list[HookCheck]:
  url = endpoint.url(app.destination_namespace)
  retries = app.hook_policy.retry_attempts
  curl = f'curl -fsS --retry {retries} --retry-delay 5 --retry-connrefused'

  commands = {
    CheckType.HEALTH: f'{curl} -o /dev/null {url}',
    CheckType.CONTENT: f'{curl} {url} | grep -q .',
    CheckType.LOAD_BALANCER: f'for i in $(seq 1 {retries}); do {curl} -o /dev/null {url}; done',
  }

  return [HookCheck(str(check), commands[check]) for check in app.hook_policy.checks]


def render_hook(app: Application, registry_root: str) -> dict:
  policy = select_policy(app.environment_tier)
  endpoint = find_service_endpoint(app, registry_root)

  renderer = YamlRenderer()
  renderer.set_template_origin(f'post-sync hook of {app.name}')
  renderer.set_template_vars({
    'hook_name': policy.hook_name(app.name),
    'app_name': app.name,
    'namespace': app.destination_namespace,
    'tier_label': default.TIER_LABEL,
    'tier': str(app.environment_tier),
    'image': default.HOOK_IMAGE,
    'wait_seconds': app.hook_policy.wait_seconds,
    'retry_attempts': app.hook_policy.retry_attempts,
    'checks': build_checks(app, endpoint),
  })

  return renderer.render_object(default.POST_SYNC_HOOK_TEMPLATE)


def write_hooks(apps: list[Application], registry_root: str, output_dir: str) -> list[str]:
  written = []

  for app in apps:
    output_path = os.path.join(output_dir, app.name, default.HOOK_FILENAME)
    write_yaml(output_path, render_hook(app, registry_root))
    log.info(f'Rendered post-sync hook for application {app.name}')
    written.append(output_path)

  return written
