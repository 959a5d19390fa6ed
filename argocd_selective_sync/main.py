import logging
import os
import argparse

from argocd_selective_sync import default
from argocd_selective_sync.cliparam import populate_cli_params, get_cli_params
from argocd_selective_sync.config import populate_config, get_config
from argocd_selective_sync.registry import load_registry, Registry
from argocd_selective_sync.resolver import resolve_changes
from argocd_selective_sync.policy import select_policy
from argocd_selective_sync.hook import write_hooks
from argocd_selective_sync.scaffold import add_environment
from argocd_selective_sync.lint import lint_files
from argocd_selective_sync.util import init_logging, get_package_name, get_current_version
from argocd_selective_sync.exception import (InternalError, ConfigFileError, UnknownTierError, InvalidEnvironmentError,
                                             UndefinedTemplateVariableError, PathDoesNotExistError)


logging.basicConfig(level=default.LOGLEVEL)

log = logging.getLogger(__name__)


def _load_registry() -> Registry:
  config = get_config()

  return load_registry(config.root_dir, config.app_dirs, config.required_manifests)


def _run_yamllint(paths: list[str]) -> int:
  if not get_cli_params().yaml_linter:
    return 0

  log.info('Running yamllint')
  problems = lint_files(paths)
  for problem in problems:
    log.info(f'  {problem}')

  return len(problems)


def resolve_command() -> int:
  cli_params = get_cli_params()
  registry = _load_registry()
  change_set = resolve_changes(cli_params.paths, registry.applications)

  for app_name, paths in change_set.affected.items():
    app = change_set.applications[app_name]
    policy = select_policy(app.environment_tier)
    log.info(f'{app_name} (namespace: {app.destination_namespace})')
    log.info(f'  hook: {policy.hook_name(app_name)}, wait {app.hook_policy.wait_seconds}s, '
             f'{app.hook_policy.retry_attempts} retries, checks: {", ".join(app.hook_policy.checks)}')
    for path in paths:
      log.info(f'  changed: {path}')

  for path in change_set.unowned:
    log.info(f'No application owns {path}')

  if not change_set.affected:
    log.info('No applications affected')

  for conflict in change_set.conflicts:
    log.error(conflict)

  if registry.errors:
    log.warning(f'Registry has {len(registry.errors)} validation errors, run `validate` for details')

  return 1 if change_set.conflicts else 0


def validate_command() -> int:
  config = get_config()
  registry = _load_registry()

  for app in registry.applications:
    log.info(f'Application {app.name} is valid')

  for error in registry.errors:
    log.error(str(error))

  lint_problems = _run_yamllint([os.path.join(config.root_dir, app.source_path) for app in registry.applications])

  if registry.errors:
    log.error(f'Found {len(registry.errors)} validation errors')
    return 1
  if lint_problems:
    log.error(f'Found {lint_problems} yamllint problems')
    return 1

  log.info('All configurations are valid!')

  return 0


def list_command() -> int:
  registry = _load_registry()

  if not registry.applications:
    log.warning('No applications found')
    return 0

  for app in registry.applications:
    sync = 'auto' if app.sync_policy.auto_sync else 'manual'
    log.info(f'{app.name:40} {app.environment_tier:12} {sync:8} {app.destination_namespace:40} {app.source_path}')

  log.info(f'Total applications: {len(registry.applications)}')
  if registry.errors:
    log.warning(f'{len(registry.errors)} definitions were excluded, run `validate` for details')

  return 0


def policy_command() -> int:
  policy = select_policy(get_cli_params().tier)

  log.info(f'Tier:           {policy.tier}')
  log.info(f'Auto sync:      {policy.auto_sync}')
  log.info(f'Self heal:      {policy.self_heal}')
  log.info(f'Wait seconds:   {policy.wait_seconds}')
  log.info(f'Retry attempts: {policy.retry_attempts}')
  log.info(f'Checks:         {", ".join(policy.checks)}')

  return 0


def render_hooks_command() -> int:
  config = get_config()
  cli_params = get_cli_params()
  registry = _load_registry()

  apps = registry.applications
  if cli_params.app:
    app = registry.get(cli_params.app)
    if app is None:
      log.error(f'Application {cli_params.app} not found among valid applications')
      return 1
    apps = [app]

  output_dir = os.path.join(config.root_dir, cli_params.output_dir)
  written = write_hooks(apps, config.root_dir, output_dir)
  log.info(f'Rendered {len(written)} post-sync hooks into {output_dir}')

  return 1 if _run_yamllint(written) else 0


def add_env_command() -> int:
  config = get_config()
  cli_params = get_cli_params()

  written = add_environment(config.root_dir,
                            cli_params.env_name,
                            tier=cli_params.tier,
                            replicas=cli_params.replicas,
                            service_type=cli_params.service_type,
                            auto_heal=False if cli_params.no_auto_heal else None,
                            auto_sync=False if cli_params.no_auto_sync else None,
                            manifests_dir=config.manifests_dir,
                            apps_dir=config.apps_dir,
                            argocd=config.argocd,
                            services=config.services)

  log.info(f'Environment \'{cli_params.env_name}\' created successfully!')
  log.info('Files created:')
  for path in written:
    log.info(f'  {path}')

  return 0


COMMANDS = {
  'resolve': resolve_command,
  'validate': validate_command,
  'list': list_command,
  'policy': policy_command,
  'render-hooks': render_hooks_command,
  'add-env': add_env_command,
}


def main(**kwargs) -> None:
  try:
    cli_params = populate_cli_params(**kwargs)
    populate_config(cli_params.root_dir, cli_params.config_dir)

    exit_code = COMMANDS[cli_params.command]()
  except UnknownTierError as e:
    log.critical(f'Unknown environment tier {e.tier}')
    exit(1)
  except InvalidEnvironmentError as e:
    log.critical(f'Invalid environment {e.env_name}: {e.reason}')
    exit(1)
  except UndefinedTemplateVariableError as e:
    log.critical(f'Template error: {e}')
    exit(1)
  except InternalError:
    log.critical('Internal error')
    exit(1)
  except ConfigFileError:
    log.critical('Config file error')
    exit(1)
  except PathDoesNotExistError as e:
    log.critical(f'Path does not exist {e.path}')
    exit(1)
  except FileNotFoundError as e:
    log.critical(f'File or directory not found {e.filename}')
    exit(1)
  except OSError as e:
    log.critical(f'Cannot write {e.filename}: {e.strerror}')
    exit(1)

  exit(exit_code)


def cli_entry_point() -> None:
  parser = argparse.ArgumentParser(prog='argocd-selective-sync',
                                   description='Resolve, validate and scaffold per-application ArgoCD selective sync.')
  parser.add_argument('--root-dir', type=str, default=default.ROOT_DIR, help='Repository root directory (default: current directory)')
  parser.add_argument('--config-dir', type=str, default=default.CONFIG_DIR, help='Configuration files directory (default: config)')
  parser.add_argument('--loglevel', type=str, default=default.LOGLEVEL, help='DEBUG, INFO, WARNING, ERROR, CRITICAL')
  parser.add_argument('--version', action='version', version=f'{get_package_name()} {get_current_version()}', help='Show version')
  subparsers = parser.add_subparsers(dest='command', required=True)

  resolve_parser = subparsers.add_parser('resolve', help='Show which applications own the changed paths')
  resolve_parser.add_argument('paths', nargs='+', help='Repository-relative changed file paths')

  validate_parser = subparsers.add_parser('validate', help='Validate the application registry')
  validate_parser.add_argument('--yaml-linter', action='store_true', help='Run yamllint against application manifests')

  subparsers.add_parser('list', help='List valid applications')

  policy_parser = subparsers.add_parser('policy', help='Show the sync and hook policy of an environment tier')
  policy_parser.add_argument('tier', type=str, help='dev, staging or production')

  hooks_parser = subparsers.add_parser('render-hooks', help='Render post-sync hook jobs')
  hooks_parser.add_argument('--app', type=str, default=None, help='Render the hook of a single application')
  hooks_parser.add_argument('--output-dir', type=str, default=default.OUTPUT_DIR, help='Output directory (default: hooks)')
  hooks_parser.add_argument('--yaml-linter', action='store_true', help='Run yamllint against rendered hooks')

  env_parser = subparsers.add_parser('add-env', help='Add a new environment with per-app structure')
  env_parser.add_argument('env_name', type=str, help='Name of the new environment (e.g. qa, uat, demo)')
  env_parser.add_argument('--tier', type=str, default=None, help='Environment tier (default: environment name)')
  env_parser.add_argument('-r', '--replicas', type=int, default=2, help='Number of replicas (default: 2)')
  env_parser.add_argument('-s', '--service-type', type=str, default='ClusterIP', choices=default.SERVICE_TYPES,
                          help='Service type (default: ClusterIP)')
  env_parser.add_argument('--no-auto-heal', action='store_true', help='Disable automatic healing for this environment')
  env_parser.add_argument('--no-auto-sync', action='store_true', help='Disable automatic sync for this environment')

  args = parser.parse_args()

  init_logging(args.loglevel)
  main(**vars(args))
