import logging
import logging.config
import re
import os
import yaml
from typing import Any
from pathlib import PurePosixPath
from importlib.metadata import version, PackageNotFoundError
from packaging.version import Version

from argocd_selective_sync import default
from argocd_selective_sync.exception import InternalError, MergeError, ConfigFileError


log = logging.getLogger(__name__)

_undefined_variable_patterns = (
  re.compile(r'\'(.+?)\' is undefined'),
  re.compile(r'has no attribute \'(.+?)\''),
)


def build_path(root_dir: str, path: str, allow_missing: bool = False) -> str:
  if not path:
    log.error('Path is empty')
    raise InternalError()

  # absolute `path` wins over `root_dir`
  abs_path = os.path.join(str(root_dir), path)
  if not allow_missing and not os.path.exists(abs_path):
    log.error(f'Path does not exist: {abs_path}')
    raise InternalError()

  return abs_path


def path_parts(path: str) -> tuple[str, ...]:
  '''Repository-relative POSIX segments of `path`; `.` and empty segments are dropped.'''
  posix = path.replace('\\', '/')
  return tuple(part for part in PurePosixPath(posix).parts if part not in ('/', '.', ''))


def is_path_prefix(prefix: str, path: str) -> bool:
  '''Segment-aware prefix test: `dev/app` is a prefix of `dev/app/x` but not of `dev/app-extra/x`.'''
  prefix_parts = path_parts(prefix)
  parts = path_parts(path)

  if not prefix_parts:
    return False

  return parts[:len(prefix_parts)] == prefix_parts


def paths_overlap(path_1: str, path_2: str) -> bool:
  return is_path_prefix(path_1, path_2) or is_path_prefix(path_2, path_1)


def _key_name(key_path: list) -> str:
  return '.'.join(str(key) for key in key_path)


def merge_dicts_without_duplicates(*dicts, key_path: list | None = None) -> dict:
  '''
  Merge mappings read from several config files.

  Nested mappings are merged and lists are concatenated. A scalar defined in
  more than one mapping, or a list item repeated across them, raises MergeError.
  '''
  key_path = key_path or []
  merged = {}

  for d in dicts:
    for key, value in d.items():
      if key not in merged:
        merged[key] = value
        continue

      current = merged[key]
      if isinstance(current, dict) and isinstance(value, dict):
        merged[key] = merge_dicts_without_duplicates(current, value, key_path=key_path + [key])
      elif isinstance(current, list) and isinstance(value, list):
        repeated = [item for item in value if item in current]
        if repeated:
          log.error(f'Config key \'{_key_name(key_path + [key])}\' repeats {repeated}')
          raise MergeError
        merged[key] = current + value
      else:
        log.error(f'Config key \'{_key_name(key_path + [key])}\' is defined more than once')
        raise MergeError

  return merged


def merge_dicts_with_overrides(*dicts) -> dict:
  '''Layer mappings left to right: nested mappings merge, anything else is replaced and None drops the key.'''
  merged = {}

  for d in dicts:
    for key, value in d.items():
      if value is None:
        merged.pop(key, None)
      elif isinstance(value, dict):
        base = merged.get(key)
        merged[key] = merge_dicts_with_overrides(base if isinstance(base, dict) else {}, value)
      else:
        merged[key] = value

  return merged


def ensure_list(value: Any, param_name: str) -> list:
  if value is None:
    return []

  if not isinstance(value, list):
    log.error(f'Configuration parameter {param_name} must be a list')
    raise ConfigFileError()

  return value


def init_logging(loglevel: str) -> None:
  log_config_path = os.path.join(os.path.dirname(os.path.realpath(__file__)), default.LOG_CONFIG_FILE)
  try:
    with open(log_config_path) as f:
      log_config = yaml.safe_load(f)
  except FileNotFoundError:
    return

  if loglevel.upper() in logging.getLevelNamesMapping():
    log_config['loggers'][get_module_name()]['level'] = loglevel.upper()

  logging.config.dictConfig(log_config)


def extract_undefined_variable(message: str) -> str:
  for pattern in _undefined_variable_patterns:
    match = pattern.search(message)
    if match:
      return match.group(1)

  return message


def get_module_name() -> str:
  return __name__.split('.')[0]


def get_package_name() -> str:
  return get_module_name().replace('_', '-')


def get_current_version() -> Version | None:
  try:
    return Version(version(get_package_name()))
  except PackageNotFoundError:
    log.warning(f'{get_package_name()} is not installed, cannot determine its version')
    return None
