import logging
import os
import yaml
from enum import StrEnum, auto

from argocd_selective_sync import default
from argocd_selective_sync.util import build_path, ensure_list, merge_dicts_without_duplicates, merge_dicts_with_overrides
from argocd_selective_sync.exception import InternalError, ConfigFileError, MergeError
from argocd_selective_sync.resource.viewer import build_scoped_viewer, ResourceType


log = logging.getLogger(__name__)


class ConfigKeywords(StrEnum):
  REGISTRY = auto()
  SCAFFOLD = auto()
  APP_DIRS = auto()
  REQUIRED_MANIFESTS = auto()
  MANIFESTS_DIR = auto()
  APPS_DIR = auto()
  ARGOCD = auto()
  SERVICES = auto()


DEFAULT_CONFIG = {
  ConfigKeywords.REGISTRY: {
    ConfigKeywords.APP_DIRS: default.APP_DIRS,
    ConfigKeywords.REQUIRED_MANIFESTS: default.REQUIRED_MANIFESTS,
  },
  ConfigKeywords.SCAFFOLD: {
    ConfigKeywords.MANIFESTS_DIR: default.MANIFESTS_DIR,
    ConfigKeywords.APPS_DIR: default.APP_DIRS[0],
    ConfigKeywords.ARGOCD: default.ARGOCD_DEFAULTS,
    ConfigKeywords.SERVICES: default.SERVICES_DEFAULTS,
  },
}


class Config:
  def __init__(self) -> None:
    self.config = None
    self._root_dir = None

  def populate_config(self, **kwargs) -> None:
    self.__dict__.update(kwargs)

  def _get_section(self, keyword: ConfigKeywords) -> dict:
    if self.config is None:
      log.error('Config is not populated')
      raise InternalError()

    section = self.config.get(keyword) or {}
    if not isinstance(section, dict):
      log.error(f'`{keyword}` section in config must be a mapping')
      raise ConfigFileError()

    return section

  @property
  def root_dir(self) -> str:
    if not self._root_dir:
      log.error('Config is not populated')
      raise InternalError()

    return self._root_dir

  @property
  def app_dirs(self) -> list[str]:
    registry = self._get_section(ConfigKeywords.REGISTRY)

    return ensure_list(registry.get(ConfigKeywords.APP_DIRS), f'{ConfigKeywords.REGISTRY}.{ConfigKeywords.APP_DIRS}')

  @property
  def required_manifests(self) -> list[str]:
    registry = self._get_section(ConfigKeywords.REGISTRY)

    return ensure_list(registry.get(ConfigKeywords.REQUIRED_MANIFESTS),
                       f'{ConfigKeywords.REGISTRY}.{ConfigKeywords.REQUIRED_MANIFESTS}')

  @property
  def manifests_dir(self) -> str:
    return self._get_section(ConfigKeywords.SCAFFOLD).get(ConfigKeywords.MANIFESTS_DIR, default.MANIFESTS_DIR)

  @property
  def apps_dir(self) -> str:
    return self._get_section(ConfigKeywords.SCAFFOLD).get(ConfigKeywords.APPS_DIR, default.APP_DIRS[0])

  @property
  def argocd(self) -> dict:
    return self._get_section(ConfigKeywords.SCAFFOLD).get(ConfigKeywords.ARGOCD) or {}

  @property
  def services(self) -> dict:
    services = self._get_section(ConfigKeywords.SCAFFOLD).get(ConfigKeywords.SERVICES) or {}
    if not services:
      log.warning('No services defined in `scaffold.services`')

    return services


config = Config()


def _read_config_files(config_dir_path: str) -> list[dict]:
  viewer = build_scoped_viewer(config_dir_path)
  yml_children = list(viewer.search_subresources(resource_types=[ResourceType.YAML]))

  config_files_content = []
  for child in yml_children:
    log.debug(f'Found config file: {child.rel_path}')
    try:
      content = yaml.safe_load(child.content)
    except yaml.YAMLError:
      log.error(f'Invalid YAML in config file {child.rel_path}')
      raise ConfigFileError

    if content is None:
      continue
    if not isinstance(content, dict):
      log.error(f'Config file {child.rel_path} must contain a mapping')
      raise ConfigFileError

    config_files_content.append(content)

  return config_files_content


def populate_config(root_dir: str = default.ROOT_DIR,
                    config_dir: str = default.CONFIG_DIR) -> Config:
  config_dir_path = build_path(root_dir, config_dir, allow_missing=True)

  user_config = {}
  if os.path.isdir(config_dir_path):
    try:
      user_config = merge_dicts_without_duplicates(*_read_config_files(config_dir_path))
    except MergeError:
      log.error('Error merging config files')
      raise ConfigFileError
  else:
    log.debug(f'Config directory {config_dir_path} does not exist, using defaults')

  config.populate_config(config=merge_dicts_with_overrides(DEFAULT_CONFIG, user_config),
                         _root_dir=os.path.normpath(build_path(root_dir, '.')))

  log.debug(f'Root directory: {config.root_dir}')
  log.debug(f'Config directory: {config_dir_path}')

  return config


def get_config() -> Config:
  return config
