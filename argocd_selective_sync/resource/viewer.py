import logging
import os
import re
from typing import Generator
from enum import StrEnum, auto

from argocd_selective_sync.util import path_parts
from argocd_selective_sync.exception import PathDoesNotExistError

log = logging.getLogger(__name__)


class ResourceType(StrEnum):
  YAML = auto()
  UNKNOWN = auto()
  DIRECTORY = auto()
  DOES_NOT_EXIST = auto()


YAML_EXTENSIONS = ('.yml', '.yaml')


def _get_resource_type(path: str) -> ResourceType:
  if os.path.isdir(path):
    return ResourceType.DIRECTORY
  if not os.path.isfile(path):
    return ResourceType.DOES_NOT_EXIST

  return ResourceType.YAML if path.endswith(YAML_EXTENSIONS) else ResourceType.UNKNOWN


class ResourceViewer:
  '''Snapshot of a file tree; only YAML file content is loaded.'''

  def __init__(self, path: str) -> None:
    self.path = os.path.normpath(path)
    self.name = os.path.basename(self.path)
    self.resource_type = _get_resource_type(self.path)
    self.content = ''
    self.children: dict[str, 'ResourceViewer'] = {}

    if self.resource_type == ResourceType.DIRECTORY:
      self.children = {name: ResourceViewer(os.path.join(self.path, name)) for name in sorted(os.listdir(self.path))}
    elif self.resource_type == ResourceType.YAML:
      self.content = self._read()

  def _read(self) -> str:
    try:
      with open(self.path) as f:
        return f.read()
    except UnicodeDecodeError:
      log.warning(f'Skipping content of {self.path}, it is not a text file')
      return ''

  def find(self, path: str) -> 'ResourceViewer':
    node = self
    for part in path_parts(path):
      if part not in node.children:
        raise PathDoesNotExistError(path)
      node = node.children[part]

    return node

  def walk(self, depth: int = -1) -> Generator['ResourceViewer', None, None]:
    '''Descendants in sorted pre-order, `depth` levels deep (-1 for all).'''
    if self.resource_type == ResourceType.DOES_NOT_EXIST:
      raise PathDoesNotExistError(self.path)
    if depth == 0:
      return

    for child in self.children.values():
      yield child
      if child.resource_type == ResourceType.DIRECTORY:
        yield from child.walk(depth - 1 if depth > 0 else -1)

  def __str__(self) -> str:
    return f'{self.__class__.__name__}({self.path}) of type {self.resource_type}'


class ScopedViewer:
  '''Read-only handle on a ResourceViewer node, with rel_path taken from base_path.'''
  __slots__ = ('_node', '_base_path')

  def __init__(self, node: ResourceViewer, base_path: str | None = None) -> None:
    self._node = node
    self._base_path = os.path.normpath(base_path or node.path)

  @property
  def path(self) -> str:
    return self._node.path

  @property
  def name(self) -> str:
    return self._node.name

  @property
  def resource_type(self) -> ResourceType:
    return self._node.resource_type

  @property
  def content(self) -> str:
    return self._node.content

  @property
  def rel_path(self) -> str:
    return os.path.relpath(self._node.path, self._base_path)

  def search_subresources(self,
                          resource_types: list[ResourceType] | None = None,
                          name_pattern: str = r'.*',
                          depth: int = -1) -> Generator['ScopedViewer', None, None]:
    regex = re.compile(name_pattern)

    for node in self._node.walk(depth):
      if resource_types is not None and node.resource_type not in resource_types:
        continue
      if regex.search(node.name):
        yield ScopedViewer(node, base_path=self._base_path)

  def child(self, path: str) -> 'ScopedViewer':
    return ScopedViewer(self._node.find(path), base_path=self._base_path)

  def exists(self, path: str = '.') -> bool:
    try:
      return self._node.find(path).resource_type != ResourceType.DOES_NOT_EXIST
    except PathDoesNotExistError:
      return False

  def __str__(self) -> str:
    return f'{self.__class__.__name__}({self.path}, base={self._base_path})'


def build_scoped_viewer(path: str) -> ScopedViewer:
  viewer = ResourceViewer(path)
  log.debug(f'Built {viewer}')

  return ScopedViewer(viewer)
