import logging
import posixpath
from dataclasses import dataclass, field
from typing import Iterable

from argocd_selective_sync.application import Application
from argocd_selective_sync.util import is_path_prefix, path_parts
from argocd_selective_sync.exception import AmbiguousOwnershipError


log = logging.getLogger(__name__)


@dataclass
class ChangeSet:
  affected: dict[str, list[str]] = field(default_factory=dict)
  applications: dict[str, Application] = field(default_factory=dict)
  unowned: list[str] = field(default_factory=list)
  conflicts: list[str] = field(default_factory=list)

  def add(self, app: Application, path: str) -> None:
    self.applications.setdefault(app.name, app)
    paths = self.affected.setdefault(app.name, [])
    if path not in paths:
      paths.append(path)


def normalize_changed_path(changed_path: str) -> str:
  '''Repository-relative POSIX form of `changed_path` with `.` and `..` segments collapsed.'''
  path = '/'.join(path_parts(changed_path))
  if not path:
    return ''

  return posixpath.normpath(path)


def _escapes_root(path: str) -> bool:
  return path == '..' or path.startswith('../')


def find_owners(changed_path: str, registry: Iterable[Application]) -> list[Application]:
  path = normalize_changed_path(changed_path)
  if _escapes_root(path):
    return []

  return [app for app in registry if is_path_prefix(app.source_path, path)]


def resolve(changed_path: str, registry: Iterable[Application]) -> Application | None:
  '''
  Return the application owning `changed_path`, or None when no application does.

  Matching is done on whole path segments of the normalised path; a path
  leading outside the repository is owned by nobody. More than one owner means
  the registry breaks the non-overlap invariant and raises AmbiguousOwnershipError.
  '''
  changed_path = normalize_changed_path(changed_path)
  owners = find_owners(changed_path, registry)

  if not owners:
    log.debug(f'No application owns {changed_path}')
    return None

  if len(owners) > 1:
    names = sorted(app.name for app in owners)
    log.error(f'Path {changed_path} is claimed by several applications: {", ".join(names)}')
    raise AmbiguousOwnershipError(changed_path, names)

  log.debug(f'Path {changed_path} is owned by application {owners[0].name}')

  return owners[0]


def resolve_changes(changed_paths: Iterable[str], registry: Iterable[Application]) -> ChangeSet:
  registry = list(registry)
  change_set = ChangeSet()

  for changed_path in changed_paths:
    path = normalize_changed_path(changed_path)
    if not path:
      continue

    try:
      app = resolve(path, registry)
    except AmbiguousOwnershipError as e:
      change_set.conflicts.append(str(e))
      continue

    if app is None:
      if path not in change_set.unowned:
        change_set.unowned.append(path)
    else:
      change_set.add(app, path)

  return change_set
