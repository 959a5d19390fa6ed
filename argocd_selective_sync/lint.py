import logging
import os
import yamllint
from yamllint import linter
from yamllint.config import YamlLintConfig

from argocd_selective_sync.resource.viewer import build_scoped_viewer, ResourceType


log = logging.getLogger(__name__)

YAMLLINT_CONFIG = '{extends: default, rules: {line-length: disable}}'


def collect_yaml_files(paths: list[str]) -> list[str]:
  files = []

  for path in paths:
    viewer = build_scoped_viewer(path)
    if viewer.resource_type == ResourceType.YAML:
      files.append(viewer.path)
    elif viewer.resource_type == ResourceType.DIRECTORY:
      files.extend(child.path for child in viewer.search_subresources(resource_types=[ResourceType.YAML]))
    else:
      log.debug(f'Nothing to lint at {path}')

  return files


def lint_files(paths: list[str]) -> list[str]:
  '''Run yamllint over every YAML file below `paths` and return the problems found.'''
  conf = YamlLintConfig(YAMLLINT_CONFIG)
  problems = []

  log.debug(f'Running {yamllint.APP_NAME} {yamllint.APP_VERSION}')
  for file_path in collect_yaml_files(paths):
    with open(file_path) as f:
      for problem in linter.run(f, conf, file_path):
        problems.append(f'{os.path.relpath(file_path)}:{problem.line}:{problem.column}: '
                        f'[{problem.level}] {problem.desc} ({problem.rule})')

  return problems
