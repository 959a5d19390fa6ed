import logging
import os
import yaml
from yaml import SafeDumper
from typing import Any

from argocd_selective_sync.exception import InternalError

log = logging.getLogger(__name__)


class YamlDumper(SafeDumper):
  def increase_indent(self, flow=False, *args, **kwargs):
    return super().increase_indent(flow=flow, indentless=False)


def represent_str(dumper, data):
  '''
  Dump hook scripts and other multiline strings as `|` block scalars and keep
  zero-padded numbers such as `012` quoted, so they are read back as strings.
  Ref: https://github.com/yaml/pyyaml/issues/98
  '''
  if '\n' in data:
    return dumper.represent_scalar('tag:yaml.org,2002:str', data, style='|')
  if len(data) > 1 and data.startswith('0') and data.isdigit():
    return dumper.represent_scalar('tag:yaml.org,2002:str', data, style='\'')

  return dumper.represent_scalar('tag:yaml.org,2002:str', data)


yaml.add_representer(str, represent_str, Dumper=YamlDumper)


def dump_yaml(data: Any) -> str:
  if not isinstance(data, dict):
    log.error(f'Only mappings can be dumped as Kubernetes resources, got {type(data).__name__}')
    raise InternalError()

  return yaml.dump(data, Dumper=YamlDumper,
                   default_flow_style=False,
                   sort_keys=False,
                   allow_unicode=True,
                   explicit_start=True)


def write_yaml(output_path: str, data: Any) -> None:
  content = dump_yaml(data)

  os.makedirs(os.path.dirname(output_path), exist_ok=True)
  with open(output_path, 'w') as f:
    f.write(content)

  log.debug(f'Wrote {output_path}')
