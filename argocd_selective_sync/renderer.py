import logging
import textwrap
import jinja2
import yaml
from jinja2 import Environment, StrictUndefined

from argocd_selective_sync.exception import UndefinedTemplateVariableError, InternalError
from argocd_selective_sync.util import extract_undefined_variable

log = logging.getLogger(__name__)


class JinjaRenderer():
  def __init__(self) -> None:
    self.env = Environment(extensions=['jinja2_ansible_filters.AnsibleCoreFiltersExtension'],
                           undefined=StrictUndefined,
                           keep_trailing_newline=True)

    self.template_vars = {}
    self.template_origin = '<Unknown>'

  def set_template_vars(self, template_vars: dict) -> None:
    self.template_vars = template_vars

  def set_template_origin(self, origin: str) -> None:
    self.template_origin = origin

  def render(self, content: str) -> str:
    template = self.env.from_string(textwrap.dedent(content))
    template.filename = self.template_origin

    try:
      rendered = template.render(self.template_vars)
    except jinja2.exceptions.UndefinedError as e:
      variable_name = extract_undefined_variable(str(e))

      log.error(f'Variable "{variable_name}" is undefined in template {self.template_origin}')
      raise UndefinedTemplateVariableError(variable_name) from None

    return rendered


class YamlRenderer(JinjaRenderer):
  '''Renders a template that must produce a single YAML mapping.'''

  def render_object(self, content: str) -> dict:
    rendered = self.render(content)

    try:
      obj = yaml.safe_load(rendered)
    except yaml.YAMLError:
      log.error(f'Template {self.template_origin} rendered invalid YAML:\n{rendered}')
      raise InternalError() from None

    if not isinstance(obj, dict):
      log.error(f'Template {self.template_origin} did not render a YAML mapping')
      raise InternalError()

    return obj
