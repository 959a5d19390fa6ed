import logging

from argocd_selective_sync import default


log = logging.getLogger(__name__)


class CLIParams:
  def __init__(self) -> None:
    self.root_dir = default.ROOT_DIR
    self.config_dir = default.CONFIG_DIR
    self.command = None
    self.paths = []
    self.tier = None
    self.app = None
    self.output_dir = default.OUTPUT_DIR
    self.env_name = None
    self.replicas = 2
    self.service_type = 'ClusterIP'
    self.no_auto_heal = False
    self.no_auto_sync = False
    self.yaml_linter = False
    self.loglevel = default.LOGLEVEL

  def populate_cli_params(self, **kwargs) -> None:
    self.__dict__.update(kwargs)


cli_params = CLIParams()


def populate_cli_params(**kwargs) -> CLIParams:
  cli_params.populate_cli_params(**kwargs)

  return cli_params


def get_cli_params() -> CLIParams:
  return cli_params
