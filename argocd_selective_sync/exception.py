class BaseError(Exception):
  pass


class InternalError(BaseError):
  def __init__(self) -> None:
    super().__init__('Internal error')


class ConfigFileError(BaseError):
  def __init__(self) -> None:
    super().__init__('Config file error')


class MergeError(BaseError):
  def __init__(self) -> None:
    super().__init__('Error merging dictionaries')


class PathDoesNotExistError(BaseError):
  def __init__(self, path: str) -> None:
    self.path = path
    super().__init__(f'Path does not exist {path}')


class InvalidDefinitionError(BaseError):
  def __init__(self, origin: str, reason: str) -> None:
    self.origin = origin
    self.reason = reason
    super().__init__(f'Invalid application definition in {origin}: {reason}')


class UnknownTierError(BaseError):
  def __init__(self, tier: str) -> None:
    self.tier = tier
    super().__init__(f'Unknown environment tier {tier}')


class AmbiguousOwnershipError(BaseError):
  def __init__(self, path: str, app_names: list[str]) -> None:
    self.path = path
    self.app_names = app_names
    super().__init__(f'Path {path} is claimed by several applications: {", ".join(app_names)}')


class InvalidEnvironmentError(BaseError):
  def __init__(self, env_name: str, reason: str) -> None:
    self.env_name = env_name
    self.reason = reason
    super().__init__(f'Invalid environment {env_name}: {reason}')


class UndefinedTemplateVariableError(BaseError):
  def __init__(self, variable_name: str) -> None:
    super().__init__(f'Variable {variable_name} is undefined')
