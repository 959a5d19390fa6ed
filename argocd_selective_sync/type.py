from enum import StrEnum, auto


class EnvironmentTier(StrEnum):
  DEV = auto()
  STAGING = auto()
  PRODUCTION = auto()


class CheckType(StrEnum):
  HEALTH = auto()
  CONTENT = auto()
  LOAD_BALANCER = auto()


class ValidationErrorType(StrEnum):
  INVALID_DEFINITION = auto()
  AMBIGUOUS_OWNERSHIP = auto()
  DUPLICATE_NAME = auto()
  DUPLICATE_NAMESPACE = auto()
  MISSING_MANIFEST = auto()
  UNKNOWN_TIER = auto()
