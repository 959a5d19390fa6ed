import logging
from dataclasses import dataclass

from argocd_selective_sync.type import EnvironmentTier, CheckType
from argocd_selective_sync.application import Application, HookPolicy
from argocd_selective_sync.exception import UnknownTierError


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Policy:
  tier: EnvironmentTier
  auto_sync: bool
  self_heal: bool
  wait_seconds: int
  retry_attempts: int
  checks: tuple[CheckType, ...]

  def hook_policy(self, checks: tuple[CheckType, ...] | None = None) -> HookPolicy:
    return HookPolicy(wait_seconds=self.wait_seconds,
                      retry_attempts=self.retry_attempts,
                      checks=checks if checks else self.checks)

  def hook_name(self, app_name: str) -> str:
    if self.tier == EnvironmentTier.PRODUCTION:
      return f'{app_name}-validation'

    return f'{app_name}-post-sync'


TIER_POLICIES = {
  EnvironmentTier.DEV: Policy(tier=EnvironmentTier.DEV,
                              auto_sync=True,
                              self_heal=True,
                              wait_seconds=10,
                              retry_attempts=3,
                              checks=(CheckType.HEALTH,)),
  EnvironmentTier.STAGING: Policy(tier=EnvironmentTier.STAGING,
                                  auto_sync=True,
                                  self_heal=True,
                                  wait_seconds=15,
                                  retry_attempts=4,
                                  checks=(CheckType.HEALTH,)),
  # production syncs need manual approval
  EnvironmentTier.PRODUCTION: Policy(tier=EnvironmentTier.PRODUCTION,
                                     auto_sync=False,
                                     self_heal=False,
                                     wait_seconds=30,
                                     retry_attempts=5,
                                     checks=(CheckType.HEALTH, CheckType.CONTENT)),
}


def select_policy(tier: str) -> Policy:
  try:
    return TIER_POLICIES[EnvironmentTier(tier)]
  except ValueError:
    log.error(f'Unknown environment tier \'{tier}\'. Valid tiers: {[t.value for t in EnvironmentTier]}')
    raise UnknownTierError(str(tier)) from None


def policy_drift(app: Application) -> list[str]:
  '''Where the declared sync policy of `app` disagrees with its tier policy.'''
  policy = select_policy(app.environment_tier)
  drift = []

  if app.sync_policy.auto_sync != policy.auto_sync:
    drift.append(f'autoSync is {app.sync_policy.auto_sync}, tier {policy.tier} expects {policy.auto_sync}')
  if app.sync_policy.self_heal != policy.self_heal:
    drift.append(f'selfHeal is {app.sync_policy.self_heal}, tier {policy.tier} expects {policy.self_heal}')

  return drift
