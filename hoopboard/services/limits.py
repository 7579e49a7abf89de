import math

from hoopboard.data import scoreboards as scoreboards_repo
from hoopboard.errors import LimitExceeded
from hoopboard.models import Subscription

PLAN_LIMITS = {
    'basic': 2,
    'plus': 50,
    'premium': math.inf,
}

# Statuses that grant the paid tier
ACTIVE_STATUSES = ('active', 'trialing')


def scoreboard_limit(plan_tier):
    """Maximum scoreboards for a plan; no plan means basic."""
    return PLAN_LIMITS.get(plan_tier, PLAN_LIMITS['basic'])


def limit_description(plan_tier) -> str:
    limit = scoreboard_limit(plan_tier)
    return 'unlimited' if limit == math.inf else str(limit)


def plan_for_user(user_id: int) -> str:
    sub = Subscription.query.filter_by(user_id=user_id).first()
    if not sub or sub.status not in ACTIVE_STATUSES:
        return 'basic'
    return sub.plan_tier


def ensure_can_create(user_id: int) -> None:
    plan = plan_for_user(user_id)
    limit = scoreboard_limit(plan)
    if scoreboards_repo.count_by_owner(user_id) >= limit:
        raise LimitExceeded(f"The {plan} plan allows {limit_description(plan)} scoreboards")
