"""Reward domain events, published after commit."""

from dataclasses import dataclass
from datetime import datetime

from shared.domain.base import DomainEvent


@dataclass(kw_only=True)
class TaskCompleted(DomainEvent):
    account_id: str
    task_id: str
    points_earned: int
    completion_count: int


@dataclass(kw_only=True)
class RewardRedeemed(DomainEvent):
    redemption_id: str
    account_id: str
    reward_id: str
    points_spent: int
    expires_at: datetime | None
