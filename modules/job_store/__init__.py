"""
Job Store module.

Persistence of video generation jobs plus the status state machine that guards
every write.
"""

from modules.job_store.state_machine import ALLOWED_TRANSITIONS, ensure_transition
from modules.job_store.store import JobStore, RESTART_MESSAGE

__all__ = ["ALLOWED_TRANSITIONS", "ensure_transition", "JobStore", "RESTART_MESSAGE"]
