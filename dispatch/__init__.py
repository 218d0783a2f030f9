#Expose the high-level pipeline pieces:
#Candidate filtering (hard rules)
#Scoring / ranking
#Lifecycle manager (the only capacity mutation point)
#Batch orchestrator (the "one call" entry point)

from .candidate_filter import build_base_candidates, eligible_providers
from .scoring import Algorithm, rank_candidates
from .policy import AssignmentPolicy, BatchPreferences, ScoringWeights, default_assignment_policy, policy_from_env
from .lifecycle import AssignmentLifecycle
from .dispatcher import BatchAssigner, BatchFailure, BatchResult #the main class to call for batch auto-assign

__all__ = [
    "build_base_candidates",
    "eligible_providers",
    "Algorithm",
    "rank_candidates",
    "AssignmentPolicy",
    "BatchPreferences",
    "ScoringWeights",
    "default_assignment_policy",
    "policy_from_env",
    "AssignmentLifecycle",
    "BatchAssigner",
    "BatchFailure",
    "BatchResult",
]
