"""Service layer exports."""

from .acquisition import AcquisitionFlowController, AuthorizationRedirect
from .acquisition_state import AcquisitionState, AcquisitionStateStore
from .expiry import ExpiryStatus, describe_expiry, evaluate_expiry
from .refresh import RefreshJobSummary, RefreshOrchestrator, RefreshOutcome
from .token_cipher import TokenCipherService

__all__ = [
    "AcquisitionFlowController",
    "AcquisitionState",
    "AcquisitionStateStore",
    "AuthorizationRedirect",
    "ExpiryStatus",
    "RefreshJobSummary",
    "RefreshOrchestrator",
    "RefreshOutcome",
    "TokenCipherService",
    "describe_expiry",
    "evaluate_expiry",
]
