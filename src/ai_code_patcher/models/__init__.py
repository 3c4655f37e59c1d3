"""Data models and transfer objects."""

from .error import (
    ClassMemberContext,
    ErrorContext,
    ErrorDescriptor,
    ErrorInfo,
    extract_error_identifier,
)
from .patch import (
    Addition,
    Applied,
    CandidateDeclaration,
    ClassMember,
    DeclarationKind,
    Failed,
    MemberReplacement,
    MemberRole,
    NoOp,
    PatchPlan,
    PatchReport,
    Replacement,
    StrategyResult,
)

__all__ = [
    # Error models
    "ErrorInfo",
    "ErrorDescriptor",
    "ErrorContext",
    "ClassMemberContext",
    "extract_error_identifier",
    # Patch models
    "DeclarationKind",
    "MemberRole",
    "CandidateDeclaration",
    "ClassMember",
    "Addition",
    "Replacement",
    "MemberReplacement",
    "PatchPlan",
    "PatchReport",
    # Strategy results
    "Applied",
    "NoOp",
    "Failed",
    "StrategyResult",
]
