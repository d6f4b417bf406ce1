"""Domain value objects."""
from eco_compliance.domain.value_objects.decision_evidence import DecisionEvidence
from eco_compliance.domain.value_objects.policy_decision import DecisionSource, PolicyDecision
from eco_compliance.domain.value_objects.policy_reference import PolicyReference, package_segment
from eco_compliance.domain.value_objects.risk_tier import RiskTier
from eco_compliance.domain.value_objects.security_tool import SecurityToolKind
from eco_compliance.domain.value_objects.severity import Severity
from eco_compliance.domain.value_objects.vulnerability import ScanResult, Vulnerability

__all__ = [
    "DecisionEvidence",
    "DecisionSource",
    "PolicyDecision",
    "PolicyReference",
    "RiskTier",
    "ScanResult",
    "SecurityToolKind",
    "Severity",
    "Vulnerability",
    "package_segment",
]
