"""
Clearinghouse provider gateway contract.

Each gateway is one external electronic claims network. Gateways report
outcomes as ProviderSubmissionResult values instead of raising, so the
submission policy can tell transient failures from data rejections.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional


# Error codes clearinghouses return for transient conditions
RETRYABLE_ERROR_CODES = frozenset({
    "NETWORK_TIMEOUT",
    "NETWORK_ERROR",
    "SERVICE_UNAVAILABLE",
    "RATE_LIMIT_EXCEEDED",
    "SUBMISSION_ERROR",
})

# Error codes that mean the claim data itself was rejected
NON_RETRYABLE_ERROR_CODES = frozenset({
    "INVALID_PROVIDER_NPI",
    "MISSING_PATIENT_INFO",
    "INVALID_INSURANCE_ID",
    "MISSING_PRIOR_AUTHORIZATION",
})


@dataclass
class InsurerInfo:
    """Insurer details supplied by the patient at submission time."""

    name: Optional[str] = None
    payer_code: Optional[str] = None
    address: Optional[str] = None
    member_id: Optional[str] = None
    group_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "payerCode": self.payer_code,
            "address": self.address,
            "memberId": self.member_id,
            "groupId": self.group_id,
        }


@dataclass
class ClaimPayload:
    """Claim data sent to a clearinghouse."""

    claim_id: str
    submission_id: str
    provider_name: str
    date_of_service: Optional[date]
    amount_cents: int
    cpt_codes: List[str]
    icd_codes: List[str]
    provider_npi: Optional[str] = None
    description: Optional[str] = None
    insurer: Optional[InsurerInfo] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the JSON body clearinghouses accept."""
        return {
            "claimId": self.claim_id,
            "submissionId": self.submission_id,
            "providerName": self.provider_name,
            "providerNpi": self.provider_npi,
            "dateOfService": self.date_of_service.isoformat() if self.date_of_service else None,
            "amountCents": self.amount_cents,
            "cptCodes": list(self.cpt_codes),
            "icdCodes": list(self.icd_codes),
            "description": self.description,
            "insuranceInfo": self.insurer.to_dict() if self.insurer else None,
        }


@dataclass
class ProviderSubmissionResult:
    """Outcome reported by a clearinghouse for one submission attempt."""

    success: bool
    confirmation_number: Optional[str] = None
    tracking_number: Optional[str] = None
    retryable: bool = False
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def accepted(
        cls,
        confirmation_number: Optional[str],
        tracking_number: Optional[str] = None,
        **metadata: Any,
    ) -> "ProviderSubmissionResult":
        return cls(
            success=True,
            confirmation_number=confirmation_number,
            tracking_number=tracking_number,
            metadata=metadata,
        )

    @classmethod
    def failed(
        cls,
        error_code: str,
        error_message: str,
        retryable: bool,
        **metadata: Any,
    ) -> "ProviderSubmissionResult":
        return cls(
            success=False,
            retryable=retryable,
            error_code=error_code,
            error_message=error_message,
            metadata=metadata,
        )


class ProviderGateway(ABC):
    """
    Uniform "submit this claim electronically" capability of one clearinghouse.

    Attributes:
        name: Display name recorded on submission records
        priority: Lower values are tried first
        timeout_seconds: Upper bound the orchestrator applies to each call
    """

    def __init__(self, name: str, priority: int = 100, timeout_seconds: float = 30.0):
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self.name = name
        self.priority = priority
        self.timeout_seconds = timeout_seconds

    @abstractmethod
    async def submit(self, payload: ClaimPayload) -> ProviderSubmissionResult:
        """Attempt electronic submission of a claim."""

    async def health_check(self) -> bool:
        """Return True if the clearinghouse looks reachable."""
        return True

    async def close(self) -> None:
        """Release any held connections."""

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__}(name={self.name!r}, priority={self.priority}, "
            f"timeout={self.timeout_seconds}s)>"
        )


def order_by_priority(gateways: List[ProviderGateway]) -> List[ProviderGateway]:
    """Sort gateways by priority; ties keep their declared order."""
    return sorted(gateways, key=lambda gateway: gateway.priority)
