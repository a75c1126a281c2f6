"""Clearinghouse provider gateways."""
from app.gateways.base import (
    ClaimPayload,
    InsurerInfo,
    ProviderGateway,
    ProviderSubmissionResult,
    order_by_priority,
)
from app.gateways.clearinghouse import HttpClearinghouseGateway, build_provider_gateways

__all__ = [
    "ClaimPayload",
    "InsurerInfo",
    "ProviderGateway",
    "ProviderSubmissionResult",
    "order_by_priority",
    "HttpClearinghouseGateway",
    "build_provider_gateways",
]
