"""ClaimRelay: claim lifecycle and submission orchestration service."""
