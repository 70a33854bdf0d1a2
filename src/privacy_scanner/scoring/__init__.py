"""Risk scoring for privacy reports."""

from privacy_scanner.scoring.aggregator import (
    MITIGATION_TABLE,
    generate_mitigations,
    overall_risk,
    severity_counts,
)

__all__ = ["MITIGATION_TABLE", "generate_mitigations", "overall_risk", "severity_counts"]
