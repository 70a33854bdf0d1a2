"""Scanner services."""

from privacy_scanner.services.scanner import PrivacyScanner

__all__ = ["PrivacyScanner"]
