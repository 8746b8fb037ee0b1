from twc.runtime.verifier import (
    Diagnostic,
    ProjectVerifier,
    VerificationResult,
    VerifierConfig,
)

__all__ = ["ProjectVerifier", "VerifierConfig", "VerificationResult", "Diagnostic"]
