"""Exception types raised at the edges of the analysis pipeline."""


class GenoRiskError(Exception):
    """Base class for all GenoRisk errors."""


class UnsupportedDrugError(GenoRiskError, ValueError):
    """Raised when a drug name has no entry in the drug-gene map."""

    def __init__(self, drug: str, supported=None):
        self.drug = drug
        self.supported = list(supported or [])
        message = f"Unsupported drug: {drug}."
        if self.supported:
            message += f" Supported: {self.supported}"
        super().__init__(message)


class RecordDecodeError(GenoRiskError, ValueError):
    """Raised when an uploaded record cannot be read as text."""
