"""
Configuration for ORF scanning and Markov model training.
"""

from dataclasses import dataclass

from .utils import ConfigurationError, GENETIC_CODES


@dataclass(frozen=True)
class PredictorConfig:
    """Length thresholds and estimation settings shared by the pipeline stages."""

    # ORFs longer than this train the trusted model (P)
    trusted_threshold: int = 1400
    # ORFs shorter than this train the background model (Q)
    background_threshold: int = 50

    # Added to every count when normalizing; 0 gives plain frequencies
    pseudocount: float = 0.0

    genetic_code: str = "universal"

    def __post_init__(self):
        """Validate configuration."""
        if self.trusted_threshold <= 0 or self.background_threshold <= 0:
            raise ConfigurationError("Length thresholds must be positive")
        if self.background_threshold > self.trusted_threshold:
            raise ConfigurationError(
                f"Background threshold ({self.background_threshold}) cannot exceed "
                f"trusted threshold ({self.trusted_threshold})")
        if self.pseudocount < 0:
            raise ConfigurationError("Pseudocount cannot be negative")
        if self.genetic_code not in GENETIC_CODES:
            valid_codes = ", ".join(GENETIC_CODES.keys())
            raise ConfigurationError(
                f"Invalid genetic code '{self.genetic_code}'. Valid options are: {valid_codes}")

    def is_trusted_length(self, length: int) -> bool:
        return length > self.trusted_threshold

    def is_background_length(self, length: int) -> bool:
        return length < self.background_threshold
