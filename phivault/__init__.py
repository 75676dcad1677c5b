"""PHI vault: detection, tokenization, and de-identification of protected health information."""

__version__ = "0.1.0"
