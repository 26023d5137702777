"""Statement AI: LLM-assisted bank statement analysis by supplier and project."""

__version__ = "0.1.0"
