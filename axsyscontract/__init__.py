"""Built-in ledger system contracts: epoch management, KYC verification and their registry."""

__version__ = "0.1.0"

__all__ = ["abi", "common", "contract", "epoch_manager", "kyc_verification"]