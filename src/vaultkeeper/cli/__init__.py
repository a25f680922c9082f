"""vaultkeeper command-line interface."""
