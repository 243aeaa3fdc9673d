"""
web3wallet - Ethereum HD wallet with encrypted keystores.

Contains:
- wallet: mnemonic, HD derivation, vault and wallet manager
- models: keystore document format
- services: logging and output rendering
"""

__version__ = "1.0.0"
