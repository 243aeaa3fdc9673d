"""
Networks - Chain configurations.

Static profiles for the supported Ethereum networks. Read-only; the
keystore records the network by name.
"""

from dataclasses import dataclass

from .errors import UnsupportedNetwork

# ============================================
# Network Configurations
# ============================================

@dataclass(frozen=True)
class NetworkConfig:
    """Configuration for a blockchain network."""
    chain_id: int
    name: str
    display_name: str
    explorer_url: str
    is_testnet: bool
    native_symbol: str = "ETH"
    native_decimals: int = 18


# Supported networks (Ethereum mainnet + public testnets)
NETWORKS = {
    # Ethereum Mainnet
    1: NetworkConfig(
        chain_id=1,
        name="mainnet",
        display_name="Ethereum Mainnet",
        explorer_url="https://etherscan.io",
        is_testnet=False,
    ),
    # Sepolia Testnet
    11155111: NetworkConfig(
        chain_id=11155111,
        name="sepolia",
        display_name="Sepolia",
        explorer_url="https://sepolia.etherscan.io",
        is_testnet=True,
    ),
    # Goerli Testnet (deprecated, kept for existing keystores)
    5: NetworkConfig(
        chain_id=5,
        name="goerli",
        display_name="Goerli",
        explorer_url="https://goerli.etherscan.io",
        is_testnet=True,
    ),
    # Holesky Testnet
    17000: NetworkConfig(
        chain_id=17000,
        name="holesky",
        display_name="Holesky",
        explorer_url="https://holesky.etherscan.io",
        is_testnet=True,
    ),
}

NETWORK_NAMES = tuple(n.name for n in NETWORKS.values())

# Default network
DEFAULT_NETWORK = "mainnet"


# ============================================
# Utility Functions
# ============================================

def get_network_by_name(name: str) -> NetworkConfig:
    """
    Get network config by name.

    Raises:
        UnsupportedNetwork: name is not a supported network
    """
    for network in NETWORKS.values():
        if network.name == name:
            return network
    raise UnsupportedNetwork(
        f"Unsupported network '{name}'; expected one of: {', '.join(NETWORK_NAMES)}"
    )


def format_address(address: str, chars: int = 4) -> str:
    """Format address as 0x1234...5678"""
    if len(address) <= chars * 2 + 2:
        return address
    return f"{address[:chars+2]}...{address[-chars:]}"
