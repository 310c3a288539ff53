"""
Network registry.

Single source of truth for the chains the reconciler understands.
Built once at startup and passed to every component that needs an
id -> name mapping; adding a chain is an edit to DEFAULT_NETWORKS.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from reconciler.utils.exceptions import UnsupportedNetworkError

# network id -> internal network name
DEFAULT_NETWORKS: Mapping[int, str] = MappingProxyType(
    {
        1: "ethereum",
        11155111: "sepolia",
        56: "bsc",
    }
)

# Chain names seen in source_chain / destination_chain of older records
DEFAULT_CHAIN_ALIASES: Mapping[str, int] = MappingProxyType(
    {
        "ethereum": 1,
        "mainnet": 1,
        "eth": 1,
        "sepolia": 11155111,
        "bsc": 56,
        "bnb": 56,
        "binance": 56,
    }
)


@dataclass(frozen=True)
class NetworkRegistry:
    """
    Immutable id <-> name table.

    Attributes:
        networks: Network id to network name
        chain_aliases: Lowercase chain name to network id
    """

    networks: Mapping[int, str] = field(default_factory=lambda: DEFAULT_NETWORKS)
    chain_aliases: Mapping[str, int] = field(
        default_factory=lambda: DEFAULT_CHAIN_ALIASES
    )

    def resolve_network_name(self, network_id: int) -> str:
        """
        Resolve network id to its name.

        Args:
            network_id: Numeric chain id

        Returns:
            Network name

        Raises:
            UnsupportedNetworkError: If the id is not registered
        """
        name = self.networks.get(network_id)
        if name is None:
            raise UnsupportedNetworkError(network_id, self.supported_ids())
        return name

    def is_supported(self, network_id: int | None) -> bool:
        """Check whether network id is registered."""
        return network_id is not None and network_id in self.networks

    def supported_ids(self) -> list[int]:
        """Registered network ids."""
        return list(self.networks)

    def supported_names(self) -> list[str]:
        """Registered network names."""
        return list(self.networks.values())

    def network_id_for_chain(self, chain_name: str | None) -> int | None:
        """
        Guess network id from a chain name.

        Used for records whose metadata lost the network id. Exact network
        names win over aliases.

        Returns:
            Network id or None if the name is unknown
        """
        if not chain_name:
            return None

        key = chain_name.strip().lower()
        for network_id, name in self.networks.items():
            if name == key:
                return network_id

        network_id = self.chain_aliases.get(key)
        if network_id is not None and self.is_supported(network_id):
            return network_id
        return None
