"""Unit tests for the network registry."""

import pytest

from reconciler.services.blockchain.network_registry import NetworkRegistry
from reconciler.utils.exceptions import UnsupportedNetworkError


class TestNetworkRegistry:
    """Tests for id <-> name resolution."""

    @pytest.mark.parametrize(
        ("network_id", "name"),
        [(1, "ethereum"), (11155111, "sepolia"), (56, "bsc")],
    )
    def test_resolves_default_networks(self, network_id, name):
        """Default table covers mainnet, testnet and BSC."""
        assert NetworkRegistry().resolve_network_name(network_id) == name

    def test_unknown_network_raises(self):
        """Unknown ids raise with the supported list attached."""
        with pytest.raises(UnsupportedNetworkError) as exc_info:
            NetworkRegistry().resolve_network_name(137)

        assert exc_info.value.network_id == 137
        assert set(exc_info.value.supported) == {1, 11155111, 56}
        assert "137" in str(exc_info.value)

    def test_is_supported(self):
        registry = NetworkRegistry()
        assert registry.is_supported(1)
        assert not registry.is_supported(137)
        assert not registry.is_supported(None)

    def test_substitute_table(self):
        """A registry built from another table knows only that table."""
        registry = NetworkRegistry(networks={137: "polygon"}, chain_aliases={})

        assert registry.resolve_network_name(137) == "polygon"
        assert not registry.is_supported(1)
        assert registry.supported_names() == ["polygon"]

    @pytest.mark.parametrize(
        ("chain", "expected"),
        [
            ("ethereum", 1),
            ("Ethereum", 1),
            ("mainnet", 1),
            ("sepolia", 11155111),
            ("bnb", 56),
            ("binance", 56),
            ("polygon", None),
            ("", None),
            (None, None),
        ],
    )
    def test_network_id_for_chain(self, chain, expected):
        """Chain-name heuristics used for records without networkId."""
        assert NetworkRegistry().network_id_for_chain(chain) == expected

    def test_alias_to_unregistered_network_ignored(self):
        registry = NetworkRegistry(networks={1: "ethereum"})
        assert registry.network_id_for_chain("bsc") is None
