#tests\test_access_chain.py

"""Test chained permission groups."""

import pytest

from topology_engine.access.chain import (
    PortRule,
    TierSpec,
    chain,
    downstream_group,
    internet_facing_group,
    upstream_sources,
)
from topology_engine.core.errors import ConfigError, ValidationError
from topology_engine.core.models import ANY_IPV4, Peer, Protocol


class TestChain:
    """Test chain construction."""

    def test_tiers_are_indexed_in_order(self, groups):
        """Test tier indices follow list order."""
        assert [g.tier_index for g in groups] == [0, 1, 2]
        assert groups[0].internet_facing
        assert not groups[1].internet_facing
        assert not groups[2].internet_facing

    def test_edge_rules_use_the_acknowledged_range(self, edge_group):
        """Test only the edge accepts traffic from an address range."""
        assert edge_group.opened_ports() == [443, 22]
        assert all(r.source == ANY_IPV4 for r in edge_group.rules)

    def test_inner_tiers_are_sourced_from_upstream(self, groups):
        """Test tier k accepts only from tier k-1."""
        for upstream, group in zip(groups, groups[1:]):
            assert group.upstream is upstream
            assert upstream_sources(group) == [upstream.as_peer()]

    def test_no_rule_skips_a_tier(self, edge_group, storage_group):
        """Test the storage tier is unreachable from the edge."""
        assert not storage_group.allows(2049, Protocol.TCP, edge_group.as_peer())
        assert not storage_group.allows(2049, Protocol.TCP, ANY_IPV4)

    def test_service_tier_ports(self, edge_group, service_group):
        """Test service ports are opened from the edge group."""
        assert service_group.allows(6610, Protocol.TCP, edge_group.as_peer())
        assert service_group.allows(6611, Protocol.TCP, edge_group.as_peer())
        assert not service_group.allows(6612, Protocol.TCP)

    def test_per_port_sources(self):
        """Test each edge port may carry its own range."""
        groups = chain([
            TierSpec(
                name="edge",
                ports=[
                    PortRule(443, source=ANY_IPV4),
                    PortRule(22, source="203.0.113.0/24"),
                ],
            ),
            ("service", [6610, 6611]),
        ])

        sources = {r.port: r.source.describe() for r in groups[0].rules}
        assert sources == {443: "0.0.0.0/0", 22: "203.0.113.0/24"}

    def test_groups_allow_all_outbound(self, groups):
        """Test egress is left open on every tier."""
        assert all(g.allow_all_outbound for g in groups)

    # -------------------------
    # FAILURES
    # -------------------------

    def test_first_tier_without_source_fails(self):
        """Test open exposure must be acknowledged."""
        with pytest.raises(ConfigError) as exc:
            chain([("edge", [443]), ("service", [6610])])

        assert "permission-group/edge" in str(exc.value)

    def test_later_tier_with_source_fails(self):
        """Test inner tiers cannot name an address range."""
        with pytest.raises(ConfigError):
            chain([
                ("edge", [443], ANY_IPV4),
                ("service", [6610], "10.0.0.0/8"),
            ])

    def test_duplicate_names_fail(self):
        """Test tier names are unique."""
        with pytest.raises(ValidationError):
            chain([("edge", [443], ANY_IPV4), ("edge", [6610])])

    def test_empty_chain_fails(self):
        """Test a chain needs at least one tier."""
        with pytest.raises(ValidationError):
            chain([])

    def test_empty_ports_fail(self):
        """Test a tier opens at least one port."""
        with pytest.raises(ValidationError):
            chain([("edge", [], ANY_IPV4)])

    def test_port_out_of_range_fails(self):
        """Test port bounds."""
        with pytest.raises(ValidationError):
            chain([("edge", [70000], ANY_IPV4)])


class TestGroupConstructors:
    """Test the single-group constructors."""

    def test_edge_port_without_source_fails(self):
        """Test a mix of sourced and unsourced ports is rejected."""
        with pytest.raises(ConfigError):
            internet_facing_group("edge", [PortRule(443, source=ANY_IPV4), 22])

    def test_edge_source_must_be_range(self):
        """Test a group peer cannot feed the edge."""
        with pytest.raises(ConfigError):
            internet_facing_group("edge", [443], source=Peer(group="other"))

    def test_edge_source_with_host_bits_fails(self):
        """Test malformed source ranges."""
        with pytest.raises(ValidationError):
            internet_facing_group("edge", [443], source="10.0.0.1/8")

    def test_downstream_requires_group_upstream(self):
        """Test an address range cannot stand in for the upstream group."""
        with pytest.raises(ConfigError):
            downstream_group("10.0.0.0/8", "service", [6610])

    def test_downstream_port_with_source_fails(self, edge_group):
        """Test inner ports cannot name their own source."""
        with pytest.raises(ConfigError):
            downstream_group(edge_group, "service", [PortRule(6610, source=ANY_IPV4)])

    def test_downstream_tier_index(self, storage_group):
        """Test the index grows by one per tier."""
        group = downstream_group(storage_group, "backup", [873])

        assert group.tier_index == 3
        assert group.allows(873, Protocol.TCP, storage_group.as_peer())
