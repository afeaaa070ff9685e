import ipaddress
import json
import unittest
from pathlib import Path

import networkx as nx
import numpy as np
from numpy.random import default_rng

from common.common import ConfigurationError
from topology.topogen import (chainLinks, generateRandom, generateScenario,
                              generateTopology, perSwitchDomains,
                              randomPartition, randomTreeLinks, singleDomain,
                              splitDomains)
from topology.topology import (NodeRole, Topology, TopologyConfig,
                               loadTopologyConfig)

DATA = Path(__file__).resolve().parent / 'data'
MESH_PATH = DATA / 'mesh_topo.json'


class TestScenarioTopology(unittest.TestCase):
    def test_distributed_entities(self):
        topo = generateTopology(generateScenario('distributed'))
        self.assertEqual(10, topo.numHosts())
        self.assertEqual(2, topo.numSwitches())
        self.assertEqual(2, topo.numControllers())
        self.assertEqual(2, topo.numDomains())
        # 10 host links + 1 inter-switch link.
        self.assertEqual(11, topo.numLinks())
        # 1 port per host, 5 host ports + 1 uplink per switch.
        self.assertEqual(22, topo.numPorts())
        # Hosts are addressed sequentially from 10.1.1.1.
        self.assertEqual('10.1.1.1', topo.getHostAddresses()['h0'])
        self.assertEqual('10.1.1.7', topo.getHostAddresses()['h6'])
        self.assertEqual('h6', topo.findHostByAddress('10.1.1.7').name)
        self.assertIsNone(topo.findHostByAddress('10.1.1.11'))
        self.assertIsNone(topo.findHostByAddress('not-an-ip'))
        # First 5 hosts on s0, next 5 on s1.
        self.assertEqual('s0', topo.findSwitchOfHost('h4').name)
        self.assertEqual('s1', topo.findSwitchOfHost('h5').name)
        # Host facing ports come first, then the uplink.
        self.assertEqual(['s0-p1', 's0-p2', 's0-p3', 's0-p4', 's0-p5'],
                         [p.name for p in
                          topo.findHostFacingPortsOfSwitch('s0')])
        self.assertEqual(['s0-p6'],
                         [p.name for p in topo.findUplinkPortsOfSwitch('s0')])
        self.assertEqual('s1-p6', topo.findPeerPortOfPort('s0-p6').name)
        self.assertEqual('s0-p1', topo.findPeerPortOfPort('h0-p1').name)
        # One controller per switch.
        self.assertEqual('c0', topo.findDomainOfSwitch('s0').controller.name)
        self.assertEqual('c1', topo.findDomainOfSwitch('s1').controller.name)

    def test_single_domain(self):
        topo = generateTopology(generateScenario('single-domain'))
        self.assertEqual(20, topo.numHosts())
        self.assertEqual(1, topo.numDomains())
        domain = topo.getDomains()[0]
        self.assertEqual(['s0', 's1'], [s.name for s in domain.getSwitches()])
        self.assertEqual(NodeRole.CONTROLLER, domain.controller.role)
        # Controllers own no data-plane attachment.
        self.assertEqual([], domain.controller.getPorts())
        self.assertEqual('10.1.1.3', topo.getHostAddresses()['h2'])

    def test_domain_override(self):
        config = generateScenario('single-domain', num_domains=2)
        self.assertEqual([[0], [1]], config.domains)
        self.assertEqual(2, generateTopology(config).numDomains())

    def test_unknown_scenario(self):
        with self.assertRaises(ConfigurationError):
            generateScenario('fat-tree')

    def test_link_attributes(self):
        topo = generateTopology(generateScenario('two-host'))
        for link in topo.getLinks():
            self.assertEqual(100, link.link_speed)
            self.assertEqual(2, link.delay)
        self.assertEqual(['s0', 's1'], topo.findSwitchPath('h0', 'h1'))

    def test_load_config(self):
        self.assertIsNone(loadTopologyConfig(''))
        config = loadTopologyConfig(MESH_PATH)
        self.assertEqual(3, config.switch_count)
        self.assertEqual([(0, 1), (1, 2), (2, 0)], config.switch_links)
        topo = Topology(config)
        self.assertEqual('mesh', topo.name)
        self.assertEqual(ipaddress.ip_address('10.2.0.1'),
                         topo.getNodeByName('h0').address)
        self.assertEqual(1000, topo.getLinks()[0].link_speed)
        # Mesh: each switch has 2 hosts and 2 uplinks.
        for switch in topo.getSwitches():
            self.assertEqual(4, len(switch.getPorts()))
        self.assertEqual('mesh-d0', topo.findDomainOfSwitch('s1').name)
        self.assertEqual('mesh-d1', topo.findDomainOfSwitch('s2').name)

    def test_install_plan(self):
        topo = generateTopology(generateScenario('distributed'))
        plan = topo.dumpInstallPlan()
        self.assertEqual(json.dumps(plan), json.dumps(
            generateTopology(generateScenario('distributed'))
            .dumpInstallPlan()))
        self.assertEqual({'name': 'h6', 'address': '10.1.1.7', 'switch': 's1'},
                         plan['hosts'][6])
        self.assertEqual(['s0-p6', 's1-p6'], plan['links'][-1])
        self.assertEqual({'name': 'distributed-d1', 'controller': 'c1',
                          'switches': ['s1']}, plan['domains'][1])


class TestTopologyErrors(unittest.TestCase):
    def assertInvalid(self, **kwargs):
        base = dict(host_count=4, hosts_per_switch=[2, 2],
                    switch_links=[(0, 1)], domains=[[0, 1]])
        base.update(kwargs)
        with self.assertRaises(ConfigurationError):
            Topology(TopologyConfig(**base))

    def test_partition_mismatch(self):
        self.assertInvalid(hosts_per_switch=[2, 3])

    def test_negative_partition(self):
        self.assertInvalid(hosts_per_switch=[5, -1])

    def test_no_hosts(self):
        self.assertInvalid(host_count=0, hosts_per_switch=[0, 0])

    def test_no_switches(self):
        self.assertInvalid(hosts_per_switch=[], switch_links=[], domains=[])

    def test_disconnected(self):
        self.assertInvalid(host_count=6, hosts_per_switch=[2, 2, 2],
                           switch_links=[(0, 1)], domains=[[0, 1, 2]])

    def test_unknown_switch_in_link(self):
        self.assertInvalid(switch_links=[(0, 1), (1, 2)])

    def test_self_loop(self):
        self.assertInvalid(switch_links=[(0, 1), (1, 1)])

    def test_domain_unknown_switch(self):
        self.assertInvalid(domains=[[0, 1], [5]])

    def test_switch_in_two_domains(self):
        self.assertInvalid(domains=[[0, 1], [1]])

    def test_switch_without_domain(self):
        self.assertInvalid(domains=[[0]])

    def test_empty_domain(self):
        self.assertInvalid(domains=[[0, 1], []])

    def test_no_domain(self):
        self.assertInvalid(domains=[])

    def test_subnet_too_small(self):
        self.assertInvalid(host_subnet='10.0.0.0/30', host_count=3,
                           hosts_per_switch=[2, 1])

    def test_bad_link_speed(self):
        self.assertInvalid(link_speed_mbps=0)

    def test_mistyped_fields(self):
        self.assertInvalid(host_count='4')
        self.assertInvalid(hosts_per_switch=[2.0, 2])
        self.assertInvalid(hosts_per_switch=[True, 3])
        self.assertInvalid(switch_links=[(0, 1, 2)])
        self.assertInvalid(switch_links=[('0', 1)])
        self.assertInvalid(domains=[[0, '1']])
        self.assertInvalid(link_delay_ms='2')
        self.assertInvalid(host_subnet=167837696)

    def test_numpy_integers_accepted(self):
        topo = Topology(TopologyConfig(
            host_count=np.int64(4), hosts_per_switch=list(np.array([2, 2])),
            switch_links=[(np.int64(0), np.int64(1))], domains=[[0, 1]]))
        self.assertEqual(4, topo.numHosts())

    def test_single_switch(self):
        topo = Topology(TopologyConfig(host_count=3, hosts_per_switch=[3],
                                       domains=singleDomain(1)))
        self.assertEqual(3, topo.numLinks())
        self.assertEqual([], topo.findUplinkPortsOfSwitch('s0'))


class TestRandomTopology(unittest.TestCase):
    def test_domain_helpers(self):
        self.assertEqual([[0, 1, 2]], singleDomain(3))
        self.assertEqual([[0], [1], [2]], perSwitchDomains(3))
        self.assertEqual([[0, 1, 2], [3, 4]], splitDomains(5, 2))
        self.assertEqual([(0, 1), (1, 2)], chainLinks(3))
        with self.assertRaises(ConfigurationError):
            splitDomains(2, 3)

    def test_chain_path(self):
        topo = Topology(TopologyConfig(host_count=3, hosts_per_switch=[1, 1, 1],
                                       switch_links=chainLinks(3),
                                       domains=splitDomains(3, 2)))
        self.assertEqual(['s0', 's1', 's2'], topo.findSwitchPath('h0', 'h2'))
        self.assertEqual(['s1'], topo.findSwitchPath('h1', 'h1'))
        self.assertEqual([], topo.findSwitchPath('h0', 'h9'))

    def test_random_partitions(self):
        rng = default_rng(7)
        for _ in range(50):
            num_switches = int(rng.integers(1, 9))
            host_count = int(rng.integers(1, 41))
            partition = randomPartition(host_count, num_switches, rng)
            self.assertEqual(host_count, sum(partition))
            links = randomTreeLinks(num_switches, rng)
            self.assertEqual(num_switches - 1, len(links))

    def test_random_topologies_hold_invariants(self):
        rng = default_rng(42)
        for seed in range(50):
            num_switches = int(rng.integers(1, 9))
            num_domains = int(rng.integers(1, num_switches + 1))
            host_count = int(rng.integers(1, 41))
            config = generateRandom(host_count, num_switches, num_domains,
                                    seed=seed)
            topo = generateTopology(config)
            # Every host attaches to exactly 1 switch.
            attached = [len(topo.findHostFacingPortsOfSwitch(s.name))
                        for s in topo.getSwitches()]
            self.assertEqual(config.hosts_per_switch, attached)
            self.assertEqual(host_count, sum(attached))
            for host in topo.getHosts():
                self.assertEqual(1, len(host.getPorts()))
            # The switch graph is connected.
            G = nx.Graph()
            G.add_nodes_from(s.name for s in topo.getSwitches())
            for link in topo.getLinks():
                ends = [link.src_port.getParent(), link.dst_port.getParent()]
                if all(n.role == NodeRole.SWITCH for n in ends):
                    G.add_edge(ends[0].name, ends[1].name)
            self.assertTrue(nx.is_connected(G))
            # Every switch belongs to exactly 1 domain.
            members = [s.name for d in topo.getDomains()
                       for s in d.getSwitches()]
            self.assertEqual(sorted(members),
                             sorted(s.name for s in topo.getSwitches()))
            self.assertEqual(num_domains, topo.numDomains())


if __name__ == "__main__":
    unittest.main()
