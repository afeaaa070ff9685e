import ipaddress
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple

import networkx as nx

import common.flags as FLAG
from common.common import PRINTV, ConfigurationError, isInt, isNumber


class NodeRole(Enum):
    HOST = 'host'
    SWITCH = 'switch'
    CONTROLLER = 'controller'


@dataclass
class TopologyConfig:
    '''
    Size parameters of a topology.

    host_count: total number of hosts.
    hosts_per_switch: number of hosts attached to each switch; its length is
                      the number of switches.
    switch_links: pairs of switch indices to connect with an inter-switch link.
    domains: one list of switch indices per controller.
    '''
    host_count: int
    hosts_per_switch: List[int]
    switch_links: List[Tuple[int, int]] = field(default_factory=list)
    domains: List[List[int]] = field(default_factory=list)
    link_speed_mbps: float = FLAG.LINK_SPEED_MBPS
    link_delay_ms: float = FLAG.LINK_DELAY_MS
    host_subnet: str = FLAG.HOST_SUBNET
    name: str = 'net'

    @property
    def switch_count(self):
        return len(self.hosts_per_switch)


def loadTopologyConfig(filepath):
    if not filepath:
        return None
    with open(filepath, 'r', encoding='utf-8') as f:
        raw = json.load(f)
    try:
        return TopologyConfig(
            host_count=raw['host_count'],
            hosts_per_switch=list(raw['hosts_per_switch']),
            switch_links=[tuple(l) for l in raw.get('switch_links', [])],
            domains=[list(d) for d in raw.get('domains', [])],
            link_speed_mbps=raw.get('link_speed_mbps', FLAG.LINK_SPEED_MBPS),
            link_delay_ms=raw.get('link_delay_ms', FLAG.LINK_DELAY_MS),
            host_subnet=raw.get('host_subnet', FLAG.HOST_SUBNET),
            name=raw.get('name', 'net'))
    except (KeyError, TypeError) as e:
        raise ConfigurationError(f'malformed topology config {filepath}: '
                                 f'{e!r}') from e


class Port:
    '''
    A port represents a network attachment point on a host or switch, also
    one end of a link.
    name: port name
    index: 1-based index of the port on its node.
    host_facing: whether the peer of this port is a host.
    '''
    def __init__(self, name, index=None, host_facing=None):
        self.name = name
        self.index = index
        self.host_facing = host_facing
        self.link = None
        # parent node this port belongs to.
        self._parent_node = None

    def setParent(self, node):
        self._parent_node = node

    def setLink(self, link):
        self.link = link

    def getParent(self):
        return self._parent_node


class Link:
    '''
    A link represents an undirected point-to-point channel between 2 ports.
    name: link name
    src_port, dst_port: the 2 ends of the link. The naming only reflects the
                        order the ends were declared in.
    link_speed: nominal speed in Mbps.
    delay: propagation delay in ms.
    '''
    def __init__(self, name, src_port=None, dst_port=None, speed=None,
                 delay=None):
        self.name = name
        self.src_port = src_port
        self.dst_port = dst_port
        self.link_speed = speed
        self.delay = delay

    def peerOf(self, port):
        return self.dst_port if port is self.src_port else self.src_port


class Node:
    '''
    A node is a host, a switch or a controller.
    name: node name
    role: NodeRole of the node.
    index: index of the node among the nodes of the same role.
    address: IPv4 address in ipaddress module format (hosts only).
    '''
    def __init__(self, name, role, index=None, address=None):
        self.name = name
        self.role = role
        self.index = index
        self.address = address
        # data-plane member ports on this node.
        self._member_ports = []
        # domain this node belongs to (switches and controllers only).
        self._parent_domain = None

    def setParent(self, domain):
        self._parent_domain = domain

    def getParent(self):
        return self._parent_domain

    def addMember(self, port):
        self._member_ports.append(port)

    def getPorts(self):
        return list(self._member_ports)


class Domain:
    '''
    A domain represents a collection of switches managed by the same SDN
    controller. The controller never changes once the domain is created.
    name: domain name
    controller: controller node of this domain.
    '''
    def __init__(self, name, controller):
        self.name = name
        self.controller = controller
        controller.setParent(self)
        # member switches managed by the controller.
        self._member_switches = []

    def addMember(self, switch):
        self._member_switches.append(switch)
        switch.setParent(self)

    def getSwitches(self):
        return list(self._member_switches)


def validateConfig(config):
    '''
    Checks `config` against the topology invariants. Raises
    ConfigurationError describing the first violation found.
    '''
    # Types first, configs loaded from JSON carry whatever the file holds.
    if not isInt(config.host_count):
        raise ConfigurationError(f'host count must be an integer, got '
                                 f'{config.host_count!r}')
    if not isinstance(config.hosts_per_switch, (list, tuple)) \
            or not all(isInt(n) for n in config.hosts_per_switch):
        raise ConfigurationError(f'hosts per switch must be a list of '
                                 f'integers, got {config.hosts_per_switch!r}')
    for l in config.switch_links:
        if not isinstance(l, (list, tuple)) or len(l) != 2 \
                or not all(isInt(s) for s in l):
            raise ConfigurationError(f'switch link must be a pair of switch '
                                     f'indices, got {l!r}')
    for domain in config.domains:
        if not isinstance(domain, (list, tuple)) \
                or not all(isInt(s) for s in domain):
            raise ConfigurationError(f'domain must be a list of switch '
                                     f'indices, got {domain!r}')
    if not isNumber(config.link_speed_mbps) \
            or not isNumber(config.link_delay_ms):
        raise ConfigurationError(f'link speed and delay must be numbers, got '
                                 f'{config.link_speed_mbps!r} and '
                                 f'{config.link_delay_ms!r}')
    if not isinstance(config.host_subnet, str) \
            or not isinstance(config.name, str):
        raise ConfigurationError(f'host subnet and name must be strings, got '
                                 f'{config.host_subnet!r} and '
                                 f'{config.name!r}')

    if config.host_count < 1:
        raise ConfigurationError(f'host count must be >= 1, got '
                                 f'{config.host_count}')
    if config.switch_count < 1:
        raise ConfigurationError('topology needs at least 1 switch')
    if any(n < 0 for n in config.hosts_per_switch):
        raise ConfigurationError(f'negative host count in partition '
                                 f'{config.hosts_per_switch}')
    if sum(config.hosts_per_switch) != config.host_count:
        raise ConfigurationError(f'partition {config.hosts_per_switch} sums to '
                                 f'{sum(config.hosts_per_switch)}, expected '
                                 f'{config.host_count} hosts')
    if config.link_speed_mbps <= 0 or config.link_delay_ms < 0:
        raise ConfigurationError(f'illegal link speed '
                                 f'{config.link_speed_mbps} Mbps or delay '
                                 f'{config.link_delay_ms} ms')
    try:
        subnet = ipaddress.ip_network(config.host_subnet)
    except ValueError as e:
        raise ConfigurationError(f'illegal host subnet '
                                 f'{config.host_subnet}') from e
    # Network and broadcast addresses are not assignable.
    if subnet.num_addresses - 2 < config.host_count:
        raise ConfigurationError(f'subnet {subnet} cannot address '
                                 f'{config.host_count} hosts')

    G = nx.Graph()
    G.add_nodes_from(range(config.switch_count))
    for u, v in config.switch_links:
        if not (0 <= u < config.switch_count and 0 <= v < config.switch_count):
            raise ConfigurationError(f'link ({u}, {v}) references a switch not '
                                     f'in the topology')
        if u == v:
            raise ConfigurationError(f'link ({u}, {v}) is a self loop')
        G.add_edge(u, v)
    if not nx.is_connected(G):
        islands = [sorted(c) for c in nx.connected_components(G)]
        raise ConfigurationError(f'switch graph is disconnected: {islands}')

    if not config.domains:
        raise ConfigurationError('topology needs at least 1 domain')
    owner = {}
    for d_idx, domain in enumerate(config.domains):
        if not domain:
            raise ConfigurationError(f'domain {d_idx} has no switch')
        for s in domain:
            if not 0 <= s < config.switch_count:
                raise ConfigurationError(f'domain {d_idx} references switch '
                                         f'{s} not in the topology')
            if s in owner:
                raise ConfigurationError(f'switch {s} belongs to domains '
                                         f'{owner[s]} and {d_idx}')
            owner[s] = d_idx
    orphans = sorted(set(range(config.switch_count)) - set(owner))
    if orphans:
        raise ConfigurationError(f'switches {orphans} belong to no domain')


class Topology:
    '''
    Topology class that represents a network of hosts, switches and
    controllers. It is fully built and validated in the constructor, an
    invalid config raises ConfigurationError and yields no object.
    '''
    def __init__(self, config):
        '''
        config: a TopologyConfig. Must provide.
        '''
        validateConfig(config)
        self.name = config.name
        self.config = config
        self._hosts = {}
        self._switches = {}
        self._controllers = {}
        self._ports = {}
        self._links = {}
        self._domains = {}
        # A map from host address to host node.
        self._hosts_by_addr = {}
        # Switch-level graph used for connectivity and path queries.
        self._switch_graph = nx.Graph()

        hosts_iter = ipaddress.ip_network(config.host_subnet).hosts()
        for s_idx in range(config.switch_count):
            switch = Node(f's{s_idx}', NodeRole.SWITCH, s_idx)
            self._switches[switch.name] = switch
            self._switch_graph.add_node(switch.name)
        # Hosts are numbered globally, in switch order.
        h_idx = 0
        for s_idx, num_hosts in enumerate(config.hosts_per_switch):
            switch = self._switches[f's{s_idx}']
            for _ in range(num_hosts):
                host = Node(f'h{h_idx}', NodeRole.HOST, h_idx,
                            next(hosts_iter))
                self._hosts[host.name] = host
                self._hosts_by_addr[host.address] = host
                self._connect(host, switch, host_facing=True)
                h_idx += 1
        for u, v in config.switch_links:
            src, dst = self._switches[f's{u}'], self._switches[f's{v}']
            self._connect(src, dst, host_facing=False)
            self._switch_graph.add_edge(src.name, dst.name)
        for d_idx, members in enumerate(config.domains):
            controller = Node(f'c{d_idx}', NodeRole.CONTROLLER, d_idx)
            self._controllers[controller.name] = controller
            domain = Domain(f'{config.name}-d{d_idx}', controller)
            self._domains[domain.name] = domain
            for s_idx in members:
                domain.addMember(self._switches[f's{s_idx}'])
        PRINTV(2, f'topology {self.name}: {self.numHosts()} hosts, '
                  f'{self.numSwitches()} switches, {self.numLinks()} links, '
                  f'{self.numDomains()} domains.')

    def _connect(self, a, b, host_facing):
        '''
        Adds a port on each of `a` and `b` and a link between them.
        host_facing: marks the port on `b` as host facing.
        '''
        port_a = Port(f'{a.name}-p{len(a._member_ports) + 1}',
                      len(a._member_ports) + 1, False)
        port_b = Port(f'{b.name}-p{len(b._member_ports) + 1}',
                      len(b._member_ports) + 1, host_facing)
        for node, port in ((a, port_a), (b, port_b)):
            node.addMember(port)
            port.setParent(node)
            self._ports[port.name] = port
        link = Link(f'{port_a.name}:{port_b.name}', port_a, port_b,
                    self.config.link_speed_mbps, self.config.link_delay_ms)
        port_a.setLink(link)
        port_b.setLink(link)
        self._links[link.name] = link

    def numHosts(self):
        return len(self._hosts)

    def numSwitches(self):
        return len(self._switches)

    def numControllers(self):
        return len(self._controllers)

    def numPorts(self):
        return len(self._ports)

    def numLinks(self):
        return len(self._links)

    def numDomains(self):
        return len(self._domains)

    def getHosts(self):
        return list(self._hosts.values())

    def getSwitches(self):
        return list(self._switches.values())

    def getControllers(self):
        return list(self._controllers.values())

    def getDomains(self):
        return list(self._domains.values())

    def getLinks(self):
        return list(self._links.values())

    def getNodeByName(self, node_name):
        '''
        Looks up the node object of the given name, or None if absent.
        '''
        for nodes in (self._hosts, self._switches, self._controllers):
            if node_name in nodes:
                return nodes[node_name]
        return None

    def getPortByName(self, port_name):
        return self._ports.get(port_name)

    def findHostByAddress(self, address):
        '''
        Returns the host node assigned `address` (str or ipaddress object), or
        None if no host owns it.
        '''
        try:
            addr = ipaddress.ip_address(address)
        except ValueError:
            return None
        return self._hosts_by_addr.get(addr)

    def getHostAddresses(self):
        '''
        Returns a map of {host name: address string} in host index order.
        '''
        return {h.name: str(h.address) for h in self._hosts.values()}

    def findSwitchOfHost(self, host_name):
        '''
        Returns the switch node the given host is attached to.
        '''
        host = self._hosts.get(host_name)
        if not host:
            return None
        port = host.getPorts()[0]
        return port.link.peerOf(port).getParent()

    def findPeerPortOfPort(self, port_name):
        port = self._ports.get(port_name)
        if not port or not port.link:
            return None
        return port.link.peerOf(port)

    def findHostFacingPortsOfSwitch(self, switch_name):
        switch = self._switches.get(switch_name)
        if not switch:
            return None
        return [p for p in switch.getPorts() if p.host_facing]

    def findUplinkPortsOfSwitch(self, switch_name):
        switch = self._switches.get(switch_name)
        if not switch:
            return None
        return [p for p in switch.getPorts() if not p.host_facing]

    def findDomainOfSwitch(self, switch_name):
        switch = self._switches.get(switch_name)
        return switch.getParent() if switch else None

    def findSwitchPath(self, src_host, dst_host):
        '''
        Returns the list of switch names on a shortest (hop count) path
        between 2 hosts.
        '''
        src_sw = self.findSwitchOfHost(src_host)
        dst_sw = self.findSwitchOfHost(dst_host)
        if not src_sw or not dst_sw:
            return []
        return nx.shortest_path(self._switch_graph, src_sw.name, dst_sw.name)

    def dumpInstallPlan(self):
        '''
        Returns a JSON-ready description of the topology for the runner's
        install step. Key order is fixed so that dumps are reproducible.
        '''
        return {
            'name': self.name,
            'link': {
                'speed_mbps': self.config.link_speed_mbps,
                'delay_ms': self.config.link_delay_ms,
            },
            'hosts': [{'name': h.name, 'address': str(h.address),
                       'switch': self.findSwitchOfHost(h.name).name}
                      for h in self._hosts.values()],
            'switches': [{'name': s.name,
                          'ports': [p.name for p in s.getPorts()]}
                         for s in self._switches.values()],
            'links': [[l.src_port.name, l.dst_port.name]
                      for l in self._links.values()],
            'domains': [{'name': d.name, 'controller': d.controller.name,
                         'switches': [s.name for s in d.getSwitches()]}
                        for d in self._domains.values()],
        }
