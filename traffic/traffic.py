import json
from dataclasses import asdict, dataclass
from typing import Optional

import common.flags as FLAG
from common.common import PRINTV, ConfigurationError, isInt, isNumber
from topology.topology import NodeRole

# IANA protocol numbers of the supported transports.
PROTOCOLS = {'tcp': 6, 'udp': 17}


@dataclass(frozen=True)
class TrafficFlow:
    '''
    One synthetic traffic generator instance (an on/off source).
    '''
    # Name of the node the generator is installed on.
    src: str
    # Destination IPv4 address, must belong to a host.
    dst: str
    protocol: str = 'udp'
    # Constant sending rate in bits per second while on.
    rate_bps: float = 1000.0
    # Payload size in bytes of each packet.
    packet_size: int = 512
    start: float = 1.0
    stop: float = 10.0
    port: int = FLAG.DISCARD_PORT
    # Stop after this many packets. None means unbounded.
    max_packets: Optional[int] = None


def loadTraffic(filepath):
    '''
    Loads a JSON list of flows. Returns None on an empty path.
    '''
    if not filepath:
        return None
    with open(filepath, 'r', encoding='utf-8') as f:
        raw = json.load(f)
    try:
        return [TrafficFlow(**entry) for entry in raw]
    except TypeError as e:
        raise ConfigurationError(f'malformed traffic plan {filepath}: '
                                 f'{e}') from e


class TrafficPlan:
    '''
    TrafficPlan class that represents the validated set of traffic generators
    to install on a topology. Producing a plan has no side effects, packets
    are generated by the runner.
    '''
    def __init__(self, topo_obj, flows):
        '''
        topo_obj: a topology object the flows must fit in.
        flows: an iterable of TrafficFlow.
        '''
        self.topo = topo_obj
        self._flows = []
        for flow in flows:
            self._validate(flow)
            self._flows.append(flow)
        PRINTV(2, f'traffic plan: {len(self._flows)} flows validated.')

    def _validate(self, flow):
        # Plans loaded from JSON carry whatever types the file holds.
        for k in ('src', 'dst', 'protocol'):
            if not isinstance(getattr(flow, k), str):
                raise ConfigurationError(f'flow {k} must be a string, got '
                                         f'{getattr(flow, k)!r}')
        for k in ('rate_bps', 'start', 'stop'):
            if not isNumber(getattr(flow, k)):
                raise ConfigurationError(f'flow {k} must be a number, got '
                                         f'{getattr(flow, k)!r}')
        for k in ('packet_size', 'port'):
            if not isInt(getattr(flow, k)):
                raise ConfigurationError(f'flow {k} must be an integer, got '
                                         f'{getattr(flow, k)!r}')
        if flow.max_packets is not None and not isInt(flow.max_packets):
            raise ConfigurationError(f'flow max_packets must be an integer, '
                                     f'got {flow.max_packets!r}')

        src = self.topo.getNodeByName(flow.src)
        if src is None:
            raise ConfigurationError(f'flow source {flow.src} not found in '
                                     f'topology {self.topo.name}')
        # Controllers own no data-plane attachment to send from.
        if src.role == NodeRole.CONTROLLER:
            raise ConfigurationError(f'flow source {flow.src} is a controller')
        if self.topo.findHostByAddress(flow.dst) is None:
            raise ConfigurationError(f'flow destination {flow.dst} is not the '
                                     f'address of any host')
        if flow.protocol not in PROTOCOLS:
            raise ConfigurationError(f'unsupported protocol {flow.protocol}')
        if flow.rate_bps <= 0 or flow.packet_size <= 0:
            raise ConfigurationError(f'flow {flow.src} => {flow.dst} has '
                                     f'rate {flow.rate_bps} and packet size '
                                     f'{flow.packet_size}, both must be > 0')
        if not 0 <= flow.start < flow.stop:
            raise ConfigurationError(f'flow {flow.src} => {flow.dst} has '
                                     f'illegal interval [{flow.start}, '
                                     f'{flow.stop})')
        if not 1 <= flow.port <= 65535:
            raise ConfigurationError(f'illegal destination port {flow.port}')
        if flow.max_packets is not None and flow.max_packets <= 0:
            raise ConfigurationError(f'max packets must be > 0, got '
                                     f'{flow.max_packets}')

    def getFlows(self):
        return tuple(self._flows)

    def flowsFrom(self, node_name):
        return [f for f in self._flows if f.src == node_name]

    def flowsTo(self, address):
        return [f for f in self._flows if f.dst == str(address)]

    def numFlows(self):
        return len(self._flows)

    def dumpInstallPlan(self):
        '''
        Returns the JSON-ready list of generators, with the transport protocol
        number resolved for the runner.
        '''
        return [dict(asdict(f), protocol_number=PROTOCOLS[f.protocol])
                for f in self._flows]
