from numpy.random import default_rng

import common.flags as FLAG
from common.common import ConfigurationError
from topology.topology import Topology, TopologyConfig


def singleDomain(num_switches):
    '''
    One controller managing every switch.
    '''
    return [list(range(num_switches))]

def perSwitchDomains(num_switches):
    '''
    One controller per switch.
    '''
    return [[s] for s in range(num_switches)]

def chainLinks(num_switches):
    '''
    Inter-switch links forming a chain s0 - s1 - ... - s(n-1).
    '''
    return [(s, s + 1) for s in range(num_switches - 1)]

def randomPartition(host_count, num_switches, rng=None):
    '''
    Splits `host_count` hosts across `num_switches` switches uniformly at
    random. Returns a list of per-switch host counts summing to `host_count`.
    '''
    rng = rng if rng is not None else default_rng()
    return [int(n) for n in rng.multinomial(host_count,
                                            [1 / num_switches] * num_switches)]

def randomTreeLinks(num_switches, rng=None):
    '''
    Returns inter-switch links forming a random spanning tree: switch i > 0
    attaches to a switch picked uniformly among 0..i-1.
    '''
    rng = rng if rng is not None else default_rng()
    return [(int(rng.integers(0, i)), i) for i in range(1, num_switches)]

def generateTopology(config):
    '''
    Builds the topology described by `config`. Raises ConfigurationError if
    the config violates any topology invariant.
    '''
    return Topology(config)

def generateScenario(name, num_domains=None):
    '''
    Returns the TopologyConfig of a named scenario.

    num_domains: overrides the number of controllers of the scenario, the
                 switches are then split into that many contiguous domains.
    '''
    if name == 'single-domain':
        # Two switches with 10 hosts each under a single learning controller.
        config = TopologyConfig(host_count=20, hosts_per_switch=[10, 10],
                                switch_links=[(0, 1)],
                                domains=singleDomain(2), name=name)
    elif name == 'distributed':
        # Two switches with 5 hosts each, one controller per switch.
        config = TopologyConfig(host_count=10, hosts_per_switch=[5, 5],
                                switch_links=[(0, 1)],
                                domains=perSwitchDomains(2), name=name)
    elif name == 'two-host':
        config = TopologyConfig(host_count=2, hosts_per_switch=[1, 1],
                                switch_links=[(0, 1)],
                                domains=singleDomain(2), name=name)
    else:
        raise ConfigurationError(f'unknown scenario {name}')

    if num_domains is not None:
        config.domains = splitDomains(config.switch_count, num_domains)
    return config

def splitDomains(num_switches, num_domains):
    '''
    Splits switches 0..num_switches-1 into `num_domains` contiguous domains of
    near-equal size. The first `num_switches % num_domains` domains get one
    extra switch.
    '''
    if not 1 <= num_domains <= num_switches:
        raise ConfigurationError(f'cannot split {num_switches} switches into '
                                 f'{num_domains} domains')
    base, extra = divmod(num_switches, num_domains)
    domains, cursor = [], 0
    for d in range(num_domains):
        size = base + (1 if d < extra else 0)
        domains.append(list(range(cursor, cursor + size)))
        cursor += size
    return domains

def generateRandom(host_count, num_switches, num_domains=1, seed=None,
                   name='random'):
    '''
    Generates a random but valid TopologyConfig: a random host partition, a
    random spanning tree of switches and `num_domains` contiguous domains.
    '''
    rng = default_rng(seed)
    return TopologyConfig(host_count=host_count,
                          hosts_per_switch=randomPartition(host_count,
                                                           num_switches, rng),
                          switch_links=randomTreeLinks(num_switches, rng),
                          domains=splitDomains(num_switches, num_domains),
                          link_speed_mbps=FLAG.LINK_SPEED_MBPS,
                          link_delay_ms=FLAG.LINK_DELAY_MS,
                          name=name)
