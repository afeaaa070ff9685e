from numpy.random import default_rng
from scipy.stats import truncexpon, uniform

import common.flags as FLAG
from common.common import ConfigurationError
from traffic.traffic import TrafficFlow, TrafficPlan


def tmgen(topo, model, start=1.0, stop=10.0, num_flows=None, max_rate_bps=1e6,
          dist='exp', protocol='udp', seed=None):
    '''
    Generates a traffic plan on `topo` according to `model`.

    Returns a validated TrafficPlan.

    model: the traffic pattern to use, can be all-to-one/single/uniform.
    start, stop: on interval of every generator, in seconds.
    num_flows: number of flows of the uniform model, defaults to the number of
               hosts.
    max_rate_bps: upper bound of the sending rate of the uniform model.
    dist: what distribution to sample uniform model rates from, can be
          exp/uniform.
    protocol: transport of the uniform model.
    seed: seed of the random generator, for reproducible plans.
    '''
    hosts = topo.getHosts()
    flows = []
    if model == 'all-to-one':
        # Every host sends a slow TCP stream to the third host (10.1.1.3 on the
        # default subnet), or to the last host on smaller topologies.
        sink = hosts[2] if len(hosts) > 2 else hosts[-1]
        for host in hosts:
            # A host never sends to itself.
            if host is sink:
                continue
            flows.append(TrafficFlow(host.name, str(sink.address), 'tcp',
                                     rate_bps=1000, packet_size=512,
                                     start=start, stop=stop))
    elif model == 'single':
        # The first switch sends 100 UDP packets of 10240 bytes, one every
        # 200 ms, to the seventh host (10.1.1.7 on the default subnet), or to
        # the last host on smaller topologies.
        sink = hosts[6] if len(hosts) > 6 else hosts[-1]
        interval, packet_size = 0.2, 10240
        flows.append(TrafficFlow(topo.getSwitches()[0].name, str(sink.address),
                                 'udp', rate_bps=packet_size * 8 / interval,
                                 packet_size=packet_size, start=start,
                                 stop=stop, max_packets=100))
    elif model == 'uniform':
        if len(hosts) < 2:
            raise ConfigurationError('uniform traffic needs at least 2 hosts')
        rng = default_rng(seed)
        n = num_flows if num_flows is not None else len(hosts)
        rates = sampleRates(n, max_rate_bps, dist, rng)
        for rate in rates:
            src, dst = rng.choice(len(hosts), size=2, replace=False)
            flows.append(TrafficFlow(hosts[src].name, str(hosts[dst].address),
                                     protocol, rate_bps=float(rate),
                                     packet_size=1024, start=start,
                                     stop=stop, port=FLAG.DISCARD_PORT))
    else:
        raise ConfigurationError(f'unknown traffic model {model}')

    return TrafficPlan(topo, flows)

def sampleRates(n, upper_bound, dist, rng):
    '''
    Samples `n` sending rates in (0, upper_bound]. Returns a 1-D NumPy array.
    '''
    scale = upper_bound / 2
    if dist == 'exp':
        X = truncexpon(b=upper_bound / scale, loc=0, scale=scale)
    elif dist == 'uniform':
        X = uniform(loc=0, scale=upper_bound)
    else:
        raise ConfigurationError(f'unknown rate distribution {dist}')
    rates = X.rvs(size=n, random_state=rng)
    # A zero rate is not a valid generator; lift it to 1 bps.
    rates[rates <= 0] = 1.0
    return rates
