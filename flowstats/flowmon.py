import re
import xml.etree.ElementTree as ET

from common.common import PRINTV
from flowstats.flow_stats import FiveTuple, FlowCounters, FlowSample

# Time attributes are printed as e.g. "+1e+09ns" or "+9000000000.0ns".
TIME_RE = re.compile(r'^([+-]?[0-9.]+(?:e[+-]?[0-9]+)?)(ns|us|ms|s)$')
UNIT_NS = {'ns': 1, 'us': 10**3, 'ms': 10**6, 's': 10**9}


def parseTime(value):
    '''
    Converts a runner time string into integer nanoseconds.
    '''
    m = TIME_RE.match(value.strip())
    if not m:
        raise ValueError(f'illegal time value {value!r}')
    return round(float(m.group(1)) * UNIT_NS[m.group(2)])

def loadFlowMonitor(filepath):
    '''
    Reads the flow table the runner serialized at the end of a run (flow
    monitor XML) and returns one FlowSample per flow, in flow id order.
    Returns None on an empty path.
    '''
    if not filepath:
        return None
    root = ET.parse(filepath).getroot()
    return parseFlowMonitor(root)

def parseFlowMonitor(root):
    classifier = {}
    for flow in root.iterfind('Ipv4FlowClassifier/Flow'):
        classifier[flow.get('flowId')] = FiveTuple(
            flow.get('sourceAddress'), flow.get('destinationAddress'),
            int(flow.get('protocol')), int(flow.get('sourcePort')),
            int(flow.get('destinationPort')))

    samples = []
    for flow in root.iterfind('FlowStats/Flow'):
        flow_id = flow.get('flowId')
        if flow_id not in classifier:
            PRINTV(1, f'[WARN] flow monitor: flow {flow_id} has no classifier '
                      f'entry, skipped.')
            continue
        tx_packets = int(flow.get('txPackets'))
        rx_packets = int(flow.get('rxPackets'))
        counters = FlowCounters(
            tx_packets=tx_packets,
            rx_packets=rx_packets,
            tx_bytes=int(flow.get('txBytes')),
            rx_bytes=int(flow.get('rxBytes')),
            delay_sum_ns=parseTime(flow.get('delaySum', '+0ns')),
            jitter_sum_ns=parseTime(flow.get('jitterSum', '+0ns')),
            # The runner prints 0 for timestamps that never happened.
            first_tx_ns=parseTime(flow.get('timeFirstTxPacket'))
            if tx_packets else None,
            last_rx_ns=parseTime(flow.get('timeLastRxPacket'))
            if rx_packets else None)
        samples.append((int(flow_id), FlowSample(classifier[flow_id],
                                                 counters)))
    return [s for _, s in sorted(samples, key=lambda x: x[0])]
