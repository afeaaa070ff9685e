import csv
import xml.etree.ElementTree as ET
from pathlib import Path


def _fmt(value):
    '''
    Formats an attribute value. Floats use a fixed precision so the same
    input always serializes to the same bytes.
    '''
    if value is None:
        return 'undefined'
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, float):
        return f'{value:.6f}'
    return str(value)

def _flowElement(parent, record):
    c, t = record.counters, record.five_tuple
    flow = ET.SubElement(parent, 'Flow')
    for k, v in (('flowId', record.flow_id),
                 ('sourceAddress', t.src_addr),
                 ('destinationAddress', t.dst_addr),
                 ('protocol', t.protocol),
                 ('sourcePort', t.src_port),
                 ('destinationPort', t.dst_port),
                 ('txPackets', c.tx_packets),
                 ('rxPackets', c.rx_packets),
                 ('txBytes', c.tx_bytes),
                 ('rxBytes', c.rx_bytes),
                 ('lostPackets', record.lost),
                 ('delaySumNs', c.delay_sum_ns),
                 ('jitterSumNs', c.jitter_sum_ns),
                 ('timeFirstTxPacketNs', c.first_tx_ns),
                 ('timeLastRxPacketNs', c.last_rx_ns),
                 ('deliveryRatioPct', record.delivery_ratio_pct),
                 ('lossRatioPct', record.loss_ratio_pct),
                 ('throughputKbps', record.throughput_kbps),
                 ('noTraffic', record.no_traffic)):
        flow.set(k, _fmt(v))
    for tag in record.anomalies:
        ET.SubElement(flow, 'Anomaly', {'type': tag})
    return flow

def toXml(records, report):
    '''
    Serializes the flows and their aggregate report into an XML document.
    Returns bytes. Serializing the same input twice yields identical bytes.
    '''
    root = ET.Element('FlowReport')
    flows = ET.SubElement(root, 'FlowStats')
    for record in records:
        _flowElement(flows, record)
    agg = ET.SubElement(root, 'AggregateReport')
    for k, v in (('flowCount', report.flow_count),
                 ('totalSent', report.total_sent),
                 ('totalReceived', report.total_received),
                 ('totalLost', report.total_lost),
                 ('deliveryRatioPct', report.delivery_ratio_pct),
                 ('lossRatioPct', report.loss_ratio_pct),
                 ('avgThroughputKbps', report.avg_throughput_kbps),
                 ('throughputFlowCount', report.throughput_flow_count),
                 ('totalDelayNs', report.total_delay_ns),
                 ('totalJitterNs', report.total_jitter_ns),
                 ('anomalousFlows', report.anomalous_flow_count)):
        agg.set(k, _fmt(v))
    ET.indent(root)
    return ET.tostring(root, encoding='utf-8', xml_declaration=True) + b'\n'

def writeReport(filepath, records, report):
    '''
    Writes the XML report to `filepath`, creating parent directories.
    '''
    path = Path(filepath)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(toXml(records, report))
    return path

def writeFlowCsv(filepath, records):
    '''
    Dumps one CSV row per flow.
    '''
    with open(filepath, 'w', newline='') as f:
        writer = csv.writer(f)
        writer.writerow(['flow id', 'src addr', 'dst addr', 'protocol',
                         'src port', 'dst port', 'tx packets', 'rx packets',
                         'lost packets', 'rx bytes', 'delivery ratio (%)',
                         'loss ratio (%)', 'throughput (Kbps)', 'anomalies'])
        for r in records:
            t, c = r.five_tuple, r.counters
            writer.writerow([r.flow_id, t.src_addr, t.dst_addr, t.protocol,
                             t.src_port, t.dst_port, c.tx_packets,
                             c.rx_packets, r.lost, c.rx_bytes,
                             _fmt(r.delivery_ratio_pct),
                             _fmt(r.loss_ratio_pct),
                             _fmt(r.throughput_kbps), ';'.join(r.anomalies)])
