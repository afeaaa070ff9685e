from dataclasses import asdict, dataclass
from functools import reduce
from typing import Optional

import numpy as np

from common.common import WARN, DivisionGuardTriggered, EmptyReportError
from flowstats.flow_stats import NS_PER_SEC


@dataclass(frozen=True)
class AggregateReport:
    '''
    Run-wide totals and ratios computed once from the finalized flows. Ratios
    are None ("undefined") when their denominator is zero.
    '''
    flow_count: int
    total_sent: int
    total_received: int
    total_lost: int
    delivery_ratio_pct: Optional[float]
    loss_ratio_pct: Optional[float]
    avg_throughput_kbps: Optional[float]
    # Number of flows that received at least 1 packet, i.e., the denominator
    # of the throughput average.
    throughput_flow_count: int
    total_delay_ns: int
    total_jitter_ns: int
    # Flows that carry a measurement anomaly. Totals sum their raw counters,
    # so with rx > tx flows present the received total can exceed sent and
    # sent no longer equals received plus lost.
    anomalous_flow_count: int = 0

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class _Totals:
    flows: int = 0
    sent: int = 0
    received: int = 0
    lost: int = 0
    delay_ns: int = 0
    jitter_ns: int = 0
    anomalous: int = 0

    def add(self, record):
        c = record.counters
        return _Totals(self.flows + 1, self.sent + c.tx_packets,
                       self.received + c.rx_packets, self.lost + record.lost,
                       self.delay_ns + c.delay_sum_ns,
                       self.jitter_ns + c.jitter_sum_ns,
                       self.anomalous + (1 if record.anomalies else 0))


def aggregate(records):
    '''
    Folds the finalized FlowRecords into a single AggregateReport. Raises
    EmptyReportError if no flow was observed.
    '''
    records = tuple(records)
    if not records:
        raise EmptyReportError('no flow observed, check that flow destinations '
                               'match host addresses')

    totals = reduce(lambda acc, r: acc.add(r), records, _Totals())

    # Flows that never received a packet have no meaningful throughput and are
    # left out of the average.
    throughputs = [r.throughput_kbps for r in records
                   if r.counters.rx_packets > 0]
    if throughputs:
        avg_throughput = float(np.mean(throughputs))
    else:
        avg_throughput = None
        WARN(DivisionGuardTriggered, 'no flow received any packet, average '
             'throughput undefined.')

    if totals.sent > 0:
        delivery = totals.received * 100 / totals.sent
        loss = totals.lost * 100 / totals.sent
    else:
        delivery, loss = None, None
        WARN(DivisionGuardTriggered, 'no packet sent in the run, delivery and '
             'loss ratios undefined.')

    return AggregateReport(
        flow_count=totals.flows,
        total_sent=totals.sent,
        total_received=totals.received,
        total_lost=totals.lost,
        delivery_ratio_pct=delivery,
        loss_ratio_pct=loss,
        avg_throughput_kbps=avg_throughput,
        throughput_flow_count=len(throughputs),
        total_delay_ns=totals.delay_ns,
        total_jitter_ns=totals.jitter_ns,
        anomalous_flow_count=totals.anomalous)

def fmtPct(value):
    return 'undefined' if value is None else f'{value:.2f}%'

def summaryLines(report):
    '''
    Returns the human-readable totals block of a report as a list of lines.
    '''
    avg = 'undefined' if report.avg_throughput_kbps is None \
        else f'{report.avg_throughput_kbps:.2f} Kbps'
    lines = [
        '--------Total Results of the simulation----------',
        f'Total sent packets = {report.total_sent}',
        f'Total received packets = {report.total_received}',
        f'Total lost packets = {report.total_lost}',
        f'Packet loss ratio = {fmtPct(report.loss_ratio_pct)}',
        f'Packet delivery ratio = {fmtPct(report.delivery_ratio_pct)}',
        f'Average throughput = {avg}',
        f'End to end delay = {report.total_delay_ns / NS_PER_SEC:.9f} s',
        f'End to end jitter = {report.total_jitter_ns / NS_PER_SEC:.9f} s',
        f'Total flows = {report.flow_count}',
    ]
    if report.anomalous_flow_count:
        lines.append(f'Anomalous flows = {report.anomalous_flow_count} '
                     f'(raw counters kept in the totals)')
    return lines

def flowLines(record):
    '''
    Returns the human-readable per-flow block of a record.
    '''
    c = record.counters
    return [
        f'----Flow ID: {record.flow_id}',
        f'Src addr {record.five_tuple.src_addr} dst addr '
        f'{record.five_tuple.dst_addr}',
        f'Sent packets = {c.tx_packets}',
        f'Received packets = {c.rx_packets}',
        f'Lost packets = {record.lost}',
        f'Packet delivery ratio = {fmtPct(record.delivery_ratio_pct)}',
        f'Packet loss ratio = {fmtPct(record.loss_ratio_pct)}',
        f'Delay = {c.delay_sum_ns / NS_PER_SEC:.9f} s',
        f'Jitter = {c.jitter_sum_ns / NS_PER_SEC:.9f} s',
        f'Throughput = {record.throughput_kbps:.2f} Kbps',
    ]
