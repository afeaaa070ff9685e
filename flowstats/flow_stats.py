import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from functools import reduce
from typing import Optional, Tuple

import common.flags as FLAG
from common.common import (PRINTV, WARN, DivisionGuardTriggered,
                           MeasurementAnomaly)

# Tags recorded on a FlowRecord when its counters needed clamping.
RX_EXCEEDS_TX = 'rx_exceeds_tx'
INVERTED_TIMESTAMPS = 'inverted_timestamps'

NS_PER_SEC = 10**9


@dataclass(frozen=True, order=True)
class FiveTuple:
    src_addr: str
    dst_addr: str
    protocol: int
    src_port: int
    dst_port: int

    def __str__(self):
        return (f'{self.src_addr}:{self.src_port} => '
                f'{self.dst_addr}:{self.dst_port} ({self.protocol})')


def _minOpt(a, b):
    if a is None:
        return b
    return a if b is None else min(a, b)

def _maxOpt(a, b):
    if a is None:
        return b
    return a if b is None else max(a, b)


@dataclass(frozen=True)
class FlowCounters:
    '''
    Raw counters of a flow. All times are integer nanoseconds so that
    accumulation is exact. `+` is commutative and associative.
    '''
    tx_packets: int = 0
    rx_packets: int = 0
    tx_bytes: int = 0
    rx_bytes: int = 0
    delay_sum_ns: int = 0
    jitter_sum_ns: int = 0
    # None until a packet was transmitted / received.
    first_tx_ns: Optional[int] = None
    last_rx_ns: Optional[int] = None

    def __add__(self, other):
        return FlowCounters(
            tx_packets=self.tx_packets + other.tx_packets,
            rx_packets=self.rx_packets + other.rx_packets,
            tx_bytes=self.tx_bytes + other.tx_bytes,
            rx_bytes=self.rx_bytes + other.rx_bytes,
            delay_sum_ns=self.delay_sum_ns + other.delay_sum_ns,
            jitter_sum_ns=self.jitter_sum_ns + other.jitter_sum_ns,
            first_tx_ns=_minOpt(self.first_tx_ns, other.first_tx_ns),
            last_rx_ns=_maxOpt(self.last_rx_ns, other.last_rx_ns))


@dataclass(frozen=True)
class FlowSample:
    '''
    One raw measurement sample emitted by the runner for a five-tuple.
    '''
    five_tuple: FiveTuple
    counters: FlowCounters


@dataclass(frozen=True)
class FlowRecord:
    '''
    A finalized flow. Derived values are computed once, from the complete
    counters, and never change afterwards.
    '''
    flow_id: int
    five_tuple: FiveTuple
    counters: FlowCounters
    lost: int
    # None marks a flow that never sent a packet.
    delivery_ratio_pct: Optional[float]
    loss_ratio_pct: Optional[float]
    throughput_kbps: float
    anomalies: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def no_traffic(self):
        return self.counters.tx_packets == 0

    @property
    def duration_sec(self):
        c = self.counters
        if c.first_tx_ns is None or c.last_rx_ns is None:
            return 0.0
        return max(c.last_rx_ns - c.first_tx_ns, 0) / NS_PER_SEC


def finalizeRecord(flow_id, five_tuple, counters):
    '''
    Derives lost packets, ratios and throughput of a flow from its complete
    counters. Anomalies are clamped and recorded on the returned record.
    '''
    anomalies = []
    c = counters
    if c.rx_packets > c.tx_packets:
        anomalies.append(RX_EXCEEDS_TX)
        WARN(MeasurementAnomaly, f'flow {flow_id} {five_tuple}: received '
             f'{c.rx_packets} > sent {c.tx_packets}, lost clamped to 0.')
    lost = max(c.tx_packets - c.rx_packets, 0)

    if c.tx_packets > 0:
        delivery = min(c.rx_packets, c.tx_packets) * 100 / c.tx_packets
        loss = lost * 100 / c.tx_packets
    else:
        delivery, loss = None, None
        WARN(DivisionGuardTriggered, f'flow {flow_id} {five_tuple}: no packet '
             f'sent, ratios undefined.')

    throughput = 0.0
    if c.rx_packets > 0 and c.first_tx_ns is not None \
            and c.last_rx_ns is not None:
        duration_ns = c.last_rx_ns - c.first_tx_ns
        if duration_ns < 0:
            anomalies.append(INVERTED_TIMESTAMPS)
            WARN(MeasurementAnomaly, f'flow {flow_id} {five_tuple}: last rx '
                 f'{c.last_rx_ns} ns before first tx {c.first_tx_ns} ns.')
        if duration_ns > 0:
            duration = max(duration_ns / NS_PER_SEC, FLAG.THROUGHPUT_EPSILON)
            throughput = c.rx_bytes * 8 / duration / 1024
        else:
            WARN(DivisionGuardTriggered, f'flow {flow_id} {five_tuple}: empty '
                 f'rx window, throughput reported as 0.')

    return FlowRecord(flow_id, five_tuple, counters, lost, delivery, loss,
                      throughput, tuple(anomalies))


class FlowStatsCollector:
    '''
    FlowStatsCollector folds the raw samples of a run into one FlowRecord per
    five-tuple. Samples may arrive in any order and from several threads; each
    five-tuple is guarded by its own lock. A sample either makes it into the
    finalized records or its ingest raises RuntimeError, also when ingest
    races with finalize().
    '''
    def __init__(self):
        # A map from five-tuple to accumulated FlowCounters.
        self._counters = {}
        # A map from five-tuple to the lock guarding its counters.
        self._locks = {}
        # Five-tuples in the order they were first seen.
        self._order = []
        self._records = None
        # Guards the finalized flag and the count of in-flight ingests. It is
        # only held for the check, never during a merge.
        self._state = threading.Condition()
        self._finalized = False
        self._inflight = 0

    def ingest(self, sample):
        '''
        Merges one FlowSample into the counters of its five-tuple.
        '''
        with self._state:
            if self._finalized:
                raise RuntimeError('collector is finalized, no more samples '
                                   'accepted')
            self._inflight += 1
        try:
            key = sample.five_tuple
            # dict.setdefault is atomic, so 2 threads always share one lock.
            with self._locks.setdefault(key, threading.Lock()):
                prev = self._counters.get(key)
                if prev is None:
                    self._order.append(key)
                    self._counters[key] = sample.counters
                else:
                    self._counters[key] = prev + sample.counters
        finally:
            with self._state:
                self._inflight -= 1
                self._state.notify_all()

    def ingestAll(self, samples):
        n = 0
        for sample in samples:
            self.ingest(sample)
            n += 1
        return n

    def ingestShards(self, shards, parallelism=None):
        '''
        Ingests several independent sample streams in parallel. Returns the
        total number of samples ingested.
        '''
        t = time.time()
        total = 0
        with ThreadPoolExecutor(
                max_workers=parallelism or FLAG.PARALLELISM) as executor:
            futures = [executor.submit(self.ingestAll, shard)
                       for shard in shards]
            for future in as_completed(futures):
                total += future.result()
        PRINTV(2, f'{datetime.now()} [ingestShards] {total} samples from '
               f'{len(futures)} shards in {time.time() - t} sec.')
        return total

    def numFlows(self):
        return len(self._order)

    def finalize(self):
        '''
        Derives the per-flow values and returns the finalized FlowRecords as
        a tuple ordered by first seen. Later calls return the same tuple.
        Ingests already past their check are waited for.
        '''
        with self._state:
            self._finalized = True
            self._state.wait_for(lambda: self._inflight == 0)
            if self._records is None:
                self._records = tuple(
                    finalizeRecord(i + 1, key, self._counters[key])
                    for i, key in enumerate(self._order))
                PRINTV(2, f'collector finalized {len(self._records)} flows.')
        return self._records


def mergeRecordSets(*record_sets):
    '''
    Merges independently finalized FlowRecord sets into one. Five-tuples found
    in several sets have their raw counters summed and values re-derived.
    Order is by first appearance across the sets, in argument order.
    '''
    def fold(acc, record):
        key = record.five_tuple
        acc[key] = acc[key] + record.counters if key in acc \
            else record.counters
        return acc

    merged = reduce(fold, (r for rs in record_sets for r in rs), {})
    return tuple(finalizeRecord(i + 1, key, counters)
                 for i, (key, counters) in enumerate(merged.items()))
