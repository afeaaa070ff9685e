import unittest
from pathlib import Path

from flowstats.flow_stats import FiveTuple, FlowStatsCollector
from flowstats.flowmon import loadFlowMonitor, parseTime
from report.report import aggregate

DATA = Path(__file__).resolve().parent / 'data'
FLOWMON_PATH = DATA / 'flowmon_distributed.xml'
EMPTY_FLOWMON_PATH = DATA / 'flowmon_empty.xml'


class TestFlowMonitor(unittest.TestCase):
    def test_parse_time(self):
        self.assertEqual(10**9, parseTime('+1e+09ns'))
        self.assertEqual(9 * 10**9, parseTime('+9000000000.0ns'))
        self.assertEqual(1004200000, parseTime('+1.0042e+09ns'))
        self.assertEqual(2 * 10**6, parseTime('+2ms'))
        self.assertEqual(1500, parseTime('1.5us'))
        self.assertEqual(3 * 10**9, parseTime('+3s'))
        self.assertEqual(0, parseTime('+0.0ns'))
        with self.assertRaises(ValueError):
            parseTime('10 seconds')

    def test_load_invalid_flowmon(self):
        self.assertIsNone(loadFlowMonitor(''))

    def test_load_flowmon(self):
        samples = loadFlowMonitor(FLOWMON_PATH)
        # Flow 4 has no classifier entry and is dropped.
        self.assertEqual(3, len(samples))
        # Samples come back in flow id order.
        self.assertEqual(FiveTuple('10.1.1.1', '10.1.1.7', 17, 49153, 9),
                         samples[0].five_tuple)
        c = samples[0].counters
        self.assertEqual((100, 95, 1026800, 950000),
                         (c.tx_packets, c.rx_packets, c.tx_bytes, c.rx_bytes))
        self.assertEqual((190 * 10**6, 94 * 10**5),
                         (c.delay_sum_ns, c.jitter_sum_ns))
        self.assertEqual((10**9, 9 * 10**9), (c.first_tx_ns, c.last_rx_ns))
        # Nothing received: the runner's zero timestamp is not a reception.
        self.assertIsNone(samples[2].counters.last_rx_ns)
        self.assertEqual(1500000000, samples[2].counters.first_tx_ns)

    def test_flowmon_to_report(self):
        collector = FlowStatsCollector()
        collector.ingestAll(loadFlowMonitor(FLOWMON_PATH))
        records = collector.finalize()
        self.assertAlmostEqual(927.734375, records[0].throughput_kbps)
        self.assertAlmostEqual(20.0, records[1].throughput_kbps)
        report = aggregate(records)
        self.assertEqual((118, 105, 13), (report.total_sent,
                                          report.total_received,
                                          report.total_lost))
        self.assertAlmostEqual(473.8671875, report.avg_throughput_kbps)
        self.assertEqual(210 * 10**6, report.total_delay_ns)

    def test_empty_flowmon(self):
        self.assertEqual([], loadFlowMonitor(EMPTY_FLOWMON_PATH))


if __name__ == "__main__":
    unittest.main()
