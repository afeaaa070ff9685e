import argparse
import subprocess
import sys
import xml.etree.ElementTree as ET
from datetime import datetime
from pathlib import Path

import common.flags as FLAG
from common.common import PRINTE, PRINTV, ConfigurationError, EmptyReportError
from e2e.runner import ExternalRunner, dumpInstallPlan
from flowstats.flow_stats import FlowStatsCollector
from flowstats.flowmon import loadFlowMonitor
from report.report import aggregate, flowLines, summaryLines
from report.serialize import writeFlowCsv, writeReport
from topology.topogen import (generateScenario, generateTopology,
                              splitDomains)
from topology.topology import loadTopologyConfig
from traffic.tmgen import tmgen
from traffic.traffic import TrafficPlan, loadTraffic

# Traffic model used by each preset when no plan file is given.
SCENARIO_TRAFFIC = {
    'single-domain': 'all-to-one',
    'distributed': 'single',
    'two-host': 'single',
}


def parseArgs(argv):
    parser = argparse.ArgumentParser(
        description='Builds an SDN topology and traffic plan, runs the '
                    'simulator and aggregates its flow statistics.')
    parser.add_argument('--scenario', default='distributed',
                        choices=sorted(SCENARIO_TRAFFIC),
                        help='preset topology to build.')
    parser.add_argument('--config', default='',
                        help='topology config JSON, overrides --scenario.')
    parser.add_argument('--domains', type=int, default=None,
                        help='number of controllers to split switches over.')
    parser.add_argument('--traffic', default='',
                        help='traffic plan JSON, overrides --model.')
    parser.add_argument('--model', default=None,
                        choices=['all-to-one', 'single', 'uniform'],
                        help='synthetic traffic model.')
    parser.add_argument('--seed', type=int, default=None,
                        help='seed of the uniform traffic model.')
    parser.add_argument('--simTime', type=float, default=FLAG.SIM_TIME,
                        help='simulation horizon in seconds.')
    parser.add_argument('--verbose', action='store_true',
                        help='enable detailed diagnostic logging.')
    parser.add_argument('--trace', action='store_true',
                        help='enable pcap captures and datapath stats.')
    parser.add_argument('--runner', default='',
                        help='external simulator command line.')
    parser.add_argument('--flowmon', default='',
                        help='flow monitor XML written by the simulator.')
    parser.add_argument('--outdir', default='out',
                        help='directory for install plans and reports.')
    parser.add_argument('--allow-empty', action='store_true',
                        help='treat a run without flows as a warning.')
    return parser.parse_args(argv)

def buildExperiment(args):
    '''
    Builds the topology and traffic plan. Raises ConfigurationError on any
    invalid input.
    '''
    if args.config:
        config = loadTopologyConfig(args.config)
        # An explicit domain count replaces the domains of the file.
        if args.domains is not None:
            config.domains = splitDomains(config.switch_count, args.domains)
    else:
        config = generateScenario(args.scenario, args.domains)
    topo = generateTopology(config)

    if args.traffic:
        plan = TrafficPlan(topo, loadTraffic(args.traffic))
    else:
        model = args.model or SCENARIO_TRAFFIC.get(config.name, 'uniform')
        plan = tmgen(topo, model, seed=args.seed)
    return topo, plan

def main(argv=None):
    args = parseArgs(argv)
    # Initializes global flags before running the pipeline.
    FLAG.SIM_TIME = args.simTime
    FLAG.VERBOSE = 2 if args.verbose else FLAG.VERBOSE
    FLAG.TRACE = args.trace
    FLAG.ALLOW_EMPTY_REPORT = args.allow_empty

    # Absolute, since the runner executes inside the output directory.
    logpath = Path(args.outdir).resolve()
    logpath.mkdir(parents=True, exist_ok=True)

    try:
        topo, plan = buildExperiment(args)
    # Unreadable or malformed input files are configuration errors too.
    except (ConfigurationError, OSError, ValueError) as e:
        PRINTE(e)
        return 1
    PRINTV(1, f'{datetime.now()} [Step 1] topology {topo.name} built: '
              f'{topo.numHosts()} hosts, {topo.numSwitches()} switches, '
              f'{topo.numDomains()} domains.')
    PRINTV(1, f'{datetime.now()} [Step 2] traffic plan built: '
              f'{plan.numFlows()} flows.')

    topo_path, traffic_path = dumpInstallPlan(logpath, topo, plan)
    PRINTV(1, f'{datetime.now()} [Step 3] install plans dumped to '
              f'{topo_path} and {traffic_path}')

    flowmon_path = str(Path(args.flowmon).resolve()) if args.flowmon else ''
    if args.runner:
        flowmon_path = flowmon_path or str(logpath / 'flowmon.xml')
        try:
            ExternalRunner(args.runner).run(topo_path, traffic_path,
                                            flowmon_path, cwd=logpath)
        except (OSError, subprocess.CalledProcessError) as e:
            PRINTE(f'runner failed: {e}')
            return 1
        PRINTV(1, f'{datetime.now()} [Step 4] simulation finished after '
                  f'{FLAG.SIM_TIME} s simulated.')
    if not flowmon_path:
        PRINTV(1, 'No runner or flow monitor given, stopping after install '
                  'plans.')
        return 0

    try:
        samples = loadFlowMonitor(flowmon_path)
    except (OSError, ET.ParseError, ValueError, TypeError,
            AttributeError) as e:
        PRINTE(f'cannot read flow monitor {flowmon_path}: {e}')
        return 1
    collector = FlowStatsCollector()
    collector.ingestAll(samples)
    records = collector.finalize()
    for record in records:
        for line in flowLines(record):
            PRINTV(2, line)
    PRINTV(1, f'{datetime.now()} [Step 5] {len(records)} flows collected.')

    try:
        report = aggregate(records)
    except EmptyReportError as e:
        if FLAG.ALLOW_EMPTY_REPORT:
            PRINTV(1, f'[WARN] {e}')
            return 0
        PRINTE(e)
        return 1

    report_path = writeReport(logpath / 'report.xml', records, report)
    writeFlowCsv(logpath / 'flows.csv', records)
    PRINTV(1, f'{datetime.now()} [Step 6] report written to {report_path}')
    for line in summaryLines(report):
        PRINTV(1, line)
    return 0


if __name__ == "__main__":
    sys.exit(main())
