import json
import shlex
import subprocess
from datetime import datetime
from pathlib import Path

import common.flags as FLAG
from common.common import PRINTV


def dumpInstallPlan(logpath, topo, plan):
    '''
    Writes the topology and traffic install plans the runner consumes.
    Returns the (topology path, traffic path) pair.
    '''
    topo_path = Path(logpath) / 'topo.json'
    traffic_path = Path(logpath) / 'traffic.json'
    topo_path.write_text(json.dumps(topo.dumpInstallPlan(), indent=2) + '\n')
    traffic_path.write_text(json.dumps(plan.dumpInstallPlan(), indent=2)
                            + '\n')
    return topo_path, traffic_path


class ExternalRunner:
    '''
    Adapter around the external discrete-event simulator. The simulator owns
    packet forwarding, the OpenFlow channels and scheduling; this class only
    hands it the install plans and waits for it to exit. When tracing is
    enabled the simulator also writes pcap captures and datapath stats into
    the working directory, which are never read back here.
    '''
    def __init__(self, command):
        '''
        command: the simulator command line, e.g. "./ns3 run sdn-harness --".
        '''
        self.command = shlex.split(command) if isinstance(command, str) \
            else list(command)

    def buildArgs(self, topo_path, traffic_path, flowmon_path):
        args = self.command + [f'--topology={topo_path}',
                               f'--traffic={traffic_path}',
                               f'--flowmon={flowmon_path}',
                               f'--simTime={FLAG.SIM_TIME}']
        if FLAG.VERBOSE >= 2:
            args.append('--verbose')
        if FLAG.TRACE:
            args.append('--trace')
            args.append(f'--pcapPrefixes={",".join(FLAG.PCAP_PREFIXES)}')
            args.append(f'--datapathStats={FLAG.DATAPATH_STATS_PREFIX}')
        return args

    def run(self, topo_path, traffic_path, flowmon_path, cwd=None):
        '''
        Runs the simulator to completion. Raises subprocess.CalledProcessError
        on a non-zero exit. Returns the flow monitor output path.
        '''
        args = self.buildArgs(topo_path, traffic_path, flowmon_path)
        PRINTV(2, f'{datetime.now()} runner: {shlex.join(args)}')
        subprocess.run(args, check=True, cwd=cwd)
        return Path(flowmon_path)
