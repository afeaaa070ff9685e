# Stand-in for the simulator in launcher tests: checks the install plans it is
# handed and writes a canned flow monitor file where it is asked to.
import argparse
import json
import shutil
from pathlib import Path

FLOWMON = Path(__file__).resolve().parent / 'flowmon_distributed.xml'

if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument('--topology', required=True)
    parser.add_argument('--traffic', required=True)
    parser.add_argument('--flowmon', required=True)
    parser.add_argument('--simTime', type=float, required=True)
    args, _ = parser.parse_known_args()
    with open(args.topology) as f:
        assert json.load(f)['hosts']
    with open(args.traffic) as f:
        assert json.load(f)
    shutil.copyfile(FLOWMON, args.flowmon)
