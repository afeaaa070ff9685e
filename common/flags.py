# VERBOSE=0: no informational prints.
# VERBOSE=1: informational prints and the final summary.
# VERBOSE=2: full diagnostics, including per-flow details and anomalies.
VERBOSE = 1

# Simulation horizon in seconds handed to the external runner.
SIM_TIME = 10

# True enables the runner's pcap captures and periodic datapath stats.
TRACE = False

# Nominal speed (Mbps) and propagation delay (ms) of every CSMA link.
LINK_SPEED_MBPS = 100
LINK_DELAY_MS = 2

# Subnet hosts are addressed from, in host index order.
HOST_SUBNET = '10.1.1.0/24'

# Discard port (RFC 863), default destination port of traffic sources.
DISCARD_PORT = 9

# Floor (in seconds) for the duration a flow's throughput is divided by.
THROUGHPUT_EPSILON = 1e-9

# Number of threads used when ingesting sharded sample streams.
PARALLELISM = 4

# True means a run with no observed flows is a warning, not a failure.
ALLOW_EMPTY_REPORT = False

# Prefixes of the trace artifacts the runner produces when TRACE is set.
# These files are opaque to the harness and never read back.
PCAP_PREFIXES = ('host', 'switch', 'openflow')
DATAPATH_STATS_PREFIX = 'switch-stats'
