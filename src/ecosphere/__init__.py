from ecosphere.data_simulator import ARCHETYPES, METRICS, InvalidArgument, generate
from ecosphere.forecast import forecast

__version__ = "0.1.0"
