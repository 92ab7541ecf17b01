__version__ = "0.1.0"
__description__ = "Append latency benchmarks with bounded head and tail tracking."
__author__ = "headtail developers"
