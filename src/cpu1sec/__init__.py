"""cpu1sec - one second resolution CPU usage graphs for munin."""

__version__ = "0.2.2"
