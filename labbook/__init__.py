"""labbook - a personal research project and task tracker."""

__version__ = "0.4.0"
