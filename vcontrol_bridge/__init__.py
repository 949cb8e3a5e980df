"""Serialized vcontrold command bridge for heating-circuit thermostats."""

__version__ = "0.3.0"
