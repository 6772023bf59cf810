"""Configuration, commands and status for a rollapp sequencer and its IBC relayer."""

__version__ = "0.1.0"