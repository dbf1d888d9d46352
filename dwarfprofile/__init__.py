"""dwarfprofile — attribute machine-code size to the source that produced it."""

__version__ = "0.3.0"
