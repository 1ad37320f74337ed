"""switchfleet: push scripts to network switches over SSH and collect the output."""

__version__ = "0.1.0"
