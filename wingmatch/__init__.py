"""WingMatch: matching and wingperson suggestion engine."""

__version__ = "0.1.0"
