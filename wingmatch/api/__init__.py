"""HTTP API for the WingMatch engine."""
