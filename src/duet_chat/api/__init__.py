"""HTTP API for Duet Chat."""
