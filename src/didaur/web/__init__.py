"""HTTP API for the Didaur mobile client."""
