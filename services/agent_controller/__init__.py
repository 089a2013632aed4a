"""Agent-controller service: registry of remote agent-managers and proxy to them."""
