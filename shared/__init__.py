"""Building blocks shared by the agent-controller and agent-manager services."""
