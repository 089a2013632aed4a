"""Agent-manager service: containerised coding agents, git, pipelines and chat."""
