"""
Subcommand groups for the AgentPRD CLI.
"""
