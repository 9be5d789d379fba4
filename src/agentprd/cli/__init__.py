"""
Command-line front ends for AgentPRD: the typer app, the line REPL and the
full-screen TUI.
"""
