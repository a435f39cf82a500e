"""
Adapters (CLI, configuration)
"""
