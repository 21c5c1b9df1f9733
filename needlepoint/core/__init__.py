# This file makes the 'core' directory a Python package.

"""Graph model, planning, execution and undo – the engine proper."""
