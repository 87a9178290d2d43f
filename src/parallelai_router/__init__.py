"""
ParallelAI orchestration core: ask several models at once, optionally
reconcile their answers into one consensus answer.
"""

__version__ = "0.1.0"
