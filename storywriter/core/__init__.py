"""
Execution core.

- cancellation.py: per-run cancellation tokens
- task_graph.py: dependency-driven concurrent node execution
"""
