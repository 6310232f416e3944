"""
Backend Scripts Module

Available scripts:
    - seed_data.py: Creates sample users and workflows
    - validate_workflow.py: Validates a workflow definition JSON file offline

Usage:
    python -m scripts.seed_data
    python -m scripts.validate_workflow path/to/workflow.json
"""
