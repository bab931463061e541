"""
Ticketflow Engine

Helpdesk ticket workflow with:
- One role-checked lifecycle state machine
- Least-loaded worker assignment per department
- Advisory duplicate-submission detection
- SLA deadline sweep to OVERDUE
"""

__version__ = "0.1.0"
