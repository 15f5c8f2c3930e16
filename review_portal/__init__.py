"""
Role-based performance review portal.

Admins manage departments, employees and the question bank; HODs review the
people in their departments; employees file self-assessments and follow their
own ratings over time.
"""

__version__ = "1.0.0"
