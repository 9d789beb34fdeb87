"""
Clinic Scheduler

A FastAPI-based service for generating, adjusting and swapping weekly
doctor shift schedules under capacity and fairness constraints.
"""

__version__ = "1.0.0"
