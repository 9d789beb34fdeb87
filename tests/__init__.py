"""
Test suite for the Clinic Scheduler.

Contains unit tests for the calendar and planner, service tests against a
SQLite database, and API tests through FastAPI's TestClient.
"""
import os

# Set environment for testing
os.environ["TESTING"] = "1"
