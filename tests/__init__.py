# Appointly Live-Server API Test Suite
#
# Starts the Flask backend on an ephemeral SQLite file and drives it over
# HTTP with httpx. In-process unit and route tests live in backend/tests.
#
# Run with: python -m pytest tests/api [-m smoke]
