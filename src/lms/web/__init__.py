"""Web API for the LMS."""
