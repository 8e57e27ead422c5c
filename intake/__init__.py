"""Django project package for the patient intake service."""
