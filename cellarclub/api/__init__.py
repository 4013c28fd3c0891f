"""
JSON API blueprints for the console screens.
"""
