"""
FILE: labbook/cli/__init__.py
PURPOSE: Command-line interface package
"""
