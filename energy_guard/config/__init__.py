"""
Configuration loading for Energy Guard.
"""
