"""
Core modules for Energy Guard.

This package contains usage aggregation, appliance estimates,
threshold alerting and the refresh flow that ties them together.
"""
