"""Vital-sign threshold derivation for monitored patients.

This package contains the derivation pipeline and its domain models,
isolated from storage and transport so it is easy to test and reason about.
"""
