"""Core components for cloudclass.

This module contains the foundational components including AWS client
management, configuration handling, region fan-out, terminal output and
safety mechanisms.
"""
