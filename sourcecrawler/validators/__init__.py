"""
Validation utilities for crawler configuration.
"""
from .config_validator import ConfigValidator

__all__ = ['ConfigValidator']
