"""
Utility modules for SQL query batch analysis
"""
from .config import ConfigLoader, AppConfig, ConfigurationError
from .logger import setup_logger
