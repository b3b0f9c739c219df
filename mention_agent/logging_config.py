"""
Centralized logging configuration for the webhook agent.
"""

import logging
import sys


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger once; modules log through logging.getLogger(__name__)."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO),
                        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                        handlers=[logging.StreamHandler(sys.stdout)])
