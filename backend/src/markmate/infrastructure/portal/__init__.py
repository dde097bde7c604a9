"""
Assessment portal adapters
"""
from .selenium_session import PortalSelectors, SeleniumPortalSession

__all__ = ["PortalSelectors", "SeleniumPortalSession"]
