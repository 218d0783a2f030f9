"""
Providers domain package.

Public API:
- Domain models: Provider, ProviderStatus, Profession, WorkWindow
"""
from .models import Profession, Provider, ProviderStatus, WorkWindow, weekday_name

__all__ = ["Provider", "ProviderStatus", "Profession", "WorkWindow", "weekday_name"]
