"""Exceptions raised by the period resolver and projection engine."""


class DashboardError(Exception):
    """Base class for all dashboard analytics errors"""
    pass


class InvalidMonthFormat(DashboardError, ValueError):
    """Month token is not YYYY-MM or the month is outside 1-12"""
    pass


class InsufficientData(DashboardError):
    """Fewer than two points available for a regression fit"""
    pass


class InvalidTarget(DashboardError):
    """Target is missing, non-numeric, or not positive"""
    pass


class DataSourceNotConfigured(DashboardError):
    """No database URL is configured for the loaders"""
    pass
