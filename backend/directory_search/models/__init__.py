from directory_search.models.employee import Employee
from directory_search.models.analytics_event import AnalyticsEvent

__all__ = ["Employee", "AnalyticsEvent"]
