"""pagerbridge - PagerDuty incidents as interactive Mattermost messages."""
__version__ = "0.1.0"
