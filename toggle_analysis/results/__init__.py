from toggle_analysis.results.collection_toggle import CollectionToggle, ToggleOutcome
from toggle_analysis.results.controller import AnalysisController
from toggle_analysis.results.navigation import LocationNavigation, NavigationState
from toggle_analysis.results.normalizer import normalize, resolve_variation_name
from toggle_analysis.results.notifications import NotificationLog, Notifier
from toggle_analysis.results.time_window import TimeWindowController

__all__ = [
    "AnalysisController",
    "CollectionToggle",
    "LocationNavigation",
    "NavigationState",
    "NotificationLog",
    "Notifier",
    "TimeWindowController",
    "ToggleOutcome",
    "normalize",
    "resolve_variation_name",
]
