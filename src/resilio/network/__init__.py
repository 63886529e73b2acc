"""Network reachability: connectivity notifiers and the status tracker."""

from resilio.network.notifier import ConnectivityNotifier, ManualNotifier, ProbeNotifier
from resilio.network.tracker import NetworkStatusTracker

__all__ = [
    "ConnectivityNotifier",
    "ManualNotifier",
    "NetworkStatusTracker",
    "ProbeNotifier",
]
