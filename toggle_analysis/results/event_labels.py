from toggle_analysis.common.models import EventInfo

CONVERSION = "CONVERSION"
COUNT = "COUNT"
REVENUE = "REVENUE"
DURATION = "DURATION"

CUSTOM = "CUSTOM"
CLICK = "CLICK"
PAGE_VIEW = "PAGE_VIEW"

METRIC_TYPE_LABELS: dict[str, str] = {
    CONVERSION: "Conversion",
    COUNT: "Count",
    REVENUE: "Revenue",
    DURATION: "Duration",
}

EVENT_TYPE_LABELS: dict[str, str] = {
    CUSTOM: "Custom",
    CLICK: "Click",
    PAGE_VIEW: "Page view",
}


def describe_event(event: EventInfo | None) -> str | None:
    """Return "<metric type> - <event type>" for the metric header, or None without an event.

    Unknown types render as an empty label rather than the raw constant.
    """
    if event is None:
        return None
    metric = METRIC_TYPE_LABELS.get(event.metric_type or "", "")
    kind = EVENT_TYPE_LABELS.get(event.event_type or "", "")
    return f"{metric} - {kind}"
