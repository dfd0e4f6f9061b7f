from prometheus_client import Counter, Gauge

# Define Metrics
STAGE_EVENTS = Counter(
    "deployment_stage_events_total",
    "Total number of rollout stage events",
    ["target", "event_type"]
)

ROLLBACKS = Counter(
    "deployment_rollbacks_total",
    "Total number of completed automatic rollbacks",
    ["target"]
)

COMPLETIONS = Counter(
    "deployment_completions_total",
    "Total number of rollouts that passed every stage",
    ["target", "mode"]
)

BLUE_GREEN_SWAPS = Counter(
    "deployment_blue_green_swaps_total",
    "Total number of blue-green alias swaps signalled",
    ["target"]
)

CANDIDATE_TRAFFIC = Gauge(
    "deployment_candidate_traffic_percent",
    "Percent of traffic routed to the candidate version of the last started stage",
    ["target"]
)

LISTENER_FAILURES = Counter(
    "deployment_listener_failures_total",
    "Total number of event listeners that raised",
    ["event_type"]
)

ROLLBACK_FAILURES = Counter(
    "deployment_rollback_failures_total",
    "Total number of rollback procedures that raised",
    ["stage"]
)
