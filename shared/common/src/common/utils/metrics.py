from prometheus_client import Counter, Gauge, REGISTRY

# Keep global references so repeated imports/instantiations don't register the
# same metric name multiple times (pytest builds several groups in one process).
_counter_cache: dict[str, Counter] = {}
_gauge_cache: dict[str, Gauge] = {}

label_names = ["group", "target"]


def GaugeWithParams(metric_name: str, description: str) -> Gauge:
    if metric_name not in _gauge_cache:
        _gauge_cache[metric_name] = Gauge(
            metric_name,
            description,
            labelnames=label_names,
            registry=REGISTRY,
        )
    return _gauge_cache[metric_name]


def CounterWithParams(metric_name: str, description: str) -> Counter:
    if metric_name not in _counter_cache:
        _counter_cache[metric_name] = Counter(
            metric_name,
            description,
            labelnames=label_names,
            registry=REGISTRY,
        )
    return _counter_cache[metric_name]


ALLOWANCES_USED = GaugeWithParams("assistant_allowances_used", "Blocks mined by the target in the trailing window")
ALLOWANCE_CAPACITY = GaugeWithParams("assistant_allowance_capacity", "Allowances derived from the target's balance")
TARGET_DIFFICULTY = GaugeWithParams("assistant_target_difficulty", "Competitiveness score of the target's chain")
WORKER_RUNNING = GaugeWithParams("assistant_worker_running", "1 when the worker process runs for the target")
POLL_FAILURES = CounterWithParams("assistant_poll_failures_total", "Poll cycles discarded because of an error")
WORKER_TRANSITIONS = CounterWithParams("assistant_worker_transitions_total", "Worker starts for the target")
