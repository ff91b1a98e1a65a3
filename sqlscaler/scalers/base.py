from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, List, NamedTuple, Optional

from sqlscaler.common.context import PollContext

EXTERNAL_METRIC_TYPE = 'External'


class MetricSpec(NamedTuple):
    """What one unit of desired scale looks like for the host controller."""
    metric_name: str
    target_average_value: int
    metric_type: str = EXTERNAL_METRIC_TYPE

    def to_dict(self):
        return {
            'metric_name': self.metric_name,
            'target_average_value': self.target_average_value,
            'type': self.metric_type
        }


class ExternalMetricValue(NamedTuple):
    """One timestamped sample of the measured quantity."""
    metric_name: str
    value: int
    timestamp: datetime

    def to_dict(self):
        return {
            'metric_name': self.metric_name,
            'value': self.value,
            'timestamp': self.timestamp.isoformat()
        }


class Scaler(ABC):
    """
    Polling adapter contract consumed by the host autoscaler.

    Every data-source variant implements these four operations so the host can
    treat scalers polymorphically. Implementations must be safe for concurrent
    calls on the same instance.
    """

    @abstractmethod
    def check_active(self, ctx: PollContext) -> bool:
        """Return True when the data source reports work to do."""

    @abstractmethod
    def describe_metric(self) -> MetricSpec:
        """Return the static metric spec. Must not perform I/O."""

    @abstractmethod
    def fetch_metrics(self, ctx: PollContext, metric_name: str,
                      metric_selector: Optional[Any] = None) -> List[ExternalMetricValue]:
        """Return the current metric value under metric_name."""

    @abstractmethod
    def close(self):
        """Release any resources owned by the scaler."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
