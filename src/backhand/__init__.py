"""Backhand - back-of-device tap and swipe detection from camera luminance."""

__version__ = "0.1.0"

from backhand.errors import AnalysisJobFailure, BackhandError, ConfigError, InvalidRegion, MalformedFrame
from backhand.regions import Region, RegionCatalog, Third
from backhand.luma import region_luma
from backhand.aggregator import LumaAggregator, LumaResult
from backhand.events import CallbackSink, EventSink, QueuedSink, Swipe, Tap
from backhand.taps import TapDetector
from backhand.swipes import SwipeDetector
from backhand.throughput import ThroughputMonitor
from backhand.config import BackhandConfig
from backhand.pipeline import Backhand, PipelineStats
from backhand.metrics import MetricsCollector
from backhand.profiler import TickProfiler
from backhand.recorder import FramePlayer, FrameRecorder
