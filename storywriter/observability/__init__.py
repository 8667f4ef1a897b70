from storywriter.observability.metrics import PipelineMetrics

__all__ = ["PipelineMetrics"]
