"""Detection package."""


def __getattr__(name: str):
    """Lazy re-export so that ``from core.detection import create_default_pipeline``
    works without importing every pass (and their data files) at import time."""
    if name in ("create_default_pipeline", "DetectionPipeline", "PipelineContext"):
        from core.detection import pipeline

        return getattr(pipeline, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
