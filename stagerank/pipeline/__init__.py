"""File-based scoring pipeline entrypoints."""


def run_scoring_pipeline(*args, **kwargs):
    from stagerank.pipeline.run import run_scoring_pipeline as _run_scoring_pipeline

    return _run_scoring_pipeline(*args, **kwargs)


__all__ = ["run_scoring_pipeline"]
