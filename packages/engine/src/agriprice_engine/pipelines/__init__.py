"""
agriprice_engine.pipelines — Batch jobs over the repository.

    from agriprice_engine.pipelines import aggregates, matching

    summary = matching.run_matching(repo, "product")
    summary = aggregates.PeriodAggregator(repo).recompute_all()

Both jobs are idempotent: re-running them without new data writes nothing
new (matching) or rewrites identical records (aggregates).
"""
