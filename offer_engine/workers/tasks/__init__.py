from offer_engine.workers.tasks.offers_jobs import compute_offer_segment, run_offer_jobs

__all__ = [
    "compute_offer_segment",
    "run_offer_jobs",
]
