from services.busy_times.api.busy_times import router as busy_times_router  # noqa: F401
