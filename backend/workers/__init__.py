# Workers: headless processes driving a sync session from the environment.
# Run from backend/ with:
#   SPOT_ID=hel python -m workers.spot_watch_worker
#   SPOT_COUNTRY=Poland python -m workers.spot_watch_worker
