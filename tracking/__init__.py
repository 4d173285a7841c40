"""
Trip tracking package.

The package is organized into:
- services/sample_filter.py: sample admission and distance filtering
- services/distance.py: distance accumulation and trip metrics
- services/offline_queue.py / sync_flusher.py: durable point queue and upload
- services/background_tracking.py: per-trip watcher, queue and flusher
- services/trip_session.py: active trip orchestration
"""
