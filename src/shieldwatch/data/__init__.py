"""Data layer - schemas for events, detections and alerts."""
